"""
Durable storage for integrations and brief items.
"""

from .base import IntegrationStore, ItemStore
from .crypto import TokenCipher
from .sql import SqlIntegrationStore, SqlItemStore

__all__ = [
    "IntegrationStore",
    "ItemStore",
    "TokenCipher",
    "SqlIntegrationStore",
    "SqlItemStore",
]
