"""
Morning Brief Services.

- Urgency: deterministic tier classification
- Token manager: valid tokens with serialized refresh
- OAuth: state storage and authorization-code flow
- Brief aggregator: runs adapters, classifies, deduplicates, persists
- Brief scheduler: daily generation for connected users
"""

# urgency first: adapters import it while this package is still initializing
from .urgency import classify, days_since, days_until
from .token_manager import TokenLifecycleManager
from .oauth_state import OAuthStateStore
from .oauth_manager import OAuthManager
from .brief_aggregator import AggregatorOptions, BriefAggregator
from .brief_scheduler import BriefScheduler

__all__ = [
    # Urgency
    "classify",
    "days_since",
    "days_until",
    # Tokens / OAuth
    "TokenLifecycleManager",
    "OAuthStateStore",
    "OAuthManager",
    # Aggregation
    "AggregatorOptions",
    "BriefAggregator",
    # Scheduling
    "BriefScheduler",
]
