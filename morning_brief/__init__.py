"""
Morning Brief - Multi-source work signal aggregation

This module pulls "needs attention" items from work tools (Slack, GitHub, Jira,
Google Calendar, or a unified search backend), classifies each by urgency,
deduplicates against what the user has already seen, and persists the brief.

Components:
- Provider clients for API access
- Provider adapters that map provider data to signals
- Token lifecycle manager and OAuth flow
- Brief aggregator and daily scheduler
- SQL-backed integration and item stores
"""

from .services import (
    AggregatorOptions,
    BriefAggregator,
    BriefScheduler,
    OAuthManager,
    TokenLifecycleManager,
    classify,
)
from .adapters import build_adapter_registry

__all__ = [
    "AggregatorOptions",
    "BriefAggregator",
    "BriefScheduler",
    "OAuthManager",
    "TokenLifecycleManager",
    "classify",
    "build_adapter_registry",
]
