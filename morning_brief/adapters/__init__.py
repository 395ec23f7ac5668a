"""
Provider adapters for the Morning Brief.

Each adapter authorizes against its provider and maps "needs attention" data to RawSignals:
- Slack: busy threads
- GitHub: pending review requests
- Jira: open assigned issues
- Calendar: today's schedule
- Unified search: canned queries against a search backend
"""

from .base import ProviderAdapter, OAuthCredentials, parse_timestamp
from .slack import SlackAdapter
from .github import GitHubAdapter
from .jira import JiraAdapter
from .calendar import CalendarAdapter
from .unified_search import UnifiedSearchAdapter, detect_source, detect_urgency
from .mock import MockAdapter, build_mock_adapters
from .registry import build_adapter_registry, build_integration_adapters

__all__ = [
    "ProviderAdapter",
    "OAuthCredentials",
    "parse_timestamp",
    "SlackAdapter",
    "GitHubAdapter",
    "JiraAdapter",
    "CalendarAdapter",
    "UnifiedSearchAdapter",
    "detect_source",
    "detect_urgency",
    "MockAdapter",
    "build_mock_adapters",
    "build_adapter_registry",
    "build_integration_adapters",
]
