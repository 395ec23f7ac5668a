"""
Adapter selection.

The set of adapters a BriefAggregator uses depends only on the source mode and
settings handed to it, never on process environment read at call time.
"""

import logging
from typing import Dict, Optional

import httpx

from ..clients.search_client import SearchClient
from ..config import BriefSettings
from ..models import SourceMode, utc_now
from .base import Clock, OAuthCredentials, ProviderAdapter
from .calendar import CalendarAdapter
from .github import GitHubAdapter
from .jira import JiraAdapter
from .mock import build_mock_adapters
from .slack import SlackAdapter
from .unified_search import UnifiedSearchAdapter

logger = logging.getLogger(__name__)


def build_integration_adapters(
    settings: BriefSettings,
    clock: Clock = utc_now,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, ProviderAdapter]:
    """Live adapters for every provider a user can connect with OAuth."""
    adapters = [
        SlackAdapter(
            OAuthCredentials(settings.slack_client_id, settings.slack_client_secret, settings.slack_redirect_uri),
            clock=clock,
            http_transport=http_transport,
        ),
        GitHubAdapter(
            OAuthCredentials(settings.github_client_id, settings.github_client_secret, settings.github_redirect_uri),
            clock=clock,
            http_transport=http_transport,
        ),
        JiraAdapter(
            OAuthCredentials(settings.jira_client_id, settings.jira_client_secret, settings.jira_redirect_uri),
            default_base_url=settings.jira_base_url,
            clock=clock,
            http_transport=http_transport,
        ),
        CalendarAdapter(
            OAuthCredentials(settings.google_client_id, settings.google_client_secret, settings.google_redirect_uri),
            timezone_name=settings.brief_timezone,
            clock=clock,
            http_transport=http_transport,
        ),
    ]

    for adapter in adapters:
        if not adapter.credentials.configured:
            logger.warning(f"{adapter.provider} OAuth credentials are not configured")

    return {adapter.provider: adapter for adapter in adapters}


def build_adapter_registry(
    source_mode: SourceMode,
    settings: BriefSettings,
    clock: Clock = utc_now,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, ProviderAdapter]:
    """
    Adapters keyed by provider name for the given source mode.

    Args:
        source_mode: integrations, mock or unified_search
        settings: Credentials and provider settings
        clock: Current-time source shared by all adapters
        http_transport: Optional httpx transport for OAuth token calls (tests)

    Returns:
        Mapping of provider name to adapter
    """
    source_mode = SourceMode(source_mode)

    if source_mode == SourceMode.MOCK:
        return build_mock_adapters(clock=clock, timezone_name=settings.brief_timezone)

    if source_mode == SourceMode.UNIFIED_SEARCH:
        client = SearchClient(
            settings.search_api_url,
            oauth_token=settings.search_oauth_token,
            api_key=settings.search_api_key,
        )
        adapter = UnifiedSearchAdapter(client)
        return {adapter.provider: adapter}

    return build_integration_adapters(settings, clock=clock, http_transport=http_transport)
