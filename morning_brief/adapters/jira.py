"""
Issue-tracker adapter (Jira Cloud).

Surfaces issues assigned to the user that are not Done.
"""

import logging
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from ..clients.jira_client import JiraClient, get_jira_client
from ..config import PROVIDER_SCOPES, JIRA_MAX_RESULTS
from ..errors import TokenRefreshError
from ..models import IntegrationRecord, Provider, RawSignal, TokenResponse, UrgencyFactors, utc_now
from ..services.urgency import days_since
from .base import Clock, OAuthCredentials, parse_timestamp, request_token, require_integration

logger = logging.getLogger(__name__)

ATLASSIAN_AUTHORIZE_URL = "https://auth.atlassian.com/authorize"
ATLASSIAN_TOKEN_URL = "https://auth.atlassian.com/oauth/token"

DONE_STATUS = "Done"


class JiraAdapter:
    """Assigned issues that are still open."""

    provider = Provider.JIRA.value
    requires_integration = True

    def __init__(
        self,
        credentials: OAuthCredentials,
        default_base_url: str = "",
        client_factory: Callable[[str, str], JiraClient] = get_jira_client,
        clock: Clock = utc_now,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.default_base_url = default_base_url
        self.client_factory = client_factory
        self.clock = clock
        self.http_transport = http_transport

    # =========================================================================
    # OAuth
    # https://developer.atlassian.com/cloud/jira/platform/oauth-2-3lo-apps/
    # =========================================================================

    def get_auth_url(self, state: str) -> str:
        params = {
            "client_id": self.credentials.client_id,
            "scope": " ".join(PROVIDER_SCOPES["jira"]),
            "redirect_uri": self.credentials.redirect_uri,
            "state": state,
            "response_type": "code",
            "audience": "api.atlassian.com",
        }
        return f"{ATLASSIAN_AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenResponse:
        return await request_token(
            "jira",
            ATLASSIAN_TOKEN_URL,
            json={
                "grant_type": "authorization_code",
                "client_id": self.credentials.client_id,
                "client_secret": self.credentials.client_secret,
                "code": code,
                "redirect_uri": self.credentials.redirect_uri,
            },
            transport=self.http_transport,
        )

    async def refresh(self, refresh_token: str) -> TokenResponse:
        return await request_token(
            "jira",
            ATLASSIAN_TOKEN_URL,
            json={
                "grant_type": "refresh_token",
                "client_id": self.credentials.client_id,
                "client_secret": self.credentials.client_secret,
                "refresh_token": refresh_token,
            },
            error=TokenRefreshError,
            transport=self.http_transport,
            fallback_refresh_token=refresh_token,
        )

    # =========================================================================
    # Signals
    # =========================================================================

    async def fetch_signals(
        self, user_id: str, integration: Optional[IntegrationRecord] = None
    ) -> List[RawSignal]:
        integration = require_integration(self.provider, integration)
        base_url = integration.config.get("base_url") or self.default_base_url
        client = self.client_factory(integration.access_token, base_url)

        issues = await client.search_issues(max_results=JIRA_MAX_RESULTS)
        signals = [self.issue_to_signal(issue, client.browse_url(issue["key"])) for issue in issues]

        logger.info(f"Jira: {len(signals)} open assigned issues for user {user_id}")
        return signals

    def issue_to_signal(self, issue: Dict[str, Any], url: str) -> RawSignal:
        fields = issue.get("fields") or {}
        status = (fields.get("status") or {}).get("name", "")
        priority = (fields.get("priority") or {}).get("name")
        due_date = parse_timestamp(fields.get("duedate"))
        updated = parse_timestamp(fields.get("updated"))

        return RawSignal(
            source=self.provider,
            text=f"{issue['key']}: {fields.get('summary', '')}",
            external_id=str(issue["id"]),
            source_url=url,
            raw_timestamp=updated,
            provider_metadata={
                "issue_key": issue["key"],
                "status": status,
                "priority": priority,
                "due_date": fields.get("duedate"),
            },
            factors=UrgencyFactors(
                days_waiting=days_since(updated, self.clock()) if updated else None,
                due_date=due_date,
                sprint_risk=status != DONE_STATUS,
            ),
        )
