"""
Code-review adapter (GitHub).

Surfaces open pull requests where the user is a requested reviewer.
"""

import logging
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from ..clients.github_client import GitHubClient, get_github_client
from ..config import PROVIDER_SCOPES, GITHUB_SEARCH_PER_PAGE
from ..errors import TokenRefreshError
from ..models import IntegrationRecord, Provider, RawSignal, TokenResponse, UrgencyFactors, utc_now
from ..services.urgency import days_since
from .base import Clock, OAuthCredentials, parse_timestamp, request_token, require_integration

logger = logging.getLogger(__name__)

GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"


class GitHubAdapter:
    """Pull requests waiting on the user's review."""

    provider = Provider.GITHUB.value
    requires_integration = True

    def __init__(
        self,
        credentials: OAuthCredentials,
        client_factory: Callable[[str], GitHubClient] = get_github_client,
        clock: Clock = utc_now,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.client_factory = client_factory
        self.clock = clock
        self.http_transport = http_transport

    # =========================================================================
    # OAuth
    # https://docs.github.com/en/apps/oauth-apps/building-oauth-apps/authorizing-oauth-apps
    # =========================================================================

    def get_auth_url(self, state: str) -> str:
        params = {
            "client_id": self.credentials.client_id,
            "scope": ",".join(PROVIDER_SCOPES["github"]),
            "redirect_uri": self.credentials.redirect_uri,
            "state": state,
            "response_type": "code",
        }
        return f"{GITHUB_AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenResponse:
        return await request_token(
            "github",
            GITHUB_TOKEN_URL,
            json={
                "client_id": self.credentials.client_id,
                "client_secret": self.credentials.client_secret,
                "code": code,
                "redirect_uri": self.credentials.redirect_uri,
            },
            transport=self.http_transport,
        )

    async def refresh(self, refresh_token: str) -> TokenResponse:
        # OAuth app tokens do not expire and cannot be refreshed
        raise TokenRefreshError("GitHub does not support token refresh. Re-authentication required.")

    # =========================================================================
    # Signals
    # =========================================================================

    async def fetch_signals(
        self, user_id: str, integration: Optional[IntegrationRecord] = None
    ) -> List[RawSignal]:
        integration = require_integration(self.provider, integration)
        client = self.client_factory(integration.access_token)

        user = await client.get_user()
        login = user.get("login")
        results = await client.search_review_requests(login, per_page=GITHUB_SEARCH_PER_PAGE)

        signals = []
        for result in results:
            if "pull_request" not in result:
                continue

            owner, repo = result["repository_url"].rstrip("/").split("/")[-2:]
            try:
                pr = await client.get_pr(owner, repo, result["number"])
            except Exception as e:
                logger.warning(f"Failed to load PR {owner}/{repo}#{result.get('number')} for user {user_id}: {e}")
                continue

            signals.append(self.pr_to_signal(pr))

        logger.info(f"GitHub: {len(signals)} review requests for user {user_id}")
        return signals

    def pr_to_signal(self, pr: Dict[str, Any]) -> RawSignal:
        updated_at = parse_timestamp(pr.get("updated_at"))
        days_waiting = days_since(updated_at, self.clock()) if updated_at else 0
        reviewers = [
            {"n": r if isinstance(r, str) else r.get("login")}
            for r in pr.get("requested_reviewers") or []
        ]

        return RawSignal(
            source=self.provider,
            text=f"PR #{pr['number']}: {pr.get('title', '')} - {pr.get('changed_files') or 0} files changed",
            external_id=f"pr-{pr['id']}",
            source_url=pr.get("html_url"),
            raw_timestamp=updated_at,
            provider_metadata={
                "pr_number": pr["number"],
                "pr_url": pr.get("html_url"),
                "additions": pr.get("additions"),
                "deletions": pr.get("deletions"),
                "changed_files": pr.get("changed_files"),
                "blocked": reviewers,
            },
            factors=UrgencyFactors(
                blocking_count=1 if reviewers else 0,
                days_waiting=days_waiting,
                sprint_risk=days_waiting >= 1,
            ),
        )
