"""
Jira Cloud REST API Client for the Morning Brief.

Reads issues assigned to the connected user.
"""

import logging
from typing import Optional, List, Dict, Any
import httpx

from ..errors import ProviderFetchError

logger = logging.getLogger(__name__)

ASSIGNED_OPEN_ISSUES_JQL = "assignee=currentUser() AND status != Done ORDER BY updated DESC"


class JiraClient:
    """
    Jira REST API (v3) client.

    base_url is the site URL (e.g. https://acme.atlassian.net).
    """

    def __init__(
        self,
        access_token: str,
        base_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 20.0,
    ):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout
        self._headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        **kwargs,
    ) -> Dict[str, Any]:
        """Make a request to the Jira REST API."""
        if not self.base_url:
            raise ProviderFetchError("jira", "Jira base URL is not configured")

        url = f"{self.base_url}/rest/api/3{endpoint}"
        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            response = await client.request(
                method,
                url,
                headers=self._headers,
                **kwargs,
            )
            response.raise_for_status()
            return response.json()

    async def search_issues(
        self,
        jql: str = ASSIGNED_OPEN_ISSUES_JQL,
        max_results: int = 50,
    ) -> List[Dict[str, Any]]:
        """Run a JQL search and return the raw issues."""
        data = await self._request(
            "GET",
            "/search",
            params={"jql": jql, "maxResults": max_results},
        )
        return data.get("issues", [])

    def browse_url(self, issue_key: str) -> str:
        """Link to the issue in the Jira UI."""
        return f"{self.base_url}/browse/{issue_key}"


def get_jira_client(access_token: str, base_url: str) -> JiraClient:
    """Create a Jira client with the given access token and site URL."""
    return JiraClient(access_token, base_url)
