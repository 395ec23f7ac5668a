"""
GitHub API Client for the Morning Brief.

Handles GitHub REST API calls for:
- The authenticated user
- Searching pull requests awaiting the user's review
- Loading pull request details
"""

import logging
from typing import Optional, List, Dict, Any
import httpx

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"


class GitHubClient:
    """
    GitHub REST API client.

    Uses the OAuth access token to act as the connected user.
    """

    def __init__(
        self,
        access_token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 20.0,
    ):
        """Initialize with access token."""
        self.access_token = access_token
        self._transport = transport
        self._timeout = timeout
        self._headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        **kwargs,
    ) -> Any:
        """Make a request to GitHub API."""
        url = f"{GITHUB_API_BASE}{endpoint}"
        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            response = await client.request(
                method,
                url,
                headers=self._headers,
                **kwargs,
            )
            response.raise_for_status()
            return response.json() if response.text else {}

    # =========================================================================
    # User
    # =========================================================================

    async def get_user(self) -> Dict[str, Any]:
        """Get authenticated user info."""
        return await self._request("GET", "/user")

    # =========================================================================
    # Pull Requests
    # =========================================================================

    async def search_review_requests(
        self,
        login: str,
        per_page: int = 50,
    ) -> List[Dict[str, Any]]:
        """
        Search open pull requests where the user is a requested reviewer.

        Args:
            login: GitHub login of the reviewer
            per_page: Number of results (max 100)

        Returns:
            Search result items (issues API shape)
        """
        data = await self._request(
            "GET",
            "/search/issues",
            params={
                "q": f"is:pr is:open review-requested:{login}",
                "sort": "updated",
                "order": "desc",
                "per_page": per_page,
            },
        )
        return data.get("items", [])

    async def get_pr(self, owner: str, repo: str, pr_number: int) -> Dict[str, Any]:
        """Get a specific pull request."""
        return await self._request("GET", f"/repos/{owner}/{repo}/pulls/{pr_number}")


def get_github_client(access_token: str) -> GitHubClient:
    """Create a GitHub client with the given access token."""
    return GitHubClient(access_token)
