"""
Unified search backend client.

One service-level connection that indexes chat, code review, issues and calendars,
queried with free text.
"""

import logging
from typing import Optional, List, Dict, Any
import httpx

from ..errors import ProviderFetchError

logger = logging.getLogger(__name__)


class SearchClient:
    """
    REST client for the unified search API.

    Authenticates with an OAuth bearer token when one is configured, otherwise
    with an API key.
    """

    def __init__(
        self,
        api_url: str,
        oauth_token: str = "",
        api_key: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 20.0,
    ):
        self.api_url = api_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout
        self._headers = {"Content-Type": "application/json"}

        if oauth_token:
            self._headers["Authorization"] = f"Bearer {oauth_token}"
            self._headers["X-Glean-Auth-Type"] = "OAUTH"
        elif api_key:
            self._headers["X-API-Key"] = api_key

    async def search(
        self,
        query: str,
        user_id: str,
        max_results: int = 50,
    ) -> List[Dict[str, Any]]:
        """Run a search on behalf of user_id and return the raw hits."""
        if not self.api_url:
            raise ProviderFetchError("search", "Search API URL is not configured")

        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            response = await client.post(
                f"{self.api_url}/api/v1/search",
                headers=self._headers,
                json={
                    "query": query,
                    "user_id": user_id,
                    "max_results": max_results,
                },
            )
            response.raise_for_status()
            data = response.json()

        results = data.get("results") or []
        if not isinstance(results, list):
            raise ProviderFetchError("search", f"Unexpected results payload: {type(results).__name__}")
        return results
