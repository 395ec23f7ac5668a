"""
Slack API Client for the Morning Brief.

Handles Slack Web API calls for:
- Listing conversations the user belongs to
- Reading channel history
- Loading thread replies
"""

import logging
from typing import Optional, List, Dict, Any
import httpx

from ..errors import ProviderFetchError

logger = logging.getLogger(__name__)

SLACK_API_BASE = "https://slack.com/api"


class SlackClient:
    """
    Slack Web API client.

    Uses the user's OAuth token to read conversations.
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
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        **kwargs,
    ) -> Dict[str, Any]:
        """Make a request to Slack API."""
        url = f"{SLACK_API_BASE}/{endpoint}"
        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            response = await client.request(
                method,
                url,
                headers=self._headers,
                **kwargs,
            )
            response.raise_for_status()
            data = response.json()

            if not data.get("ok"):
                raise ProviderFetchError("slack", f"Slack API error: {data.get('error')}")

            return data

    # =========================================================================
    # Conversations
    # =========================================================================

    async def list_conversations(
        self,
        types: str = "public_channel,private_channel,im",
        limit: int = 200,
    ) -> List[Dict[str, Any]]:
        """
        List conversations the user is a member of.

        Args:
            types: Conversation types to include
            limit: Maximum conversations to return

        Returns:
            List of conversation objects
        """
        channels = []
        cursor = None

        while True:
            params = {
                "types": types,
                "limit": min(limit, 200),
                "exclude_archived": "true",
            }
            if cursor:
                params["cursor"] = cursor

            data = await self._request("GET", "conversations.list", params=params)
            channels.extend(data.get("channels", []))

            cursor = data.get("response_metadata", {}).get("next_cursor")
            if not cursor or len(channels) >= limit:
                break

        return channels[:limit]

    async def get_channel_history(
        self,
        channel_id: str,
        limit: int = 50,
    ) -> List[Dict[str, Any]]:
        """Get the most recent messages in a channel."""
        data = await self._request(
            "GET",
            "conversations.history",
            params={"channel": channel_id, "limit": min(limit, 200)},
        )
        return data.get("messages", [])

    async def get_thread_replies(
        self,
        channel_id: str,
        thread_ts: str,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        """Get a thread, parent message first."""
        data = await self._request(
            "GET",
            "conversations.replies",
            params={"channel": channel_id, "ts": thread_ts, "limit": min(limit, 200)},
        )
        return data.get("messages", [])


def get_slack_client(access_token: str) -> SlackClient:
    """Create a Slack client with the given access token."""
    return SlackClient(access_token)
