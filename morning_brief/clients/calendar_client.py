"""
Google Calendar API Client for the Morning Brief.
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any
import httpx

logger = logging.getLogger(__name__)

CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"


class CalendarClient:
    """Google Calendar v3 client for the user's primary calendar."""

    def __init__(
        self,
        access_token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 20.0,
    ):
        self.access_token = access_token
        self._transport = transport
        self._timeout = timeout
        self._headers = {
            "Authorization": f"Bearer {access_token}",
        }

    async def _request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        url = f"{CALENDAR_API_BASE}{endpoint}"
        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            response = await client.request(method, url, headers=self._headers, **kwargs)
            response.raise_for_status()
            return response.json()

    async def list_events(
        self,
        time_min: datetime,
        time_max: datetime,
        calendar_id: str = "primary",
    ) -> List[Dict[str, Any]]:
        """
        List single events between time_min and time_max, ordered by start time.

        Args:
            time_min: Window start (timezone-aware)
            time_max: Window end (timezone-aware)
            calendar_id: Calendar to read

        Returns:
            Raw event objects
        """
        data = await self._request(
            "GET",
            f"/calendars/{calendar_id}/events",
            params={
                "timeMin": time_min.isoformat(),
                "timeMax": time_max.isoformat(),
                "singleEvents": "true",
                "orderBy": "startTime",
            },
        )
        return data.get("items", [])


def get_calendar_client(access_token: str) -> CalendarClient:
    """Create a Calendar client with the given access token."""
    return CalendarClient(access_token)
