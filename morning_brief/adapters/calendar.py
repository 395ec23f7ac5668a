"""
Calendar adapter (Google Calendar).

Emits a single fyi summary of today's events, or nothing on an empty day.
"""

import logging
from datetime import datetime, timedelta, tzinfo
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode
from zoneinfo import ZoneInfo

import httpx

from ..clients.calendar_client import CalendarClient, get_calendar_client
from ..config import PROVIDER_SCOPES
from ..errors import TokenRefreshError
from ..models import IntegrationRecord, ItemType, Provider, RawSignal, TokenResponse, Urgency, utc_now
from .base import Clock, OAuthCredentials, request_token, require_integration

logger = logging.getLogger(__name__)

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"


class CalendarAdapter:
    """Today's schedule as one summary signal."""

    provider = Provider.CALENDAR.value
    requires_integration = True

    def __init__(
        self,
        credentials: OAuthCredentials,
        timezone_name: Optional[str] = None,
        client_factory: Callable[[str], CalendarClient] = get_calendar_client,
        clock: Clock = utc_now,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.timezone_name = timezone_name
        self.client_factory = client_factory
        self.clock = clock
        self.http_transport = http_transport

    # =========================================================================
    # OAuth
    # https://developers.google.com/identity/protocols/oauth2/web-server
    # =========================================================================

    def get_auth_url(self, state: str) -> str:
        params = {
            "client_id": self.credentials.client_id,
            "scope": " ".join(PROVIDER_SCOPES["calendar"]),
            "redirect_uri": self.credentials.redirect_uri,
            "state": state,
            "response_type": "code",
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{GOOGLE_AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenResponse:
        return await request_token(
            "calendar",
            GOOGLE_TOKEN_URL,
            data={
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
            "calendar",
            GOOGLE_TOKEN_URL,
            data={
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

    def _local_zone(self) -> tzinfo:
        if self.timezone_name:
            return ZoneInfo(self.timezone_name)
        return datetime.now().astimezone().tzinfo

    def today_window(self) -> tuple:
        """Local midnight today and local midnight tomorrow."""
        local_now = self.clock().astimezone(self._local_zone())
        start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        return start, start + timedelta(days=1)

    async def fetch_signals(
        self, user_id: str, integration: Optional[IntegrationRecord] = None
    ) -> List[RawSignal]:
        integration = require_integration(self.provider, integration)
        client = self.client_factory(integration.access_token)

        start, end = self.today_window()
        events = await client.list_events(start, end)
        logger.info(f"Calendar: {len(events)} events today for user {user_id}")

        signal = self.events_to_signal(events, start)
        return [signal] if signal else []

    def events_to_signal(self, events: List[Dict[str, Any]], day: datetime) -> Optional[RawSignal]:
        if not events:
            return None

        count = len(events)
        return RawSignal(
            source=self.provider,
            text=f"Today's schedule: {count} event{'s' if count > 1 else ''}",
            external_id=f"calendar-{day.date().isoformat()}",
            item_type=ItemType.CALENDAR,
            urgency=Urgency.FYI,
            provider_metadata={
                "events": [
                    {
                        "time": (event.get("start") or {}).get("dateTime")
                        or (event.get("start") or {}).get("date"),
                        "summary": event.get("summary") or "No title",
                        "location": event.get("location"),
                    }
                    for event in events
                ],
            },
        )
