"""
Chat adapter (Slack).

Surfaces busy threads: any thread with the creator plus at least two replies.
"""

import logging
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from ..clients.slack_client import SlackClient, get_slack_client
from ..config import PROVIDER_SCOPES, MIN_THREAD_MESSAGES, SLACK_HISTORY_LIMIT, SLACK_REPLIES_LIMIT
from ..errors import TokenRefreshError
from ..models import IntegrationRecord, Provider, RawSignal, TokenResponse, UrgencyFactors, utc_now
from ..services.urgency import days_since
from .base import Clock, OAuthCredentials, parse_timestamp, request_token, require_integration

logger = logging.getLogger(__name__)

SLACK_AUTHORIZE_URL = "https://slack.com/oauth/v2/authorize"
SLACK_TOKEN_URL = "https://slack.com/api/oauth.v2.access"


class SlackAdapter:
    """Chat threads that need the user's attention."""

    provider = Provider.SLACK.value
    requires_integration = True

    def __init__(
        self,
        credentials: OAuthCredentials,
        client_factory: Callable[[str], SlackClient] = get_slack_client,
        clock: Clock = utc_now,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.client_factory = client_factory
        self.clock = clock
        self.http_transport = http_transport

    # =========================================================================
    # OAuth
    # https://api.slack.com/authentication/oauth-v2
    # =========================================================================

    def get_auth_url(self, state: str) -> str:
        params = {
            "client_id": self.credentials.client_id,
            "scope": ",".join(PROVIDER_SCOPES["slack"]),
            "redirect_uri": self.credentials.redirect_uri,
            "state": state,
            "response_type": "code",
        }
        return f"{SLACK_AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenResponse:
        return await request_token(
            "slack",
            SLACK_TOKEN_URL,
            data={
                "client_id": self.credentials.client_id,
                "client_secret": self.credentials.client_secret,
                "code": code,
                "redirect_uri": self.credentials.redirect_uri,
            },
            transport=self.http_transport,
        )

    async def refresh(self, refresh_token: str) -> TokenResponse:
        return await request_token(
            "slack",
            SLACK_TOKEN_URL,
            data={
                "client_id": self.credentials.client_id,
                "client_secret": self.credentials.client_secret,
                "grant_type": "refresh_token",
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
        client = self.client_factory(integration.access_token)
        threads = await self._fetch_threads(client)

        signals = []
        for thread in threads:
            signal = self.thread_to_signal(thread)
            if signal is not None:
                signals.append(signal)

        logger.info(f"Slack: {len(signals)} threads need attention for user {user_id}")
        return signals

    async def _fetch_threads(self, client: SlackClient) -> List[Dict[str, Any]]:
        """Collect threads with enough messages across the user's conversations."""
        threads = []
        channels = await client.list_conversations()

        for channel in channels:
            channel_id = channel.get("id")
            if not channel_id:
                continue

            try:
                history = await client.get_channel_history(channel_id, limit=SLACK_HISTORY_LIMIT)
                seen = set()

                for message in history:
                    if not (message.get("thread_ts") or message.get("reply_count", 0) > 0):
                        continue

                    thread_ts = message.get("thread_ts") or message.get("ts")
                    if not thread_ts or thread_ts in seen:
                        continue
                    seen.add(thread_ts)

                    replies = await client.get_thread_replies(
                        channel_id, thread_ts, limit=SLACK_REPLIES_LIMIT
                    )
                    if len(replies) >= MIN_THREAD_MESSAGES:
                        threads.append({
                            "channel": channel_id,
                            "thread_ts": thread_ts,
                            "messages": replies,
                        })

            except Exception as e:
                logger.warning(f"Failed to read Slack channel {channel_id}: {e}")
                continue

        return threads

    def thread_to_signal(self, thread: Dict[str, Any]) -> Optional[RawSignal]:
        """Map a thread to a signal; threads under three messages are noise."""
        messages = thread.get("messages") or []
        if len(messages) < MIN_THREAD_MESSAGES:
            return None

        channel = thread["channel"]
        thread_ts = thread["thread_ts"]
        first = messages[0]
        reply_count = len(messages) - 1
        started_at = parse_timestamp(first.get("ts"))
        days_waiting = days_since(started_at, self.clock()) if started_at else 0

        return RawSignal(
            source=self.provider,
            text=f"Thread in {channel}: {(first.get('text') or '')[:100]}... ({reply_count} replies)",
            external_id=f"{channel}-{thread_ts}",
            source_url=f"https://slack.com/app_redirect?{urlencode({'channel': channel, 'ts': thread_ts})}",
            raw_timestamp=started_at,
            provider_metadata={
                "channel": channel,
                "thread_ts": thread_ts,
                "message_count": reply_count,
                "blocked": [{"n": m.get("user") or "Unknown"} for m in messages[1:]],
            },
            factors=UrgencyFactors(
                blocking_count=1 if reply_count >= 3 else 0,
                days_waiting=days_waiting,
            ),
        )
