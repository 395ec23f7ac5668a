"""
Provider adapter contract and shared helpers.

An adapter knows how to authorize against its provider (auth URL, code exchange,
refresh) and how to turn the provider's "needs attention" data into RawSignals.
Adapters are plain classes satisfying ProviderAdapter; there is no shared base class.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Type, Union

import httpx

from ..errors import AuthError, BriefError
from ..models import IntegrationRecord, RawSignal, TokenResponse

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_COMPACT_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


class ProviderAdapter(Protocol):
    """Capability every provider variant implements."""

    provider: str
    # False for sources that authenticate at the service level (unified search, mock)
    requires_integration: bool

    def get_auth_url(self, state: str) -> str:
        ...

    async def exchange_code(self, code: str) -> TokenResponse:
        ...

    async def refresh(self, refresh_token: str) -> TokenResponse:
        ...

    async def fetch_signals(
        self, user_id: str, integration: Optional[IntegrationRecord] = None
    ) -> List[RawSignal]:
        ...


@dataclass(frozen=True)
class OAuthCredentials:
    """OAuth app registration for one provider."""
    client_id: str
    client_secret: str
    redirect_uri: str

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


async def request_token(
    provider: str,
    url: str,
    *,
    data: Optional[Dict[str, Any]] = None,
    json: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    error: Type[BriefError] = AuthError,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    fallback_refresh_token: Optional[str] = None,
) -> TokenResponse:
    """
    POST to a provider token endpoint and normalize the response.

    Args:
        provider: Provider name (for error messages)
        url: Token endpoint
        data: Form body
        json: JSON body
        headers: Extra headers
        error: Exception class raised on a provider error payload
        transport: Optional httpx transport (tests)
        fallback_refresh_token: Kept when the provider omits a new refresh token

    Returns:
        TokenResponse
    """
    request_headers = {"Accept": "application/json"}
    request_headers.update(headers or {})

    async with httpx.AsyncClient(transport=transport, timeout=20.0) as client:
        response = await client.post(url, data=data, json=json, headers=request_headers)
        try:
            payload = response.json()
        except ValueError:
            payload = {}

    # Slack answers 200 with ok=false, the others use error fields and/or status codes
    if payload.get("ok") is False or "error" in payload or response.status_code >= 400:
        detail = payload.get("error_description") or payload.get("error") or response.reason_phrase
        raise error(f"{provider} token endpoint error: {detail}")

    if not payload.get("access_token"):
        raise error(f"{provider} token endpoint returned no access token")

    return TokenResponse(
        access_token=payload["access_token"],
        refresh_token=payload.get("refresh_token") or fallback_refresh_token,
        expires_in=payload.get("expires_in"),
    )


def parse_timestamp(value: Union[str, int, float, None]) -> Optional[datetime]:
    """
    Parse provider timestamps into aware UTC datetimes.

    Accepts epoch seconds (Slack "ts" strings included), ISO 8601 with "Z" or
    compact "+0000" offsets, and date-only strings (midnight UTC).
    """
    if value is None or value == "":
        return None

    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=timezone.utc)

    text = str(value).strip()
    try:
        return datetime.fromtimestamp(float(text), tz=timezone.utc)
    except ValueError:
        pass

    text = text.replace("Z", "+00:00")
    text = _COMPACT_OFFSET.sub(r"\1:\2", text)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def require_integration(provider: str, integration: Optional[IntegrationRecord]) -> IntegrationRecord:
    if integration is None:
        raise BriefError(f"{provider} adapter needs an integration to fetch signals")
    return integration
