"""
Unified search adapter.

Stands in for all per-provider adapters when a search backend already indexes
chat, code review, issues and calendars. Authenticates at the service level,
so it needs no per-user integration.
"""

import logging
from typing import Any, Dict, List, Optional

from ..clients.search_client import SearchClient
from ..config import SEARCH_MAX_RESULTS, UNIFIED_SEARCH_QUERIES
from ..errors import AuthError
from ..models import IntegrationRecord, ItemType, Provider, RawSignal, TokenResponse, Urgency

logger = logging.getLogger(__name__)

GENERIC_SOURCE = "generic"

# Ordered (substring, source) pairs matched against the hit URL
SOURCE_PATTERNS = [
    ("slack.com", Provider.SLACK.value),
    ("github.com", Provider.GITHUB.value),
    ("atlassian.net", Provider.JIRA.value),
    ("jira", Provider.JIRA.value),
    ("calendar.google.com", Provider.CALENDAR.value),
    ("calendar", Provider.CALENDAR.value),
]

URGENCY_KEYWORDS = [
    (("urgent", "critical", "high"), Urgency.URGENT),
    (("medium", "attention"), Urgency.ATTENTION),
    (("follow",), Urgency.FOLLOWUP),
]

KNOWN_SOURCES = {p.value for p in Provider}


def detect_source(hit: Dict[str, Any]) -> str:
    url = hit.get("url") or hit.get("link") or ""
    for pattern, source in SOURCE_PATTERNS:
        if pattern in url:
            return source

    declared = (hit.get("source") or "").lower()
    return declared if declared in KNOWN_SOURCES else GENERIC_SOURCE


def detect_urgency(hit: Dict[str, Any]) -> Urgency:
    priority = str(hit.get("priority") or hit.get("urgency") or "").lower()
    for keywords, urgency in URGENCY_KEYWORDS:
        if any(k in priority for k in keywords):
            return urgency
    return Urgency.FYI


class UnifiedSearchAdapter:
    """Runs canned queries against the search backend."""

    provider = Provider.SEARCH.value
    requires_integration = False

    def __init__(self, client: SearchClient, queries: Optional[List[str]] = None):
        self.client = client
        self.queries = queries or UNIFIED_SEARCH_QUERIES

    def get_auth_url(self, state: str) -> str:
        raise AuthError("Unified search authenticates with service credentials, not user OAuth")

    async def exchange_code(self, code: str) -> TokenResponse:
        raise AuthError("Unified search authenticates with service credentials, not user OAuth")

    async def refresh(self, refresh_token: str) -> TokenResponse:
        raise AuthError("Unified search authenticates with service credentials, not user OAuth")

    async def fetch_signals(
        self, user_id: str, integration: Optional[IntegrationRecord] = None
    ) -> List[RawSignal]:
        hits = []
        for query in self.queries:
            try:
                hits.extend(await self.client.search(query, user_id, max_results=SEARCH_MAX_RESULTS))
            except Exception as e:
                logger.warning(f"Unified search query '{query}' failed for user {user_id}: {e}")
                continue

        signals = []
        seen = set()
        for hit in hits:
            hit_id = hit.get("id") or hit.get("url")
            if hit_id:
                if hit_id in seen:
                    continue
                seen.add(hit_id)
            signals.append(self.hit_to_signal(hit, hit_id))

        logger.info(f"Unified search: {len(signals)} unique hits for user {user_id}")
        return signals

    def hit_to_signal(self, hit: Dict[str, Any], hit_id: Optional[str]) -> RawSignal:
        url = hit.get("url") or hit.get("link")
        metadata = dict(hit.get("metadata") or {})
        metadata.update({"search_id": hit_id, "search_url": url})

        return RawSignal(
            source=detect_source(hit),
            text=hit.get("title") or hit.get("summary") or hit.get("text") or "",
            external_id=str(hit_id) if hit_id else None,
            source_url=url,
            provider_metadata=metadata,
            item_type=ItemType.CALENDAR if hit.get("type") == "calendar" else ItemType.ITEM,
            urgency=detect_urgency(hit),
        )
