"""
Storage contracts used by the pipeline.

The relational engine sits behind these two protocols; the aggregator and the
token manager only ever talk to them.
"""

from datetime import datetime
from typing import List, Optional, Protocol

from ..models import BriefItemCreate, BriefItemRecord, IntegrationRecord


class IntegrationStore(Protocol):
    """Keyed storage for integrations, unique on (user_id, provider)."""

    async def get(self, user_id: str, provider: str) -> Optional[IntegrationRecord]:
        ...

    async def list_for_user(self, user_id: str) -> List[IntegrationRecord]:
        ...

    async def list_active_user_ids(self) -> List[str]:
        ...

    async def upsert(self, record: IntegrationRecord) -> IntegrationRecord:
        """Insert, or replace tokens/config/is_active on (user_id, provider) conflict."""
        ...

    async def update_tokens(
        self,
        user_id: str,
        provider: str,
        access_token: str,
        refresh_token: Optional[str],
        token_expires_at: Optional[datetime],
    ) -> Optional[IntegrationRecord]:
        """Replace only the token fields. None when the row does not exist."""
        ...

    async def deactivate(self, user_id: str, provider: str) -> bool:
        ...


class ItemStore(Protocol):
    """Keyed storage for brief items, unique on (user_id, source, external_id)."""

    async def find_by_external_id(
        self, user_id: str, external_id: str, source: str
    ) -> Optional[BriefItemRecord]:
        ...

    async def create(self, item: BriefItemCreate) -> BriefItemRecord:
        """Raises DuplicateItemError on a natural-key conflict."""
        ...

    async def list_for_user(self, user_id: str, limit: int = 50) -> List[BriefItemRecord]:
        ...

    async def delete(self, user_id: str, item_id: str) -> bool:
        ...
