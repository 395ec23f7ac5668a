"""
Shared fixtures: in-memory stores, a fake Redis and a fixed clock.
"""

import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import pytest

from morning_brief.config import URGENCY_ORDER
from morning_brief.errors import DuplicateItemError
from morning_brief.models import BriefItemCreate, BriefItemRecord, IntegrationRecord

FIXED_NOW = datetime(2024, 3, 12, 9, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


class InMemoryIntegrationStore:
    """IntegrationStore keyed by (user_id, provider)."""

    def __init__(self):
        self.rows: Dict[Tuple[str, str], IntegrationRecord] = {}
        self.upserts = 0
        self.token_updates = 0
        self._next_id = 1

    async def get(self, user_id: str, provider: str) -> Optional[IntegrationRecord]:
        row = self.rows.get((user_id, provider))
        return row.model_copy() if row else None

    async def list_for_user(self, user_id: str) -> List[IntegrationRecord]:
        return [row.model_copy() for (uid, _), row in sorted(self.rows.items()) if uid == user_id]

    async def list_active_user_ids(self) -> List[str]:
        return sorted({uid for (uid, _), row in self.rows.items() if row.is_active})

    async def upsert(self, record: IntegrationRecord) -> IntegrationRecord:
        self.upserts += 1
        key = (record.user_id, record.provider)
        existing = self.rows.get(key)
        saved = record.model_copy(update={
            "id": existing.id if existing else self._next_id,
            "created_at": existing.created_at if existing else FIXED_NOW,
            "updated_at": FIXED_NOW,
        })
        if not existing:
            self._next_id += 1
        self.rows[key] = saved
        return saved.model_copy()

    async def update_tokens(self, user_id, provider, access_token, refresh_token, token_expires_at):
        self.token_updates += 1
        row = self.rows.get((user_id, provider))
        if row is None:
            return None
        self.rows[(user_id, provider)] = row.model_copy(update={
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_expires_at": token_expires_at,
            "updated_at": FIXED_NOW,
        })
        return self.rows[(user_id, provider)].model_copy()

    async def deactivate(self, user_id: str, provider: str) -> bool:
        row = self.rows.get((user_id, provider))
        if row is None:
            return False
        self.rows[(user_id, provider)] = row.model_copy(update={"is_active": False})
        return True


class InMemoryItemStore:
    """ItemStore enforcing the (user_id, source, external_id) natural key."""

    def __init__(self):
        self.items: List[BriefItemRecord] = []
        self.create_calls = 0

    def _find(self, user_id: str, external_id: str, source: str) -> Optional[BriefItemRecord]:
        for item in self.items:
            if item.user_id == user_id and item.external_id == external_id and item.source == source:
                return item
        return None

    async def find_by_external_id(self, user_id: str, external_id: str, source: str) -> Optional[BriefItemRecord]:
        return self._find(user_id, external_id, source)

    async def create(self, item: BriefItemCreate) -> BriefItemRecord:
        self.create_calls += 1
        if item.external_id and self._find(item.user_id, item.external_id, item.source):
            raise DuplicateItemError(item.user_id, item.source, item.external_id)
        record = BriefItemRecord(id=str(uuid.uuid4()), created_at=FIXED_NOW, **item.model_dump())
        self.items.append(record)
        return record

    async def list_for_user(self, user_id: str, limit: int = 50) -> List[BriefItemRecord]:
        owned = [i for i in self.items if i.user_id == user_id]
        owned.sort(key=lambda i: URGENCY_ORDER[i.urgency.value])
        return owned[:limit]

    async def delete(self, user_id: str, item_id: str) -> bool:
        for item in self.items:
            if item.id == item_id and item.user_id == user_id:
                self.items.remove(item)
                return True
        return False


class FakeLock:
    def __init__(self, redis, name: str):
        self.redis = redis
        self.name = name

    async def __aenter__(self):
        self.redis.locks_taken.append(self.name)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeRedis:
    """Subset of redis.asyncio.Redis used by the brief services. TTLs are recorded, not enforced."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.locks_taken: List[str] = []

    async def setex(self, key: str, ttl: int, value: str):
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    async def getdel(self, key: str):
        return self.data.pop(key, None)

    def expire_all(self):
        self.data.clear()

    def lock(self, name: str, timeout=None, blocking_timeout=None):
        return FakeLock(self, name)


@pytest.fixture
def integration_store():
    return InMemoryIntegrationStore()


@pytest.fixture
def item_store():
    return InMemoryItemStore()


@pytest.fixture
def fake_redis():
    return FakeRedis()
