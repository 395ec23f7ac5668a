"""
Integration tests for the SQLAlchemy stores against in-memory SQLite (aiosqlite).
"""

import asyncio
from datetime import timedelta

import pytest
from cryptography.fernet import Fernet
from sqlalchemy import select
from sqlalchemy.pool import StaticPool

from conftest import FIXED_NOW
from database.database import create_engine, create_session_factory, init_db
from database.models import Integration
from morning_brief.config import get_brief_settings
from morning_brief.errors import DuplicateItemError
from morning_brief.models import BriefItemCreate, IntegrationRecord, ItemType, Urgency
from morning_brief.stores import SqlIntegrationStore, SqlItemStore, TokenCipher


async def sqlite_engine():
    engine = create_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await init_db(engine)
    return engine


def record(**overrides) -> IntegrationRecord:
    values = dict(
        user_id="user-1",
        provider="slack",
        access_token="xoxp-1",
        refresh_token="r-1",
        token_expires_at=FIXED_NOW + timedelta(hours=1),
        config={"team": "T1"},
    )
    values.update(overrides)
    return IntegrationRecord(**values)


def item(external_id="ext-1", source="jira", urgency=Urgency.FYI, user_id="user-1") -> BriefItemCreate:
    return BriefItemCreate(
        user_id=user_id,
        source=source,
        urgency=urgency,
        text=f"{source} {external_id}",
        metadata={"k": "v"},
        external_id=external_id,
        processed_at=FIXED_NOW,
    )


# =============================================================================
# Integrations
# =============================================================================

@pytest.mark.asyncio
async def test_integration_upsert_inserts_then_updates():
    engine = await sqlite_engine()
    store = SqlIntegrationStore(engine)

    first = await store.upsert(record())
    await store.deactivate("user-1", "slack")
    second = await store.upsert(record(access_token="xoxp-2", refresh_token="r-2", config={"team": "T2"}))

    assert second.id == first.id, "Upsert must update the existing (user_id, provider) row"
    assert second.access_token == "xoxp-2"
    assert second.refresh_token == "r-2"
    assert second.config == {"team": "T2"}
    assert second.is_active is True
    assert second.token_expires_at == FIXED_NOW + timedelta(hours=1)
    assert second.token_expires_at.tzinfo is not None
    assert len(await store.list_for_user("user-1")) == 1

    await engine.dispose()


@pytest.mark.asyncio
async def test_deactivate_keeps_tokens_and_hides_user():
    engine = await sqlite_engine()
    store = SqlIntegrationStore(engine)
    await store.upsert(record())
    await store.upsert(record(user_id="user-2", provider="github"))

    assert await store.deactivate("user-1", "slack") is True
    assert await store.deactivate("user-1", "jira") is False

    stored = await store.get("user-1", "slack")
    assert stored.is_active is False
    assert stored.access_token == "xoxp-1"
    assert await store.list_active_user_ids() == ["user-2"]

    await engine.dispose()


@pytest.mark.asyncio
async def test_tokens_are_encrypted_at_rest():
    engine = await sqlite_engine()
    store = SqlIntegrationStore(engine, cipher=TokenCipher(Fernet.generate_key().decode()))
    await store.upsert(record())

    async with create_session_factory(engine)() as db:
        row = (await db.execute(select(Integration))).scalar_one()
    assert row.access_token != "xoxp-1"
    assert row.refresh_token != "r-1"

    stored = await store.get("user-1", "slack")
    assert (stored.access_token, stored.refresh_token) == ("xoxp-1", "r-1")

    await engine.dispose()


# =============================================================================
# Brief items
# =============================================================================

@pytest.mark.asyncio
async def test_item_natural_key_is_scoped_by_source():
    engine = await sqlite_engine()
    store = SqlItemStore(engine)

    created = await store.create(item("42", source="jira"))
    await store.create(item("42", source="github"))

    with pytest.raises(DuplicateItemError):
        await store.create(item("42", source="jira"))

    found = await store.find_by_external_id("user-1", "42", "jira")
    assert found.id == created.id
    assert found.metadata == {"k": "v"}
    assert found.type == ItemType.ITEM
    assert await store.find_by_external_id("user-1", "42", "slack") is None
    assert await store.find_by_external_id("user-2", "42", "jira") is None

    await engine.dispose()


@pytest.mark.asyncio
async def test_items_without_external_id_never_collide():
    engine = await sqlite_engine()
    store = SqlItemStore(engine)

    await store.create(item(None))
    await store.create(item(None))

    assert len(await store.list_for_user("user-1")) == 2

    await engine.dispose()


@pytest.mark.asyncio
async def test_list_orders_by_urgency_then_newest():
    engine = await sqlite_engine()
    store = SqlItemStore(engine)

    older_fyi = await store.create(item("a", urgency=Urgency.FYI))
    await asyncio.sleep(0.01)
    urgent = await store.create(item("b", urgency=Urgency.URGENT))
    await asyncio.sleep(0.01)
    org = await store.create(item("c", urgency=Urgency.ORG))
    await asyncio.sleep(0.01)
    newer_fyi = await store.create(item("d", urgency=Urgency.FYI))
    await store.create(item("e", user_id="user-2", urgency=Urgency.URGENT))

    listed = await store.list_for_user("user-1")
    assert [i.id for i in listed] == [urgent.id, org.id, newer_fyi.id, older_fyi.id]
    assert [i.id for i in await store.list_for_user("user-1", limit=2)] == [urgent.id, org.id]

    await engine.dispose()


@pytest.mark.asyncio
async def test_delete_is_scoped_to_owner():
    engine = await sqlite_engine()
    store = SqlItemStore(engine)
    created = await store.create(item("x"))

    assert await store.delete("user-2", created.id) is False
    assert await store.delete("user-1", created.id) is True
    assert await store.list_for_user("user-1") == []

    await engine.dispose()


@pytest.mark.asyncio
async def test_update_tokens_leaves_is_active_and_config_alone():
    engine = await sqlite_engine()
    store = SqlIntegrationStore(engine)
    await store.upsert(record())
    await store.deactivate("user-1", "slack")

    updated = await store.update_tokens(
        "user-1", "slack", "xoxp-2", "r-2", FIXED_NOW + timedelta(hours=2)
    )

    assert updated.is_active is False
    assert updated.config == {"team": "T1"}
    assert (updated.access_token, updated.refresh_token) == ("xoxp-2", "r-2")
    assert updated.token_expires_at == FIXED_NOW + timedelta(hours=2)
    assert await store.update_tokens("user-9", "slack", "x", None, None) is None

    await engine.dispose()


@pytest.fixture
def encryption_key_env(monkeypatch):
    key = Fernet.generate_key().decode()
    monkeypatch.setenv("TOKEN_ENCRYPTION_KEY", key)
    get_brief_settings.cache_clear()
    yield key
    get_brief_settings.cache_clear()


@pytest.mark.asyncio
async def test_encryption_key_is_read_from_settings(encryption_key_env):
    engine = await sqlite_engine()
    store = SqlIntegrationStore(engine)
    await store.upsert(record(access_token="secret-token"))

    async with create_session_factory(engine)() as db:
        row = (await db.execute(select(Integration))).scalar_one()
    assert row.access_token != "secret-token"
    assert Fernet(encryption_key_env.encode()).decrypt(row.access_token.encode()) == b"secret-token"
    assert (await store.get("user-1", "slack")).access_token == "secret-token"

    await engine.dispose()
