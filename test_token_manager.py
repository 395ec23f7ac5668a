"""
Unit tests for the token lifecycle manager.

Tests:
- Refresh inside the 5-minute window, none outside it or without expiry
- Concurrent callers share one refresh
- Refresh failure falls back to the stored token
- Missing / inactive integrations
"""

import asyncio
from datetime import timedelta

import pytest

from conftest import FIXED_NOW, fixed_clock
from morning_brief.errors import IntegrationNotFoundError, TokenRefreshError
from morning_brief.models import IntegrationRecord, TokenResponse
from morning_brief.services.token_manager import TokenLifecycleManager


class RecordingAdapter:
    provider = "slack"
    requires_integration = True

    def __init__(self, fail: bool = False, delay: float = 0):
        self.fail = fail
        self.delay = delay
        self.refresh_calls = []

    async def refresh(self, refresh_token: str) -> TokenResponse:
        self.refresh_calls.append(refresh_token)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise TokenRefreshError("invalid_grant")
        return TokenResponse(access_token="new-access", refresh_token="new-refresh", expires_in=3600)


async def seed(store, expires_in=None, is_active=True):
    await store.upsert(IntegrationRecord(
        user_id="user-1",
        provider="slack",
        access_token="old-access",
        refresh_token="old-refresh",
        token_expires_at=FIXED_NOW + expires_in if expires_in is not None else None,
        config={"team": "T1"},
        is_active=is_active,
    ))


def manager(store, adapter, redis_client=None):
    return TokenLifecycleManager(
        store, {"slack": adapter}, refresh_window_seconds=300, clock=fixed_clock, redis_client=redis_client
    )


@pytest.mark.asyncio
async def test_expiring_in_four_minutes_refreshes_once(integration_store):
    """A token 4 minutes from expiry is inside the window"""
    await seed(integration_store, expires_in=timedelta(minutes=4))
    adapter = RecordingAdapter()

    token = await manager(integration_store, adapter).get_valid_token("user-1", "slack")

    assert token == "new-access"
    assert adapter.refresh_calls == ["old-refresh"]

    stored = await integration_store.get("user-1", "slack")
    assert stored.refresh_token == "new-refresh"
    assert stored.token_expires_at == FIXED_NOW + timedelta(seconds=3600)
    assert stored.config == {"team": "T1"}, "Refresh must keep integration config"


@pytest.mark.asyncio
async def test_no_expiry_never_refreshes(integration_store):
    await seed(integration_store, expires_in=None)
    adapter = RecordingAdapter()

    token = await manager(integration_store, adapter).get_valid_token("user-1", "slack")

    assert token == "old-access"
    assert adapter.refresh_calls == []


@pytest.mark.asyncio
async def test_outside_window_does_not_refresh(integration_store):
    await seed(integration_store, expires_in=timedelta(minutes=30))
    adapter = RecordingAdapter()

    assert await manager(integration_store, adapter).get_valid_token("user-1", "slack") == "old-access"
    assert adapter.refresh_calls == []


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_refresh(integration_store):
    """Two generation runs must not both spend the same refresh token"""
    await seed(integration_store, expires_in=timedelta(minutes=1))
    adapter = RecordingAdapter(delay=0.05)
    tokens = manager(integration_store, adapter)

    results = await asyncio.gather(*[tokens.get_valid_token("user-1", "slack") for _ in range(5)])

    assert results == ["new-access"] * 5
    assert len(adapter.refresh_calls) == 1
    assert integration_store.upserts == 1
    assert integration_store.token_updates == 1


@pytest.mark.asyncio
async def test_refresh_failure_returns_stale_token(integration_store):
    await seed(integration_store, expires_in=timedelta(minutes=2))
    adapter = RecordingAdapter(fail=True)

    token = await manager(integration_store, adapter).get_valid_token("user-1", "slack")

    assert token == "old-access"
    assert len(adapter.refresh_calls) == 1
    assert (await integration_store.get("user-1", "slack")).access_token == "old-access"


@pytest.mark.asyncio
async def test_redis_lock_taken_during_refresh(integration_store, fake_redis):
    await seed(integration_store, expires_in=timedelta(minutes=4))

    await manager(integration_store, RecordingAdapter(), fake_redis).get_valid_token("user-1", "slack")

    assert fake_redis.locks_taken == ["brief_token_refresh:user-1:slack"]


@pytest.mark.asyncio
async def test_missing_integration_raises(integration_store):
    with pytest.raises(IntegrationNotFoundError):
        await manager(integration_store, RecordingAdapter()).get_valid_token("user-1", "slack")


@pytest.mark.asyncio
async def test_inactive_integration_raises(integration_store):
    await seed(integration_store, is_active=False)

    with pytest.raises(IntegrationNotFoundError):
        await manager(integration_store, RecordingAdapter()).get_valid_token("user-1", "slack")


@pytest.mark.asyncio
async def test_save_integration_reactivates(integration_store):
    await seed(integration_store, is_active=False)
    tokens = TokenResponse(access_token="fresh", expires_in=60)

    saved = await manager(integration_store, RecordingAdapter()).save_integration(
        "user-1", "slack", tokens, {"team": "T2"}
    )

    assert saved.is_active is True
    assert saved.access_token == "fresh"
    assert saved.token_expires_at == FIXED_NOW + timedelta(seconds=60)
    assert saved.config == {"team": "T2"}


class DisconnectingAdapter(RecordingAdapter):
    """Refresh during which the user disconnects the integration."""

    def __init__(self, store):
        super().__init__()
        self.store = store

    async def refresh(self, refresh_token: str) -> TokenResponse:
        await self.store.deactivate("user-1", "slack")
        return await super().refresh(refresh_token)


@pytest.mark.asyncio
async def test_refresh_does_not_reactivate_disconnected_integration(integration_store):
    await seed(integration_store, expires_in=timedelta(minutes=1))
    adapter = DisconnectingAdapter(integration_store)

    token = await manager(integration_store, adapter).get_valid_token("user-1", "slack")

    stored = await integration_store.get("user-1", "slack")
    assert token == "new-access"
    assert stored.is_active is False, "Refresh must not undo a disconnect"
    assert stored.access_token == "new-access"
    assert integration_store.upserts == 1


@pytest.mark.asyncio
async def test_refresh_locks_are_released(integration_store):
    await seed(integration_store, expires_in=timedelta(minutes=1))
    tokens = manager(integration_store, RecordingAdapter())

    await tokens.get_valid_token("user-1", "slack")

    assert len(tokens._locks) == 0
