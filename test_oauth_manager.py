"""
Unit tests for the OAuth flow.

Tests:
- State issuance with TTL and one-time consumption
- Expired / unknown / mismatched state rejection
- Token persistence on callback, Jira base URL default
- Disconnect
"""

import asyncio
import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from conftest import fixed_clock
from morning_brief.adapters import JiraAdapter, OAuthCredentials, SlackAdapter, UnifiedSearchAdapter
from morning_brief.errors import AuthError
from morning_brief.models import IntegrationRecord
from morning_brief.services.oauth_manager import OAuthManager
from morning_brief.services.oauth_state import OAuthStateStore
from morning_brief.services.token_manager import TokenLifecycleManager

CREDENTIALS = OAuthCredentials("client-id", "client-secret", "https://brief.example.com/callback")


def token_transport(payload):
    return httpx.MockTransport(lambda request: httpx.Response(200, json=payload))


def build_manager(integration_store, fake_redis, adapters):
    registry = {a.provider: a for a in adapters}
    tokens = TokenLifecycleManager(integration_store, registry, refresh_window_seconds=300, clock=fixed_clock)
    return OAuthManager(registry, tokens, OAuthStateStore(fake_redis, ttl_seconds=300))


def slack_adapter():
    return SlackAdapter(
        CREDENTIALS,
        http_transport=token_transport({"ok": True, "access_token": "xoxp-1", "refresh_token": "r-1", "expires_in": 3600}),
    )


@pytest.mark.asyncio
async def test_start_authorization_stores_state_with_ttl(integration_store, fake_redis):
    manager = build_manager(integration_store, fake_redis, [slack_adapter()])

    url, state = await manager.start_authorization("user-1", "slack")

    assert parse_qs(urlparse(url).query)["state"] == [state]
    key = f"brief_oauth:state:{state}"
    assert fake_redis.ttls[key] == 300
    stored = json.loads(fake_redis.data[key])
    assert (stored["user_id"], stored["provider"]) == ("user-1", "slack")


@pytest.mark.asyncio
async def test_complete_authorization_saves_integration(integration_store, fake_redis):
    manager = build_manager(integration_store, fake_redis, [slack_adapter()])
    _, state = await manager.start_authorization("user-1", "slack")

    integration = await manager.complete_authorization("slack", "code-1", state)

    assert integration.user_id == "user-1"
    assert integration.access_token == "xoxp-1"
    assert integration.is_active is True
    assert (await integration_store.get("user-1", "slack")).refresh_token == "r-1"


@pytest.mark.asyncio
async def test_state_is_single_use(integration_store, fake_redis):
    manager = build_manager(integration_store, fake_redis, [slack_adapter()])
    _, state = await manager.start_authorization("user-1", "slack")
    await manager.complete_authorization("slack", "code-1", state)

    with pytest.raises(AuthError):
        await manager.complete_authorization("slack", "code-1", state)


@pytest.mark.asyncio
async def test_expired_state_is_rejected(integration_store, fake_redis):
    manager = build_manager(integration_store, fake_redis, [slack_adapter()])
    _, state = await manager.start_authorization("user-1", "slack")
    fake_redis.expire_all()

    with pytest.raises(AuthError):
        await manager.complete_authorization("slack", "code-1", state)
    assert await integration_store.get("user-1", "slack") is None


@pytest.mark.asyncio
async def test_provider_mismatch_is_rejected(integration_store, fake_redis):
    jira = JiraAdapter(CREDENTIALS, http_transport=token_transport({"access_token": "a"}))
    manager = build_manager(integration_store, fake_redis, [slack_adapter(), jira])
    _, state = await manager.start_authorization("user-1", "slack")

    with pytest.raises(AuthError):
        await manager.complete_authorization("jira", "code-1", state)


@pytest.mark.asyncio
async def test_provider_error_payload_raises_auth_error(integration_store, fake_redis):
    failing = SlackAdapter(CREDENTIALS, http_transport=token_transport({"ok": False, "error": "invalid_code"}))
    manager = build_manager(integration_store, fake_redis, [failing])
    _, state = await manager.start_authorization("user-1", "slack")

    with pytest.raises(AuthError):
        await manager.complete_authorization("slack", "bad-code", state)


@pytest.mark.asyncio
async def test_jira_integration_gets_default_base_url(integration_store, fake_redis):
    jira = JiraAdapter(
        CREDENTIALS,
        default_base_url="https://acme.atlassian.net",
        http_transport=token_transport({"access_token": "a", "refresh_token": "r", "expires_in": 3600}),
    )
    manager = build_manager(integration_store, fake_redis, [jira])
    _, state = await manager.start_authorization("user-1", "jira")

    integration = await manager.complete_authorization("jira", "code-1", state)

    assert integration.config == {"base_url": "https://acme.atlassian.net"}


@pytest.mark.asyncio
async def test_service_level_sources_have_no_user_oauth(integration_store, fake_redis):
    class Client:
        async def search(self, query, user_id, max_results=50):
            return []

    manager = build_manager(integration_store, fake_redis, [UnifiedSearchAdapter(Client())])

    with pytest.raises(AuthError):
        await manager.start_authorization("user-1", "search")


@pytest.mark.asyncio
async def test_disconnect(integration_store, fake_redis):
    manager = build_manager(integration_store, fake_redis, [slack_adapter()])
    _, state = await manager.start_authorization("user-1", "slack")
    await manager.complete_authorization("slack", "code-1", state)

    assert await manager.disconnect("user-1", "slack") is True
    assert (await integration_store.get("user-1", "slack")).is_active is False
    assert await manager.disconnect("user-1", "github") is False


@pytest.mark.asyncio
async def test_concurrent_callbacks_with_one_state_succeed_once(integration_store, fake_redis):
    manager = build_manager(integration_store, fake_redis, [slack_adapter()])
    _, state = await manager.start_authorization("user-1", "slack")

    results = await asyncio.gather(
        manager.complete_authorization("slack", "code-1", state),
        manager.complete_authorization("slack", "code-1", state),
        return_exceptions=True,
    )

    assert sum(isinstance(r, AuthError) for r in results) == 1
    assert sum(isinstance(r, IntegrationRecord) for r in results) == 1
