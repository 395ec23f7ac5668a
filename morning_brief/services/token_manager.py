"""
Token lifecycle for provider integrations.

Hands out valid access tokens, refreshing them shortly before expiry. Refresh for a
given (user, provider) is serialized so two concurrent generation runs never both
spend the same refresh token; providers that rotate refresh tokens would otherwise
invalidate one caller's credentials.
"""

import asyncio
import logging
import weakref
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional

from ..adapters.base import Clock, ProviderAdapter
from ..config import get_brief_settings
from ..errors import IntegrationNotFoundError
from ..models import IntegrationRecord, TokenResponse, utc_now
from ..stores.base import IntegrationStore

logger = logging.getLogger(__name__)

REFRESH_LOCK_TIMEOUT_SECONDS = 30


class TokenLifecycleManager:
    """
    Loads integrations and keeps their access tokens fresh.

    An in-process asyncio.Lock per (user_id, provider) serializes refreshes. When a
    Redis client is supplied, a Redis lock on the same key is also held so that
    several worker processes do not race each other.
    """

    def __init__(
        self,
        integrations: IntegrationStore,
        adapters: Mapping[str, ProviderAdapter],
        refresh_window_seconds: Optional[int] = None,
        clock: Clock = utc_now,
        redis_client=None,
    ):
        self.integrations = integrations
        self.adapters = adapters
        if refresh_window_seconds is None:
            refresh_window_seconds = get_brief_settings().token_refresh_window_seconds
        self.refresh_window = timedelta(seconds=refresh_window_seconds)
        self.clock = clock
        self.redis = redis_client
        # Entries disappear once no caller holds or waits on the lock
        self._locks = weakref.WeakValueDictionary()

    def _lock_for(self, user_id: str, provider: str) -> asyncio.Lock:
        key = (user_id, provider)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def needs_refresh(self, integration: IntegrationRecord) -> bool:
        """True when the token expires within the refresh window. No expiry means never."""
        if integration.token_expires_at is None:
            return False
        return integration.token_expires_at - self.clock() <= self.refresh_window

    async def _load_active(self, user_id: str, provider: str) -> IntegrationRecord:
        integration = await self.integrations.get(user_id, provider)
        if integration is None or not integration.is_active:
            raise IntegrationNotFoundError(user_id, provider)
        return integration

    async def get_valid_credentials(self, user_id: str, provider: str) -> IntegrationRecord:
        """
        Get the integration with an access token that is valid for at least the refresh window.

        Args:
            user_id: Owner of the integration
            provider: Provider name

        Returns:
            The integration, refreshed if it was close to expiry. When refresh fails,
            the stored integration is returned with its existing access token.

        Raises:
            IntegrationNotFoundError: No integration, or it is inactive
        """
        integration = await self._load_active(user_id, provider)
        if not self.needs_refresh(integration):
            return integration

        async with self._lock_for(user_id, provider):
            if self.redis is not None:
                lock = self.redis.lock(
                    f"brief_token_refresh:{user_id}:{provider}",
                    timeout=REFRESH_LOCK_TIMEOUT_SECONDS,
                    blocking_timeout=REFRESH_LOCK_TIMEOUT_SECONDS,
                )
                async with lock:
                    return await self._refresh_locked(user_id, provider)
            return await self._refresh_locked(user_id, provider)

    async def _refresh_locked(self, user_id: str, provider: str) -> IntegrationRecord:
        # Another caller may have refreshed while we waited for the lock
        integration = await self._load_active(user_id, provider)
        if not self.needs_refresh(integration):
            return integration

        adapter = self.adapters.get(provider)
        if adapter is None or not integration.refresh_token:
            logger.warning(f"Cannot refresh {provider} token for user {user_id}: no refresh path")
            return integration

        try:
            tokens = await adapter.refresh(integration.refresh_token)
        except Exception as e:
            logger.error(f"Failed to refresh {provider} token for user {user_id}: {e}")
            return integration

        try:
            refreshed = await self.integrations.update_tokens(
                user_id,
                provider,
                tokens.access_token,
                tokens.refresh_token,
                tokens.expires_at(self.clock()),
            )
        except Exception as e:
            logger.error(f"Failed to persist refreshed {provider} token for user {user_id}: {e}")
            return integration

        if refreshed is None:
            logger.warning(f"{provider} integration for user {user_id} was removed during refresh")
            return integration

        logger.info(f"Refreshed {provider} token for user {user_id}")
        return refreshed

    async def get_valid_token(self, user_id: str, provider: str) -> str:
        """Access token for (user_id, provider), refreshed if it was close to expiry."""
        integration = await self.get_valid_credentials(user_id, provider)
        return integration.access_token

    async def save_integration(
        self,
        user_id: str,
        provider: str,
        tokens: TokenResponse,
        extra_config: Optional[Dict[str, Any]] = None,
    ) -> IntegrationRecord:
        """Upsert tokens for (user_id, provider) and mark the integration active (OAuth callback)."""
        record = IntegrationRecord(
            user_id=user_id,
            provider=provider,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_expires_at=tokens.expires_at(self.clock()),
            config=extra_config or {},
            is_active=True,
        )
        return await self.integrations.upsert(record)
