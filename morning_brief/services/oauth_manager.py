"""
OAuth Manager for the Morning Brief.

Drives the authorization-code flow for every provider adapter. Uses Redis for
CSRF state (see OAuthStateStore) and the token manager to persist tokens.
"""

import secrets
import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from ..adapters.base import ProviderAdapter
from ..errors import AuthError
from ..models import IntegrationRecord
from .oauth_state import OAuthStateStore
from .token_manager import TokenLifecycleManager

logger = logging.getLogger(__name__)


class OAuthManager:
    """
    Manages OAuth2 flows for connected providers.

    Adapters supply the provider specifics (auth URL, code exchange); this class
    owns state issuance and verification.
    """

    def __init__(
        self,
        adapters: Mapping[str, ProviderAdapter],
        token_manager: TokenLifecycleManager,
        state_store: Optional[OAuthStateStore] = None,
    ):
        self.adapters = adapters
        self.token_manager = token_manager
        self.state_store = state_store or OAuthStateStore()

    def _adapter(self, provider: str) -> ProviderAdapter:
        adapter = self.adapters.get(provider)
        if adapter is None or not adapter.requires_integration:
            raise AuthError(f"Provider {provider} does not support user OAuth")
        return adapter

    async def start_authorization(self, user_id: str, provider: str) -> Tuple[str, str]:
        """
        Generate the provider authorization URL.

        Args:
            user_id: User starting the connection
            provider: Provider name

        Returns:
            Tuple of (authorization_url, state)
        """
        adapter = self._adapter(provider)
        state = secrets.token_urlsafe(32)

        await self.state_store.save(state, user_id, provider)

        url = adapter.get_auth_url(state)
        logger.info(f"Generated {provider} OAuth URL for user {user_id}")
        return url, state

    async def complete_authorization(
        self,
        provider: str,
        code: str,
        state: str,
        extra_config: Optional[Dict[str, Any]] = None,
    ) -> IntegrationRecord:
        """
        Handle the OAuth callback: verify state, exchange the code, save tokens.

        Raises:
            AuthError: Unknown or expired state, provider mismatch, or a provider error
        """
        adapter = self._adapter(provider)

        state_data = await self.state_store.consume(state)
        if not state_data:
            raise AuthError("Invalid or expired OAuth state")

        if state_data.get("provider") != provider:
            raise AuthError("State provider mismatch")

        user_id = state_data["user_id"]
        tokens = await adapter.exchange_code(code)

        config = dict(extra_config or {})
        default_base_url = getattr(adapter, "default_base_url", "")
        if default_base_url and "base_url" not in config:
            config["base_url"] = default_base_url

        integration = await self.token_manager.save_integration(user_id, provider, tokens, config)
        logger.info(f"{provider} OAuth completed for user {user_id}")
        return integration

    async def disconnect(self, user_id: str, provider: str) -> bool:
        """Deactivate an integration. Returns False when there was nothing to disconnect."""
        disconnected = await self.token_manager.integrations.deactivate(user_id, provider)
        if disconnected:
            logger.info(f"Disconnected {provider} for user {user_id}")
        return disconnected
