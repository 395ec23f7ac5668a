"""
OAuth state storage in Redis.

State values are one-time: reading a state deletes it.
"""

import json
import logging
from typing import Any, Dict, Optional

from ..config import get_brief_settings
from ..models import utc_now

logger = logging.getLogger(__name__)

STATE_KEY_PREFIX = "brief_oauth:state:"


class OAuthStateStore:
    """state -> {user_id, provider, created_at}, expiring after the configured TTL."""

    def __init__(self, redis_client=None, ttl_seconds: Optional[int] = None):
        self.redis = redis_client
        self.settings = get_brief_settings()
        self.ttl_seconds = ttl_seconds or self.settings.oauth_state_ttl_seconds

    async def _get_redis(self):
        """Get or create Redis client."""
        if self.redis is None:
            import redis.asyncio as aioredis
            self.redis = aioredis.from_url(self.settings.redis_url)
        return self.redis

    async def save(self, state: str, user_id: str, provider: str) -> None:
        redis = await self._get_redis()
        payload = {
            "user_id": user_id,
            "provider": provider,
            "created_at": utc_now().isoformat(),
        }
        await redis.setex(f"{STATE_KEY_PREFIX}{state}", self.ttl_seconds, json.dumps(payload))

    async def consume(self, state: str) -> Optional[Dict[str, Any]]:
        """Get OAuth state and delete it atomically. None when unknown or expired."""
        redis = await self._get_redis()
        data = await redis.getdel(f"{STATE_KEY_PREFIX}{state}")
        if not data:
            return None
        return json.loads(data)
