"""Health monitoring.

Provides detailed health checks for the application dependencies:
Redis and the Supabase profile store.
"""

from __future__ import annotations

from typing import Any, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from app.exceptions import ExternalServiceError
from app.logging_config import get_logger
from services.profile_store import ProfileStore

logger = get_logger(__name__)


class HealthMonitor:
    """Monitors health of all application components."""

    def __init__(self, redis: aioredis.Redis, store: Optional[ProfileStore] = None) -> None:
        self.redis = redis
        self.store = store

    async def check_all(self) -> dict[str, Any]:
        """Run all health checks and return status."""
        redis_ok = await self._check_redis()
        store_status = await self._check_profile_store()

        all_healthy = redis_ok and store_status != "error"

        return {
            "status": "healthy" if all_healthy else "degraded",
            "checks": {
                "redis": {"status": "ok" if redis_ok else "error"},
                "profile_store": {"status": store_status},
            },
        }

    async def _check_redis(self) -> bool:
        """Check Redis connectivity."""
        try:
            await self.redis.ping()
            return True
        except (RedisError, OSError):
            logger.error("health_check_redis_failed")
            return False

    async def _check_profile_store(self) -> str:
        """Check Supabase reachability with a one-row profile read."""
        if self.store is None:
            return "not_configured"
        try:
            await self.store.get_profile("00000000-0000-0000-0000-000000000000")
            return "ok"
        except ExternalServiceError:
            logger.error("health_check_profile_store_failed")
            return "error"
