"""Redis cache service for flight search responses."""

import json
import logging
from datetime import date
from typing import Any

import redis.asyncio as redis

from app.config import settings

logger = logging.getLogger(__name__)


class CacheService:
    """Redis-backed JSON cache. Any Redis failure is treated as a miss."""

    def __init__(self, url: str | None = None, enabled: bool | None = None):
        self._url = url or settings.redis_url
        self._enabled = settings.search_cache_enabled if enabled is None else enabled
        self._redis: redis.Redis | None = None

    async def _get_redis(self) -> redis.Redis | None:
        if not self._enabled:
            return None
        if self._redis is None:
            client = redis.from_url(
                self._url,
                encoding="utf-8",
                decode_responses=True,
            )
            try:
                await client.ping()
            except Exception as e:
                logger.warning(f"Redis unavailable, skipping cache: {e}")
                await client.aclose()
                return None
            self._redis = client
        return self._redis

    async def get(self, key: str) -> Any | None:
        """Get a value from cache. Returns None on miss or error."""
        try:
            r = await self._get_redis()
            if r is None:
                return None
            raw = await r.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Set a value in cache with TTL. Returns False on error."""
        try:
            r = await self._get_redis()
            if r is None:
                return False
            await r.set(key, json.dumps(value, default=str), ex=ttl or settings.search_cache_ttl)
            return True
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False

    # Typed helpers

    def search_key(
        self,
        origin: str,
        dest: str,
        departure_date: date,
        return_date: date | None,
        adults: int,
        cabin: str | None,
    ) -> str:
        ret = return_date.isoformat() if return_date else "ow"
        return f"flights:{origin}:{dest}:{departure_date.isoformat()}:{ret}:{adults}:{cabin or 'any'}"

    async def get_search(self, key: str) -> dict | None:
        return await self.get(key)

    async def set_search(self, key: str, data: dict):
        await self.set(key, data, settings.search_cache_ttl)

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None


cache_service = CacheService()
