"""
Key/value stores with expiring entries backing the response cache.

Both backends are best-effort: a backend failure is logged and reported
as a miss on read or a dropped write, never raised to the caller.
"""

import time
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as redis

from shared.logging import get_logger


class CacheStore:
    """Interface shared by cache backends."""

    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def set(self, key: str, value: str, ttl_seconds: int) -> bool:
        raise NotImplementedError

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class RedisCacheStore(CacheStore):
    """Redis backed store using SETEX for expiry."""

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self.logger = get_logger("catalog.cache")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        """Get value from cache."""
        try:
            redis_client = await self._get_redis()
            cached_data = await redis_client.get(key)
            if cached_data is None:
                return None
            return cached_data.decode('utf-8') if isinstance(cached_data, bytes) else cached_data

        except Exception as e:
            self.logger.error("Cache get error", key=key, error=str(e))
            return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Set value in cache with a TTL."""
        try:
            redis_client = await self._get_redis()
            await redis_client.setex(key, ttl_seconds, value)
            self.logger.debug("Cached value", key=key, ttl=ttl_seconds)
            return True

        except Exception as e:
            self.logger.error("Cache set error", key=key, error=str(e))
            return False

    async def ping(self) -> bool:
        try:
            redis_client = await self._get_redis()
            return bool(await redis_client.ping())
        except Exception as e:
            self.logger.warning("Cache ping failed", error=str(e))
            return False

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


class MemoryCacheStore(CacheStore):
    """Process-local store for local development and tests.

    Expired entries are dropped when read, and swept in bulk on write once
    the store holds more than ``MAX_KEYS`` entries.
    """

    MAX_KEYS = 10000

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}
        self.logger = get_logger("catalog.cache")

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> bool:
        now = self._clock()
        if len(self._entries) > self.MAX_KEYS:
            self._prune(now)
        self._entries[key] = (value, now + ttl_seconds)
        return True

    def _prune(self, now: float) -> None:
        expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)
