"""Key/value cache used for market snapshots.

Redis in deployments, an in-process dict in tests and single-node setups.
Cache failures are logged and treated as misses; callers always recompute.
"""

import logging
import time
from collections.abc import Callable
from typing import Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError

from hospede.config import Settings

logger = logging.getLogger(__name__)


class CachePort(Protocol):
    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...


class RedisCache:
    """Cache backed by redis-py's asyncio client."""

    def __init__(self, url: str, key_prefix: str = "hospede:") -> None:
        self._url = url
        self._prefix = key_prefix
        self._client: Redis | None = None

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def connect(self) -> None:
        self._client = Redis.from_url(
            self._url,
            decode_responses=True,
            socket_timeout=2.0,
            socket_connect_timeout=2.0,
        )
        try:
            await self._client.ping()
            logger.info("Connected to Redis cache")
        except RedisError:
            logger.warning("Redis unreachable at startup, cache lookups will miss until it recovers")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get(self, key: str) -> str | None:
        if self._client is None:
            return None
        try:
            return await self._client.get(self._key(key))
        except RedisError as e:
            logger.warning("Redis get failed for %s: %s", key, e)
            return None

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        if self._client is None:
            return
        try:
            await self._client.set(self._key(key), value, ex=ttl_seconds)
        except RedisError as e:
            logger.warning("Redis set failed for %s: %s", key, e)

    async def delete(self, key: str) -> None:
        if self._client is None:
            return
        try:
            await self._client.delete(self._key(key))
        except RedisError as e:
            logger.warning("Redis delete failed for %s: %s", key, e)


class InMemoryCache:
    """Process-local cache with per-key expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float | None, str]] = {}

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        self._entries.clear()

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        self._entries[key] = (expires_at, value)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)


def build_cache(settings: Settings) -> CachePort:
    """Redis when REDIS_URL is set, otherwise the in-process cache."""
    if settings.redis_url:
        return RedisCache(settings.redis_url)
    logger.info("REDIS_URL not set, using in-memory cache")
    return InMemoryCache()
