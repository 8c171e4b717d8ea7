"""Cache tier — Redis key/value store with per-key TTL.

Learn: The cache is optional. When Redis is unreachable at startup the app
runs store-only: get_cache() returns None and services skip every cache step.
Services only need three calls, captured by the Cache protocol, so tests can
swap in an in-process fake.

Key layout:
  {token}                     → session snapshot JSON (TTL = time to expiry)
  active-sessions-{user_id}   → registry JSON (TTL = furthest expiry)
  warden:rl:{ip}:{bucket}:{m} → rate-limit counters (middleware)
"""

from typing import Optional, Protocol

import redis.asyncio as aioredis

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


class Cache(Protocol):
    """Minimal string cache used by the session service."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class RedisCache:
    """Cache protocol over a redis.asyncio client (decode_responses=True)."""

    def __init__(self, client: aioredis.Redis):
        self.client = client

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self.client.set(key, value, ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        await self.client.delete(key)


async def init_redis(url: str) -> aioredis.Redis:
    """Initialize the Redis connection pool."""
    global _redis
    client = aioredis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
    )
    # Verify connection before publishing it; a dead client must not
    # make get_cache() believe the cache tier exists.
    try:
        await client.ping()
    except Exception:
        await client.aclose()
        raise
    _redis = client
    return _redis


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


def get_cache() -> Optional[Cache]:
    """FastAPI dependency — the cache tier, or None in store-only mode."""
    if _redis is None:
        return None
    return RedisCache(_redis)
