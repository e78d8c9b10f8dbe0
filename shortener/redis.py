"""Redis client management and the redirect cache.

The ``short_code -> original_url`` mapping never changes after creation, so it
is cached in Redis to keep the redirect hot path off the database. The cache
is strictly an accelerator: every Redis failure degrades to a miss (reads) or
a skipped write, and the database stays the source of truth.

Flow Diagram — Redirect Cache Lookup
====================================
::
    ┌─────────────┐
    │ get_url()    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Redis GET    │
    │ url:<code>   │
    └──────┬──────┘
    OK?   │
    ┌─────┴─────┐
    │ ERROR      │ OK
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Log +   │  │ Return  │
│ treat as│  │ value / │
│ miss    │  │ None    │
└─────────┘  └─────────┘

Key Behaviours
===============
- Redis client is created lazily on first access.
- Global client is reused across all requests.
- Connection is properly closed on application shutdown.
- UTF-8 encoding with decode_responses for string operations.

Functions:
    get_redis():  Shared Redis client factory.
    close_redis():  Cleanup function for shutdown.

Classes:
    RedirectCache:  Fault-tolerant wrapper used by the services.
"""

import logging

import redis.asyncio as redis

from shortener.config import get_settings

__all__ = ["RedirectCache", "close_redis", "get_redis"]

settings = get_settings()

redis_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    global redis_client
    if redis_client is None:
        redis_client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=settings.STORAGE_TIMEOUT_SECONDS,
            socket_timeout=settings.STORAGE_TIMEOUT_SECONDS,
        )
    return redis_client


async def close_redis() -> None:
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None


class RedirectCache:
    KEY_PREFIX = "url"

    def __init__(self, client: redis.Redis, ttl_seconds: int | None = None, logger: logging.Logger | None = None):
        self._client = client
        self._ttl = ttl_seconds or settings.CACHE_TTL_SECONDS
        self._logger = logger or logging.getLogger("urlshortener")

    @classmethod
    def key(cls, short_code: str) -> str:
        return f"{cls.KEY_PREFIX}:{short_code}"

    async def get_url(self, short_code: str) -> str | None:
        try:
            return await self._client.get(self.key(short_code))
        except redis.RedisError as exc:
            self._logger.warning(f"Redirect cache read failed for {short_code}: {exc}")
            return None

    async def set_url(self, short_code: str, original_url: str) -> None:
        try:
            await self._client.set(self.key(short_code), original_url, ex=self._ttl)
        except redis.RedisError as exc:
            self._logger.warning(f"Redirect cache write failed for {short_code}: {exc}")

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except redis.RedisError as exc:
            self._logger.error(f"Cache health check failed: {exc}")
            return False
