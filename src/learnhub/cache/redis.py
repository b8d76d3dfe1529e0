"""Redis (L2) cache tier for LearnHub.

Provides async Redis operations on serialized cache payloads.
Uses redis-py async client for connection pooling.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable
from datetime import timedelta
from typing import TYPE_CHECKING, cast

import redis.asyncio as redis

from learnhub.cache.keys import CachePattern
from learnhub.config import settings

if TYPE_CHECKING:
    from redis.asyncio import Redis

# Module-level connection pool
_redis_client: Redis | None = None


async def get_redis() -> Redis:
    """Get or create the Redis client.

    Uses connection pooling for efficient connection management.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(  # type: ignore[no-untyped-call]
            settings.redis_url,
            decode_responses=False,  # Payloads are bytes
        )
    return _redis_client


async def close_redis() -> None:
    """Close Redis connections."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


class RedisCache:
    """Byte-level operations on the distributed tier."""

    def __init__(self, client: Redis, scan_batch_size: int = 500):
        self.client = client
        self.scan_batch_size = scan_batch_size

    async def get_bytes(self, key: str) -> bytes | None:
        return cast(bytes | None, await self.client.get(key))

    async def set_bytes(self, key: str, data: bytes, ttl: timedelta) -> None:
        """Store ``data`` with a millisecond-precision expiry."""
        px = max(1, int(ttl.total_seconds() * 1000))
        await self.client.set(key, data, px=px)

    async def pttl(self, key: str) -> timedelta | None:
        """Remaining lifetime of ``key``; None when missing or persistent."""
        remaining = cast(int, await self.client.pttl(key))
        if remaining < 0:
            return None
        return timedelta(milliseconds=remaining)

    async def get_with_ttl(self, key: str) -> tuple[bytes | None, timedelta | None]:
        """Fetch payload and remaining lifetime in one round trip."""
        async with self.client.pipeline(transaction=False) as pipe:
            pipe.get(key)
            pipe.pttl(key)
            data, remaining = await pipe.execute()
        if data is None:
            return None, None
        ttl = timedelta(milliseconds=remaining) if remaining is not None and remaining > 0 else None
        return data, ttl

    async def exists(self, key: str) -> bool:
        return cast(int, await self.client.exists(key)) > 0

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return cast(int, await self.client.unlink(*keys))

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key selected by an invalidation pattern.

        Exact patterns are a single UNLINK. Prefix patterns walk the keyspace
        with cursor-based SCAN and unlink each bounded batch as it fills.
        """
        parsed = CachePattern.parse(pattern)
        if not parsed.is_prefix:
            return await self.delete(parsed.prefix)

        deleted = 0
        batch: list[str | bytes] = []
        async for key in self.client.scan_iter(
            match=parsed.redis_match(), count=self.scan_batch_size
        ):
            batch.append(key)
            if len(batch) >= self.scan_batch_size:
                deleted += cast(int, await self.client.unlink(*batch))
                batch = []
        if batch:
            deleted += cast(int, await self.client.unlink(*batch))
        return deleted

    async def ping(self) -> float:
        """Round-trip latency in milliseconds."""
        start = time.perf_counter()
        await cast(Awaitable[bool], self.client.ping())
        return (time.perf_counter() - start) * 1000

    async def health_check(self) -> bool:
        """Check Redis connectivity."""
        try:
            await self.ping()
            return True
        except Exception:
            return False
