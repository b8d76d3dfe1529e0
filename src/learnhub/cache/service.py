"""Two-tier read-through cache.

Lookup order is L1 (in-process) then L2 (Redis). L2 is the source of
truth; an L2 hit backfills L1 for a fraction of the remaining L2 lifetime
so the local copy always expires first.

Failure semantics:
- Redis errors degrade to L1-only operation (logged, counted, never raised)
- undecodable payloads are treated as misses and overwritten on next store
- factory exceptions propagate to the caller and are never cached

Example:
    cache = TwoTierCache(RedisCache(await get_redis()))
    course = await cache.get_or_set(
        CourseCacheKeys.by_id(course_id),
        lambda: repo.get_by_id(course_id),
        response_type=CourseDto,
    )
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from redis.exceptions import RedisError

from learnhub.cache.exceptions import CacheSerializationError
from learnhub.cache.keys import CachePattern
from learnhub.cache.locks import RedisLock, SingleFlight
from learnhub.cache.memory import MemoryCache
from learnhub.cache.serializers import CacheSerializer, get_serializer
from learnhub.cache.ttl import CacheTtlPolicy, derive_l1_ttl
from learnhub.config import Settings, settings
from learnhub.observability.logging import current_correlation_id
from learnhub.observability.metrics import CacheMetrics, get_metrics

if TYPE_CHECKING:
    from learnhub.cache.redis import RedisCache

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors that put the distributed tier in degraded mode
REDIS_ERRORS: tuple[type[BaseException], ...] = (RedisError, OSError)

_MISSING = object()


class InvalidationPublisher(Protocol):
    async def publish(self, pattern: str, correlation_id: str | None = None) -> int: ...


def cache_non_null(value: Any) -> bool:
    """Default should-cache predicate: store anything but None."""
    return value is not None


class InvalidationLog:
    """Sequence-numbered record of recent local invalidations.

    A population notes the current sequence before it reads L2 or runs its
    factory, and skips storing only when a later invalidation selects its
    key. Invalidations of unrelated keys never block a store.
    """

    def __init__(self, max_entries: int = 1024):
        self._entries: deque[tuple[int, CachePattern]] = deque(maxlen=max_entries)
        self._sequence = 0

    @property
    def sequence(self) -> int:
        return self._sequence

    def record(self, pattern: str) -> int:
        self._sequence += 1
        self._entries.append((self._sequence, CachePattern.parse(pattern)))
        return self._sequence

    def invalidated_since(self, key: str, mark: int) -> bool:
        """True if an invalidation recorded after ``mark`` selects ``key``."""
        if mark >= self._sequence:
            return False
        if not self._entries or self._entries[0][0] > mark + 1:
            # Entries newer than mark were evicted; assume one matched
            return True
        for sequence, pattern in reversed(self._entries):
            if sequence <= mark:
                break
            if pattern.matches(key):
                return True
        return False


class TwoTierCache:
    """L1 + L2 cache with single-flight population and pattern invalidation."""

    def __init__(
        self,
        redis: RedisCache | None,
        memory: MemoryCache | None = None,
        serializer: CacheSerializer | None = None,
        ttl_policy: CacheTtlPolicy | None = None,
        config: Settings | None = None,
        metrics: CacheMetrics | None = None,
        publisher: InvalidationPublisher | None = None,
    ):
        self.config = config or settings
        self.redis = redis
        self.memory = memory or MemoryCache(max_size=self.config.cache_l1_max_size)
        self.serializer = serializer or get_serializer(self.config.cache_serializer_mode)
        self.ttl_policy = ttl_policy or CacheTtlPolicy.from_settings(self.config)
        self.metrics = metrics or get_metrics()
        self.publisher = publisher
        self._flight = SingleFlight()
        self._invalidations = InvalidationLog()

    @property
    def invalidations(self) -> InvalidationLog:
        return self._invalidations

    @property
    def inflight(self) -> SingleFlight:
        return self._flight

    def attach_publisher(self, publisher: InvalidationPublisher | None) -> None:
        self.publisher = publisher

    # -------------------------------------------------------------------------
    # TTLs
    # -------------------------------------------------------------------------

    def l1_duration(self, l2_ttl: timedelta) -> timedelta:
        """L1 lifetime derived from an L2 lifetime (ratio, capped)."""
        return derive_l1_ttl(l2_ttl, self.config)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, key: str, response_type: Any | None = None) -> Any | None:
        """Cached value for ``key`` or None."""
        found, value = await self._lookup(key, response_type)
        return value if found else None

    async def exists(self, key: str) -> bool:
        if self.memory.contains(key):
            return True
        if self.redis is None:
            return False
        try:
            return await self.redis.exists(key)
        except REDIS_ERRORS as e:
            self._degraded("exists", key, e)
            return False

    async def _lookup(self, key: str, response_type: Any | None) -> tuple[bool, Any]:
        value = self.memory.get(key, _MISSING)
        if value is not _MISSING:
            self.metrics.record_l1_hit(key)
            logger.debug("L1 hit: %s", key)
            return True, value
        self.metrics.record_l1_miss(key)

        if self.redis is None:
            return False, None

        mark = self._invalidations.sequence
        try:
            with self._timed("get"):
                data, remaining = await self.redis.get_with_ttl(key)
        except REDIS_ERRORS as e:
            self._degraded("get", key, e)
            return False, None

        if data is None:
            self.metrics.record_l2_miss(key)
            logger.debug("L2 miss: %s", key)
            return False, None

        try:
            value = self.serializer.deserialize(data, response_type)
        except CacheSerializationError as e:
            self.metrics.record_error("deserialize")
            logger.warning("Discarding undecodable cache entry %s: %s", key, e)
            return False, None

        if value is None:
            self.metrics.record_l2_miss(key)
            return False, None

        self.metrics.record_l2_hit(key)
        logger.debug("L2 hit: %s", key)
        if self._invalidations.invalidated_since(key, mark):
            logger.debug("Not backfilling %s: invalidated during L2 read", key)
            return True, value
        l2_remaining = remaining or self.ttl_policy.resolve(key)
        self.memory.set(key, value, self.l1_duration(l2_remaining))
        return True, value

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def set(
        self,
        key: str,
        value: Any,
        l2_ttl: timedelta | None = None,
        l1_ttl: timedelta | None = None,
    ) -> None:
        """Store ``value`` in both tiers.

        ``l2_ttl`` defaults to the TTL policy for ``key``; ``l1_ttl``
        defaults to the derived L1 lifetime and is never longer than L2.
        """
        l2 = l2_ttl
        if l2 is None or l2 <= timedelta(0):
            l2 = self.ttl_policy.resolve(key)
        l1 = min(l1_ttl, l2) if l1_ttl is not None else self.l1_duration(l2)
        self.memory.set(key, value, l1)

        if self.redis is None:
            return
        try:
            data = self.serializer.serialize(value)
        except CacheSerializationError as e:
            self.metrics.record_error("serialize")
            logger.warning("Not storing %s in L2: %s", key, e)
            return
        try:
            with self._timed("set"):
                await self.redis.set_bytes(key, data, l2)
        except REDIS_ERRORS as e:
            self._degraded("set", key, e)

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        *,
        response_type: Any | None = None,
        l2_ttl: timedelta | None = None,
        l1_ttl: timedelta | None = None,
        should_cache: Callable[[Any], bool] = cache_non_null,
    ) -> T:
        """Read-through lookup.

        At most one ``factory`` call runs per key in this process at a time;
        concurrent callers share its result or its exception.
        """
        found, value = await self._lookup(key, response_type)
        if found:
            return value  # type: ignore[no-any-return]

        async def populate() -> T:
            return await self._populate(
                key, factory, response_type, l2_ttl, l1_ttl, should_cache
            )

        return await self._flight.do(key, populate)

    async def refresh(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        *,
        l2_ttl: timedelta | None = None,
        l1_ttl: timedelta | None = None,
        should_cache: Callable[[Any], bool] = cache_non_null,
    ) -> T:
        """Bypass lookup: run ``factory`` and write the result through."""
        mark = self._invalidations.sequence
        value = await factory()
        await self._store(key, value, mark, l2_ttl, l1_ttl, should_cache)
        return value

    async def _populate(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        response_type: Any | None,
        l2_ttl: timedelta | None,
        l1_ttl: timedelta | None,
        should_cache: Callable[[Any], bool],
    ) -> T:
        mark = self._invalidations.sequence

        if not (self.config.cache_distributed_locking and self.redis is not None):
            value = await factory()
            await self._store(key, value, mark, l2_ttl, l1_ttl, should_cache)
            return value

        lock = RedisLock(
            self.redis.client,
            key,
            ttl=self.config.cache_distributed_lock_ttl,
            timeout=self.config.cache_lock_timeout,
        )
        try:
            acquired = await lock.acquire()
        except REDIS_ERRORS as e:
            self._degraded("lock", key, e)
            value = await factory()
            await self._store(key, value, mark, l2_ttl, l1_ttl, should_cache)
            return value

        if not acquired:
            self.metrics.record_lock_timeout(key)
            logger.warning("Lock timeout for %s; computing without caching", key)
            return await factory()

        self.metrics.record_lock_acquired(key)
        try:
            # Another instance may have populated while we waited
            found, cached = await self._lookup(key, response_type)
            if found:
                return cached  # type: ignore[no-any-return]
            value = await factory()
            await self._store(key, value, mark, l2_ttl, l1_ttl, should_cache)
            return value
        finally:
            try:
                await lock.release()
            except REDIS_ERRORS as e:
                self._degraded("unlock", key, e)

    async def _store(
        self,
        key: str,
        value: Any,
        mark: int,
        l2_ttl: timedelta | None,
        l1_ttl: timedelta | None,
        should_cache: Callable[[Any], bool],
    ) -> None:
        if not should_cache(value):
            logger.debug("Not caching %s: rejected by predicate", key)
            return
        if self._invalidations.invalidated_since(key, mark):
            logger.debug("Not caching %s: invalidated during population", key)
            return
        await self.set(key, value, l2_ttl=l2_ttl, l1_ttl=l1_ttl)

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    async def remove(self, key: str) -> None:
        """Remove a single key from both tiers (no broadcast)."""
        self._purge_l1(key)
        if self.redis is None:
            return
        try:
            await self.redis.delete(key)
        except REDIS_ERRORS as e:
            self._degraded("remove", key, e)
        # A read during the delete may have backfilled the old value
        self._purge_l1(key)

    async def remove_by_pattern(
        self,
        pattern: str,
        broadcast: bool = True,
        correlation_id: str | None = None,
    ) -> int:
        """Invalidate ``pattern`` locally in both tiers, then tell peers.

        Local removal completes before this returns, so the caller never
        reads a pre-invalidation value afterwards. Returns the number of L2
        keys removed (L1 count when Redis is unavailable).
        """
        removed_l1 = self.invalidate_local_l1(pattern, origin="local")
        removed = removed_l1

        if self.redis is not None:
            try:
                with self._timed("invalidate"):
                    removed = await self.redis.delete_pattern(pattern)
            except REDIS_ERRORS as e:
                self._degraded("invalidate", pattern, e)
            # A read during the delete may have backfilled an old value
            removed_l1 += self._purge_l1(pattern)

        logger.info("Invalidated %s (l1=%d, l2=%d)", pattern, removed_l1, removed)

        if broadcast and self.publisher is not None:
            try:
                await self.publisher.publish(
                    pattern, correlation_id=correlation_id or current_correlation_id()
                )
            except Exception as e:
                self.metrics.record_error("broadcast")
                logger.warning("Failed to broadcast invalidation of %s: %s", pattern, e)
        return removed

    def invalidate_local_l1(self, pattern: str, origin: str = "remote") -> int:
        """Purge this instance's L1 (and in-flight populations) for ``pattern``."""
        removed = self._purge_l1(pattern)
        self.metrics.record_invalidation(pattern, origin)
        return removed

    def _purge_l1(self, pattern: str) -> int:
        self._invalidations.record(pattern)
        self._flight.forget_matching(pattern)
        return self.memory.remove_matching(pattern)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def stats(self) -> dict[str, Any]:
        return {
            "instance_id": self.config.instance_id,
            "l1_entries": len(self.memory),
            "l1_max_size": self.memory.max_size,
            "inflight": len(self._flight),
            "l2_enabled": self.redis is not None,
            "serializer": self.serializer.name,
            "distributed_locking": self.config.cache_distributed_locking,
        }

    def _degraded(self, operation: str, key: str, error: BaseException) -> None:
        self.metrics.record_error(operation)
        logger.warning("Redis %s failed for %s, serving from L1 only: %s", operation, key, error)

    @contextmanager
    def _timed(self, operation: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            self.metrics.operation_duration.labels(operation=operation).observe(
                time.perf_counter() - start
            )


# Process-wide cache used by the app and the CLI
_cache: TwoTierCache | None = None


async def get_cache() -> TwoTierCache:
    """Get or create the shared two-tier cache."""
    global _cache
    if _cache is None:
        from learnhub.cache.redis import RedisCache, get_redis

        client = await get_redis()
        _cache = TwoTierCache(RedisCache(client, scan_batch_size=settings.cache_scan_batch_size))
    return _cache


def reset_cache() -> None:
    global _cache
    _cache = None
