"""Stampede protection for cache population.

Two layers:

- SingleFlight: per-process, per-key in-flight registry. Concurrent callers
  for the same key share one asyncio task and its result or exception.
- RedisLock: optional cross-instance lock (SET NX PX with an owner token,
  compare-and-delete release) so only one instance repopulates a key.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import timedelta
from functools import partial
from types import TracebackType
from typing import TYPE_CHECKING, Any, TypeVar, cast

from learnhub.cache.exceptions import LockTimeoutError
from learnhub.cache.keys import CachePattern

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

T = TypeVar("T")

LOCK_KEY_PREFIX = "lock:"

# Delete the lock only if we still own it
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class SingleFlight:
    """Keyed in-flight registry: at most one running computation per key."""

    def __init__(self) -> None:
        self._inflight: dict[str, asyncio.Task[Any]] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._inflight

    def __len__(self) -> int:
        return len(self._inflight)

    async def do(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` once for all concurrent callers of ``key``.

        Callers await a shield around the shared task, so cancelling one
        caller never cancels the computation the others are waiting on.
        """
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._inflight[key] = task
            task.add_done_callback(partial(self._forget, key))
        return cast(T, await asyncio.shield(task))

    def _forget(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the exception retrieved when every waiter was cancelled
        if not task.cancelled():
            task.exception()

    def forget_matching(self, pattern: str) -> int:
        """Detach in-flight computations selected by a pattern.

        Running tasks keep running for their current waiters; new callers
        start a fresh computation.
        """
        parsed = CachePattern.parse(pattern)
        doomed = [key for key in self._inflight if parsed.matches(key)]
        for key in doomed:
            del self._inflight[key]
        return len(doomed)


class RedisLock:
    """Distributed mutex on a single cache key.

    Example:
        async with RedisLock(client, "courses:id:42", ttl, timeout):
            ...
    """

    def __init__(
        self,
        client: Redis,
        key: str,
        ttl: timedelta,
        timeout: timedelta,
        initial_delay: float = 0.01,
        max_delay: float = 0.25,
    ):
        self.client = client
        self.key = key
        self.lock_key = f"{LOCK_KEY_PREFIX}{key}"
        self.ttl = ttl
        self.timeout = timeout
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.token = uuid.uuid4().hex
        self.acquired = False

    async def try_acquire(self) -> bool:
        px = max(1, int(self.ttl.total_seconds() * 1000))
        result = await self.client.set(self.lock_key, self.token, nx=True, px=px)
        self.acquired = bool(result)
        return self.acquired

    async def acquire(self) -> bool:
        """Acquire with exponential back-off; False on timeout."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout.total_seconds()
        delay = self.initial_delay
        while True:
            if await self.try_acquire():
                return True
            remaining = deadline - loop.time()
            if remaining <= 0:
                return False
            await asyncio.sleep(min(delay, remaining))
            delay = min(delay * 2, self.max_delay)

    async def release(self) -> bool:
        if not self.acquired:
            return False
        self.acquired = False
        result = await cast(
            Awaitable[int],
            self.client.eval(_RELEASE_SCRIPT, 1, self.lock_key, self.token),
        )
        if not result:
            logger.warning("Lock %s expired before release", self.lock_key)
        return bool(result)

    async def __aenter__(self) -> "RedisLock":
        if not await self.acquire():
            raise LockTimeoutError(self.key, self.timeout.total_seconds())
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.release()
