"""In-process (L1) cache tier.

A bounded cachetools ``TLRUCache`` where every entry carries its own
expiry, guarded by a re-entrant lock so request handlers and the
invalidation listener can touch it concurrently. Values are stored as
live Python objects, not bytes.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterator
from datetime import timedelta
from typing import Any, NamedTuple

from cachetools import TLRUCache

from learnhub.cache.keys import CachePattern


class _Entry(NamedTuple):
    value: Any
    ttl: float


def _time_to_use(key: str, entry: _Entry, now: float) -> float:
    return now + entry.ttl


class MemoryCache:
    """Thread-safe bounded L1 store with per-entry TTL."""

    def __init__(self, max_size: int = 10_000, timer=time.monotonic):
        self._cache: TLRUCache[str, _Entry] = TLRUCache(
            maxsize=max_size, ttu=_time_to_use, timer=timer
        )
        self._lock = threading.RLock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._cache.get(key)
        return default if entry is None else entry.value

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._cache

    def set(self, key: str, value: Any, ttl: timedelta) -> None:
        seconds = ttl.total_seconds()
        with self._lock:
            if seconds <= 0:
                self._cache.pop(key, None)
                return
            self._cache[key] = _Entry(value, seconds)

    def remove(self, key: str) -> bool:
        with self._lock:
            return self._cache.pop(key, None) is not None

    def remove_matching(self, pattern: str) -> int:
        """Remove every key selected by an invalidation pattern."""
        parsed = CachePattern.parse(pattern)
        if not parsed.is_prefix:
            return 1 if self.remove(parsed.prefix) else 0
        with self._lock:
            doomed = [key for key in list(self._cache.keys()) if parsed.matches(key)]
            for key in doomed:
                self._cache.pop(key, None)
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def keys(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._cache.keys()))

    def __len__(self) -> int:
        with self._lock:
            self._cache.expire()
            return len(self._cache)

    @property
    def max_size(self) -> int:
        return int(self._cache.maxsize)
