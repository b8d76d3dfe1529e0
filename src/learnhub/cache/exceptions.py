"""Cache error hierarchy.

None of these escape the cache layer to a request caller: the two-tier
service and the pipeline behaviors catch them, log, and degrade.
"""

from __future__ import annotations


class CacheError(Exception):
    """Base class for cache subsystem errors."""


class CacheSerializationError(CacheError):
    """Payload could not be encoded or decoded."""


class LockTimeoutError(CacheError):
    """A stampede lock was not acquired within its timeout."""

    def __init__(self, key: str, timeout: float):
        super().__init__(f"Lock for {key!r} not acquired within {timeout:.2f}s")
        self.key = key
        self.timeout = timeout
