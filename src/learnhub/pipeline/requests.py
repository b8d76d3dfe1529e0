"""Cache capabilities that requests opt into.

Handlers never touch the cache. A query becomes cacheable by subclassing
``CacheableQuery``; a command triggers invalidation by subclassing
``InvalidatingCommand`` (static patterns) or
``ResolvableInvalidatingCommand`` (patterns that depend on stored state).
The pipeline behaviors check these with ``isinstance``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from learnhub.persistence.repositories import ReadRepositories


class CacheableQuery(ABC):
    """A read whose response is served through the two-tier cache.

    Subclasses are usually dataclasses; they may redeclare ``bypass_cache``
    or ``l2_duration`` as fields to make them per-request.
    """

    # Zero means "resolve from the TTL policy"
    l2_duration: timedelta = timedelta(0)
    bypass_cache: bool = False
    # Type used to rebuild values read back from Redis (None keeps raw data)
    response_type: ClassVar[Any] = None

    @property
    @abstractmethod
    def cache_key(self) -> str:
        """Deterministic key for this query's parameters."""

    def should_cache(self, response: Any) -> bool:
        return response is not None


class InvalidatingCommand(ABC):
    """A write that invalidates cache patterns after it succeeds."""

    @property
    @abstractmethod
    def cache_invalidation_patterns(self) -> Sequence[str]:
        """Patterns known without touching the data store."""


class ResolveStage(str, Enum):
    """When a resolvable command reads the data store for its patterns."""

    # Before the handler runs; required when the handler deletes the row
    BEFORE_EXECUTE = "before_execute"
    AFTER_EXECUTE = "after_execute"


class ResolvableInvalidatingCommand(InvalidatingCommand):
    """A write whose patterns are computed from stored state.

    ``cache_invalidation_patterns`` remains the fallback used when
    resolution fails or yields nothing.
    """

    resolve_stage: ClassVar[ResolveStage] = ResolveStage.BEFORE_EXECUTE

    @abstractmethod
    async def resolve_patterns(self, repos: ReadRepositories) -> Sequence[str]:
        """Read what is needed from ``repos`` and return the patterns."""
