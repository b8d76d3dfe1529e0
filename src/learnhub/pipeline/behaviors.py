"""Cache behaviors for the mediator pipeline.

QueryCachingBehavior:
    cacheable? -> bypass? -> key -> L1 -> L2 -> miss: handler -> store -> return

CommandCacheInvalidationBehavior:
    [resolve before] -> handler -> [resolve after] -> local invalidate -> broadcast

A raising handler is the failure signal: its result is never cached and
its patterns are never invalidated. Cache faults are logged and never
surface to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any

from learnhub.cache.ttl import CacheTtlPolicy
from learnhub.observability.logging import current_correlation_id
from learnhub.persistence.repositories import ReadRepositories
from learnhub.pipeline.mediator import Mediator, NextStep
from learnhub.pipeline.requests import (
    CacheableQuery,
    InvalidatingCommand,
    ResolvableInvalidatingCommand,
    ResolveStage,
)

if TYPE_CHECKING:
    from learnhub.cache.service import TwoTierCache

logger = logging.getLogger(__name__)


def unique_patterns(patterns: Iterable[str]) -> list[str]:
    """Drop blanks and duplicates, keeping first-seen order."""
    seen: dict[str, None] = {}
    for pattern in patterns:
        if pattern and pattern.strip():
            seen.setdefault(pattern, None)
    return list(seen)


class QueryCachingBehavior:
    """Serves ``CacheableQuery`` requests read-through."""

    def __init__(self, cache: TwoTierCache, ttl_policy: CacheTtlPolicy | None = None):
        self.cache = cache
        self.ttl_policy = ttl_policy or cache.ttl_policy

    async def __call__(self, request: Any, next_step: NextStep) -> Any:
        if not isinstance(request, CacheableQuery):
            return await next_step()

        key = request.cache_key
        l2_ttl = self.ttl_policy.resolve_for(request)

        if request.bypass_cache:
            logger.debug("Cache bypass for %s", key)
            return await self.cache.refresh(
                key, next_step, l2_ttl=l2_ttl, should_cache=request.should_cache
            )

        return await self.cache.get_or_set(
            key,
            next_step,
            response_type=request.response_type,
            l2_ttl=l2_ttl,
            should_cache=request.should_cache,
        )


class CommandCacheInvalidationBehavior:
    """Invalidates the patterns of a successful ``InvalidatingCommand``."""

    def __init__(self, cache: TwoTierCache, repositories: ReadRepositories | None = None):
        self.cache = cache
        self.repositories = repositories or ReadRepositories()

    async def __call__(self, request: Any, next_step: NextStep) -> Any:
        if not isinstance(request, InvalidatingCommand):
            return await next_step()

        resolvable = isinstance(request, ResolvableInvalidatingCommand)
        patterns: list[str] = []
        if resolvable and request.resolve_stage is ResolveStage.BEFORE_EXECUTE:
            patterns = await self.resolve(request)

        # Raises on failure; nothing below runs
        response = await next_step()

        if resolvable and request.resolve_stage is ResolveStage.AFTER_EXECUTE:
            patterns = await self.resolve(request)
        elif not resolvable:
            patterns = self.static_patterns(request)

        await self.invalidate(patterns, type(request).__name__)
        return response

    def static_patterns(self, request: InvalidatingCommand) -> list[str]:
        try:
            return unique_patterns(request.cache_invalidation_patterns)
        except Exception:
            logger.exception("Could not build invalidation patterns for %s", type(request).__name__)
            return []

    async def resolve(self, request: ResolvableInvalidatingCommand) -> list[str]:
        """Resolved patterns, or the static ones if resolution fails or is empty."""
        name = type(request).__name__
        try:
            resolved = unique_patterns(await request.resolve_patterns(self.repositories))
        except Exception as e:
            logger.warning("Pattern resolution failed for %s, using static patterns: %s", name, e)
            return self.static_patterns(request)
        if not resolved:
            logger.debug("No resolved patterns for %s, using static patterns", name)
            return self.static_patterns(request)
        return resolved

    async def invalidate(self, patterns: Sequence[str], source: str) -> None:
        if not patterns:
            return
        correlation_id = current_correlation_id()
        for pattern in patterns:
            try:
                await self.cache.remove_by_pattern(pattern, correlation_id=correlation_id)
            except Exception:
                logger.exception("Invalidation of %s after %s failed", pattern, source)
        logger.info("Invalidated %d pattern(s) after %s", len(patterns), source)


def build_mediator(cache: TwoTierCache, repositories: ReadRepositories | None = None) -> Mediator:
    """Mediator wired with both cache behaviors."""
    return Mediator(
        behaviors=[
            QueryCachingBehavior(cache),
            CommandCacheInvalidationBehavior(cache, repositories),
        ]
    )
