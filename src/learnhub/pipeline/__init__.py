"""Request pipeline: mediator, cache capabilities and cache behaviors."""

from learnhub.pipeline.behaviors import (
    CommandCacheInvalidationBehavior,
    QueryCachingBehavior,
    build_mediator,
)
from learnhub.pipeline.mediator import HandlerNotFoundError, Mediator
from learnhub.pipeline.requests import (
    CacheableQuery,
    InvalidatingCommand,
    ResolvableInvalidatingCommand,
    ResolveStage,
)

__all__ = [
    "Mediator",
    "build_mediator",
    "HandlerNotFoundError",
    "QueryCachingBehavior",
    "CommandCacheInvalidationBehavior",
    "CacheableQuery",
    "InvalidatingCommand",
    "ResolvableInvalidatingCommand",
    "ResolveStage",
]
