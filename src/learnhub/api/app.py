"""FastAPI application factory for LearnHub.

Creates the application with:
- Health probes, operator cache endpoints and Prometheus metrics
- Correlation IDs propagated to logs and invalidation broadcasts
- Lifecycle management for Redis, the invalidation listener, cache warmup
  and database connections
- ORJSON for fast JSON serialization
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.responses import ORJSONResponse

from learnhub.api.middleware import CorrelationMiddleware
from learnhub.api.routers import cache as cache_router
from learnhub.api.routers import health
from learnhub.api.routers import metrics as metrics_router
from learnhub.cache.invalidation import start_cache_invalidation, stop_cache_invalidation
from learnhub.cache.redis import close_redis
from learnhub.cache.service import TwoTierCache, get_cache, reset_cache
from learnhub.cache.warmup import CacheWarmup
from learnhub.config import settings
from learnhub.observability import configure_logging
from learnhub.observability.metrics import get_metrics
from learnhub.persistence.db import close_db
from learnhub.persistence.repositories import ReadRepositories
from learnhub.pipeline.behaviors import build_mediator
from learnhub.pipeline.mediator import Mediator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    On startup:
    - Configure structured logging
    - Initialize Prometheus metrics
    - Connect Redis and build the two-tier cache (unless one was injected)
    - Start the L1 invalidation listener
    - Schedule cache warmup

    On shutdown the same components are stopped in reverse order.
    """
    configure_logging(
        json_format=settings.env != "dev",
        level=settings.log_level,
    )
    get_metrics()

    logger.info(
        "Starting %s (%s, instance %s)", settings.app_name, settings.env, settings.instance_id
    )

    cache: TwoTierCache | None = app.state.cache
    if cache is None:
        cache = await get_cache()
        app.state.cache = cache

    mediator: Mediator | None = app.state.mediator
    if mediator is None:
        mediator = build_mediator(cache, app.state.repositories)
        app.state.mediator = mediator

    if settings.cache_l1_sync and cache.redis is not None:
        try:
            await start_cache_invalidation(cache)
        except Exception as e:
            # Peers' L1 may stay stale until TTL; the instance still serves
            logger.warning("Cache invalidation listener not started: %s", e)

    warmup: CacheWarmup | None = None
    if settings.cache_warmup_enabled:
        warmup = CacheWarmup(mediator)
        warmup.start()

    logger.info("LearnHub startup complete")

    yield

    logger.info("Shutting down LearnHub")
    if warmup is not None:
        await warmup.stop()
    await stop_cache_invalidation(cache)
    await close_redis()
    reset_cache()
    await close_db()
    logger.info("LearnHub shutdown complete")


def create_app(
    cache: TwoTierCache | None = None,
    mediator: Mediator | None = None,
    repositories: ReadRepositories | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    A pre-built cache, mediator or repository set can be injected; anything
    not supplied is created during startup.
    """
    app = FastAPI(
        title="LearnHub",
        description="Online learning platform read-path cache service",
        version="0.1.0",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    app.state.cache = cache
    app.state.mediator = mediator
    app.state.repositories = repositories or ReadRepositories()

    app.add_middleware(CorrelationMiddleware)

    app.include_router(health.router)
    app.include_router(cache_router.router)
    if settings.enable_metrics:
        app.include_router(metrics_router.router)

    return app
