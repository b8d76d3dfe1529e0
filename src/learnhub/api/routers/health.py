"""Health check endpoints for LearnHub.

Provides Kubernetes-compatible liveness and readiness probes:
- /health/live  - Liveness probe (always returns OK if process is running)
- /health/ready - Readiness probe (checks Redis latency)

A degraded Redis still reports ready: the cache falls back to L1 and the
service keeps answering from the origin.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from learnhub.api.deps import get_app_cache
from learnhub.cache.health import HealthStatus, check_redis
from learnhub.cache.service import TwoTierCache

router = APIRouter(tags=["health"])


@router.get("/health/live")
async def live() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@router.get("/health/ready")
async def ready(cache: TwoTierCache = Depends(get_app_cache)) -> JSONResponse:
    """Readiness probe.

    Returns 200 if Redis is healthy or degraded, 503 if unreachable.
    """
    redis_result = await check_redis(cache.redis)
    status_code = 503 if redis_result.status == HealthStatus.UNHEALTHY else 200
    return JSONResponse(
        content={
            "status": redis_result.status.value,
            "instance_id": cache.config.instance_id,
            "components": [redis_result.to_dict()],
        },
        status_code=status_code,
    )
