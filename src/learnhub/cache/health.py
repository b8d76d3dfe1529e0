"""Redis health check with latency thresholds.

- healthy:   ping under 10 ms
- degraded:  ping under 100 ms
- unhealthy: slower, failed, or timed out
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from learnhub.cache.redis import RedisCache

HEALTHY_LATENCY_MS = 10.0
DEGRADED_LATENCY_MS = 100.0


class HealthStatus(str, Enum):
    """Health check status."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health status of a single component."""

    name: str
    status: HealthStatus
    latency_ms: float
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON response."""
        result: dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            result["message"] = self.message
        return result


def classify_latency(latency_ms: float) -> HealthStatus:
    if latency_ms < HEALTHY_LATENCY_MS:
        return HealthStatus.HEALTHY
    if latency_ms < DEGRADED_LATENCY_MS:
        return HealthStatus.DEGRADED
    return HealthStatus.UNHEALTHY


async def check_redis(cache: RedisCache | None, timeout: float = 5.0) -> ComponentHealth:
    """Ping Redis and classify the round trip."""
    if cache is None:
        return ComponentHealth(
            name="redis",
            status=HealthStatus.UNHEALTHY,
            latency_ms=0.0,
            message="Redis is not configured",
        )

    start = time.monotonic()
    try:
        latency = await asyncio.wait_for(cache.ping(), timeout=timeout)
    except asyncio.TimeoutError:
        return ComponentHealth(
            name="redis",
            status=HealthStatus.UNHEALTHY,
            latency_ms=(time.monotonic() - start) * 1000,
            message="Redis check timed out",
        )
    except Exception as e:
        return ComponentHealth(
            name="redis",
            status=HealthStatus.UNHEALTHY,
            latency_ms=(time.monotonic() - start) * 1000,
            message=str(e),
        )

    status = classify_latency(latency)
    message = None
    if status is not HealthStatus.HEALTHY:
        message = f"Redis latency {latency:.1f}ms"
    return ComponentHealth(name="redis", status=status, latency_ms=latency, message=message)
