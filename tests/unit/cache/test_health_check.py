"""Tests for the Redis health check."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

from learnhub.cache.health import ComponentHealth, HealthStatus, check_redis, classify_latency
from learnhub.cache.redis import RedisCache


class TestClassifyLatency:
    def test_thresholds(self) -> None:
        assert classify_latency(2.0) is HealthStatus.HEALTHY
        assert classify_latency(10.0) is HealthStatus.DEGRADED
        assert classify_latency(99.9) is HealthStatus.DEGRADED
        assert classify_latency(100.0) is HealthStatus.UNHEALTHY


class TestCheckRedis:
    """Test Redis health classification."""

    async def test_reachable_redis(self, redis_client) -> None:
        result = await check_redis(RedisCache(redis_client))
        assert result.name == "redis"
        assert result.status is not HealthStatus.UNHEALTHY

    async def test_slow_redis_is_degraded(self) -> None:
        cache = MagicMock()
        cache.ping = AsyncMock(return_value=42.0)

        result = await check_redis(cache)

        assert result.status is HealthStatus.DEGRADED
        assert result.message == "Redis latency 42.0ms"

    async def test_not_configured(self) -> None:
        result = await check_redis(None)
        assert result.status is HealthStatus.UNHEALTHY

    async def test_connection_error(self) -> None:
        cache = MagicMock()
        cache.ping = AsyncMock(side_effect=ConnectionError("refused"))

        result = await check_redis(cache)

        assert result.status is HealthStatus.UNHEALTHY
        assert result.message == "refused"

    async def test_timeout(self) -> None:
        async def hang() -> float:
            await asyncio.sleep(1)
            return 0.0

        cache = MagicMock()
        cache.ping = hang

        result = await check_redis(cache, timeout=0.01)

        assert result.status is HealthStatus.UNHEALTHY
        assert result.message == "Redis check timed out"


class TestComponentHealth:
    def test_to_dict_omits_empty_message(self) -> None:
        health = ComponentHealth(name="redis", status=HealthStatus.HEALTHY, latency_ms=1.234)
        assert health.to_dict() == {"name": "redis", "status": "healthy", "latency_ms": 1.23}

    def test_to_dict_with_message(self) -> None:
        health = ComponentHealth(
            name="redis", status=HealthStatus.UNHEALTHY, latency_ms=0.0, message="down"
        )
        assert health.to_dict()["message"] == "down"
