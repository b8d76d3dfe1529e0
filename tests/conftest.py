"""Global pytest configuration and fixtures.

Redis is replaced by fakeredis. Caches built by ``make_cache`` share one
fake server, so two of them behave like two LearnHub instances talking to
the same Redis.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any

import fakeredis
import pytest
from prometheus_client import CollectorRegistry

from learnhub.cache.redis import RedisCache
from learnhub.cache.service import TwoTierCache
from learnhub.config import Settings
from learnhub.observability.metrics import CacheMetrics


@pytest.fixture
def config() -> Settings:
    """Settings with background work switched off."""
    return Settings(
        instance_id="test-a",
        cache_warmup_enabled=False,
        cache_l1_sync=False,
        cache_distributed_locking=False,
    )


@pytest.fixture
def metrics() -> CacheMetrics:
    """Metrics on a private registry, so tests never collide on names."""
    return CacheMetrics(registry=CollectorRegistry())


@pytest.fixture
def fake_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
async def redis_client(fake_server: fakeredis.FakeServer) -> AsyncIterator[Any]:
    client = fakeredis.FakeAsyncRedis(server=fake_server)
    yield client
    await client.aclose()


@pytest.fixture
def make_cache(
    fake_server: fakeredis.FakeServer, config: Settings, metrics: CacheMetrics
) -> Callable[..., TwoTierCache]:
    """Build a TwoTierCache on the shared fake server.

    Keyword arguments override settings fields for that cache only.
    """

    def factory(**overrides: Any) -> TwoTierCache:
        client = fakeredis.FakeAsyncRedis(server=fake_server)
        cfg = config.model_copy(update=overrides) if overrides else config
        return TwoTierCache(RedisCache(client), config=cfg, metrics=metrics)

    return factory


@pytest.fixture
def cache(make_cache: Callable[..., TwoTierCache]) -> TwoTierCache:
    return make_cache()
