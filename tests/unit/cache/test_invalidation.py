"""Tests for cross-instance L1 invalidation over Redis Pub/Sub."""

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from learnhub.cache import invalidation
from learnhub.cache.invalidation import (
    CacheInvalidationBroadcaster,
    InvalidationMessage,
    LocalCacheInvalidator,
    get_invalidation_broadcaster,
    start_cache_invalidation,
    stop_cache_invalidation,
)
from learnhub.cache.service import TwoTierCache


async def wait_for(condition: Callable[[], bool], timeout: float = 3.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.02)


class TestInvalidationMessage:
    """Test message encoding."""

    def test_round_trip(self) -> None:
        message = InvalidationMessage(
            key_pattern="courses:list:*",
            source_instance="a1b2c3d4",
            timestamp=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
            correlation_id="corr-1",
        )
        restored = InvalidationMessage.from_bytes(message.to_bytes())
        assert restored == message

    def test_correlation_id_optional(self) -> None:
        message = InvalidationMessage(key_pattern="courses:*", source_instance="a")
        assert InvalidationMessage.from_bytes(message.to_bytes()).correlation_id is None


class TestMessageHandling:
    """Test how received messages are dispatched."""

    @pytest.fixture
    def broadcaster(self, redis_client) -> CacheInvalidationBroadcaster:
        return CacheInvalidationBroadcaster(
            instance_id="a", channel="test:inv", client=redis_client
        )

    async def test_own_messages_skipped(self, broadcaster: CacheInvalidationBroadcaster) -> None:
        handler = AsyncMock()
        broadcaster.add_handler(handler)

        await broadcaster._handle_message(
            InvalidationMessage(key_pattern="courses:*", source_instance="a").to_bytes()
        )

        handler.assert_not_awaited()
        assert broadcaster.skipped_own == 1

    async def test_peer_messages_dispatched(
        self, broadcaster: CacheInvalidationBroadcaster
    ) -> None:
        handler = AsyncMock()
        broadcaster.add_handler(handler)

        await broadcaster._handle_message(
            InvalidationMessage(key_pattern="courses:*", source_instance="b").to_bytes()
        )

        handler.assert_awaited_once()
        assert handler.await_args.args[0].key_pattern == "courses:*"
        assert broadcaster.received == 1

    async def test_malformed_message_ignored(
        self, broadcaster: CacheInvalidationBroadcaster
    ) -> None:
        handler = AsyncMock()
        broadcaster.add_handler(handler)

        await broadcaster._handle_message(b"not json")
        await broadcaster._handle_message(b'{"key_pattern": "courses:*"}')

        handler.assert_not_awaited()

    async def test_parse_failure_logged_with_arguments(
        self, broadcaster: CacheInvalidationBroadcaster, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level("ERROR", logger=invalidation.logger.name):
            await broadcaster._handle_message(b"not json")

        record = caplog.records[-1]
        assert record.msg == "Failed to parse invalidation message: %s"
        assert len(record.args) == 1

    async def test_failing_handler_does_not_stop_others(
        self, broadcaster: CacheInvalidationBroadcaster
    ) -> None:
        failing = AsyncMock(side_effect=RuntimeError("boom"))
        healthy = AsyncMock()
        broadcaster.add_handler(failing)
        broadcaster.add_handler(healthy)

        await broadcaster._handle_message(
            InvalidationMessage(key_pattern="courses:*", source_instance="b").to_bytes()
        )

        healthy.assert_awaited_once()


class TestLocalCacheInvalidator:
    async def test_purges_l1_only(self, cache: TwoTierCache) -> None:
        await cache.set("courses:id:1", "x")

        await LocalCacheInvalidator(cache).handle_invalidation(
            InvalidationMessage(key_pattern="courses:*", source_instance="b")
        )

        assert not cache.memory.contains("courses:id:1")
        assert await cache.redis.get_bytes("courses:id:1") is not None


class TestPeerConvergence:
    """Two instances sharing one Redis."""

    async def test_peer_l1_purged_after_write(
        self, make_cache: Callable[..., TwoTierCache]
    ) -> None:
        """An invalidation on one instance clears the other instance's L1."""
        cache_a, cache_b = make_cache(), make_cache()
        broadcaster_a = CacheInvalidationBroadcaster(
            instance_id="a", channel="test:inv", client=cache_a.redis.client
        )
        broadcaster_b = CacheInvalidationBroadcaster(
            instance_id="b", channel="test:inv", client=cache_b.redis.client
        )
        broadcaster_b.add_handler(LocalCacheInvalidator(cache_b).handle_invalidation)
        cache_a.attach_publisher(broadcaster_a)

        await cache_a.get_or_set("courses:id:1", AsyncMock(return_value="v1"))
        await cache_b.get_or_set("courses:id:1", AsyncMock(return_value="unused"))
        assert cache_b.memory.get("courses:id:1") == "v1"

        await broadcaster_b.start()
        try:
            await cache_a.remove_by_pattern("courses:*", correlation_id="corr-9")
            await wait_for(lambda: broadcaster_b.received == 1)
        finally:
            await broadcaster_b.stop()

        assert not cache_b.memory.contains("courses:id:1")
        assert await cache_b.get_or_set("courses:id:1", AsyncMock(return_value="v2")) == "v2"

    async def test_publish_reports_subscribers(self, redis_client) -> None:
        listener = CacheInvalidationBroadcaster(
            instance_id="b", channel="test:inv", client=redis_client
        )
        publisher = CacheInvalidationBroadcaster(
            instance_id="a", channel="test:inv", client=redis_client
        )

        assert await publisher.publish("courses:*") == 0

        await listener.start()
        try:
            assert listener.running
            assert await publisher.publish("courses:*") == 1
        finally:
            await listener.stop()
        assert not listener.running


class TestLifecycle:
    async def test_start_and_stop_wires_publisher(
        self, cache: TwoTierCache, redis_client, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(invalidation, "get_redis", AsyncMock(return_value=redis_client))

        broadcaster = await start_cache_invalidation(cache)
        try:
            assert cache.publisher is broadcaster
            assert get_invalidation_broadcaster() is broadcaster
            assert broadcaster.running
        finally:
            await stop_cache_invalidation(cache)

        assert cache.publisher is None
        assert get_invalidation_broadcaster() is None
