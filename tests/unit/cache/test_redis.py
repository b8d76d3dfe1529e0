"""Tests for the Redis (L2) tier, backed by fakeredis."""

from datetime import timedelta

import pytest

from learnhub.cache.redis import RedisCache


class TestRedisCache:
    """Test byte-level Redis operations."""

    @pytest.fixture
    def l2(self, redis_client) -> RedisCache:
        return RedisCache(redis_client, scan_batch_size=2)

    async def test_set_and_get_bytes(self, l2: RedisCache) -> None:
        await l2.set_bytes("courses:id:1", b"payload", timedelta(minutes=5))
        assert await l2.get_bytes("courses:id:1") == b"payload"

    async def test_set_applies_expiry(self, l2: RedisCache) -> None:
        await l2.set_bytes("courses:id:1", b"payload", timedelta(seconds=60))
        remaining = await l2.pttl("courses:id:1")
        assert remaining is not None
        assert timedelta(0) < remaining <= timedelta(seconds=60)

    async def test_pttl_missing_key(self, l2: RedisCache) -> None:
        assert await l2.pttl("courses:id:404") is None

    async def test_pttl_persistent_key(self, l2: RedisCache, redis_client) -> None:
        await redis_client.set("courses:id:2", b"x")
        assert await l2.pttl("courses:id:2") is None

    async def test_get_with_ttl(self, l2: RedisCache) -> None:
        """Payload and remaining lifetime come back together."""
        await l2.set_bytes("categories:tree", b"[]", timedelta(hours=2))
        data, remaining = await l2.get_with_ttl("categories:tree")
        assert data == b"[]"
        assert remaining is not None
        assert remaining <= timedelta(hours=2)

    async def test_get_with_ttl_missing(self, l2: RedisCache) -> None:
        assert await l2.get_with_ttl("categories:tree") == (None, None)

    async def test_exists_and_delete(self, l2: RedisCache) -> None:
        await l2.set_bytes("badges:id:1", b"x", timedelta(minutes=1))
        assert await l2.exists("badges:id:1")
        assert await l2.delete("badges:id:1") == 1
        assert not await l2.exists("badges:id:1")

    async def test_delete_nothing(self, l2: RedisCache) -> None:
        assert await l2.delete() == 0

    async def test_delete_pattern_prefix_in_batches(self, l2: RedisCache) -> None:
        """Prefix deletion walks more keys than one batch holds."""
        for i in range(5):
            await l2.set_bytes(f"courses:list:p{i}", b"x", timedelta(minutes=1))
        await l2.set_bytes("courses:id:1", b"x", timedelta(minutes=1))

        assert await l2.delete_pattern("courses:list:*") == 5
        assert await l2.exists("courses:id:1")

    async def test_delete_pattern_exact(self, l2: RedisCache) -> None:
        await l2.set_bytes("categories:tree", b"x", timedelta(minutes=1))
        await l2.set_bytes("categories:tree2", b"x", timedelta(minutes=1))

        assert await l2.delete_pattern("categories:tree") == 1
        assert await l2.exists("categories:tree2")

    async def test_delete_pattern_treats_glob_characters_literally(
        self, l2: RedisCache
    ) -> None:
        await l2.set_bytes("odd:[x]:1", b"x", timedelta(minutes=1))
        await l2.set_bytes("odd:x:1", b"x", timedelta(minutes=1))

        assert await l2.delete_pattern("odd:[x]:*") == 1
        assert await l2.exists("odd:x:1")

    async def test_delete_pattern_no_matches(self, l2: RedisCache) -> None:
        assert await l2.delete_pattern("coupons:*") == 0

    async def test_ping_and_health_check(self, l2: RedisCache) -> None:
        assert await l2.ping() >= 0
        assert await l2.health_check() is True
