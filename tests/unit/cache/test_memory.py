"""Tests for the in-process (L1) cache tier."""

from datetime import timedelta

import pytest

from learnhub.cache.memory import MemoryCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestMemoryCache:
    """Test L1 storage with per-entry TTL."""

    @pytest.fixture
    def clock(self) -> FakeClock:
        return FakeClock()

    @pytest.fixture
    def memory(self, clock: FakeClock) -> MemoryCache:
        return MemoryCache(max_size=100, timer=clock)

    def test_set_and_get(self, memory: MemoryCache) -> None:
        memory.set("courses:id:1", {"title": "Intro"}, timedelta(seconds=10))
        assert memory.get("courses:id:1") == {"title": "Intro"}
        assert memory.contains("courses:id:1")

    def test_missing_key_returns_default(self, memory: MemoryCache) -> None:
        sentinel = object()
        assert memory.get("courses:id:404") is None
        assert memory.get("courses:id:404", sentinel) is sentinel

    def test_entry_expires_after_its_ttl(self, memory: MemoryCache, clock: FakeClock) -> None:
        """Each entry expires on its own schedule."""
        memory.set("short", "a", timedelta(seconds=5))
        memory.set("long", "b", timedelta(seconds=60))

        clock.now = 4.9
        assert memory.get("short") == "a"

        clock.now = 5.0
        assert memory.get("short") is None
        assert memory.get("long") == "b"

    def test_expired_entries_not_counted(self, memory: MemoryCache, clock: FakeClock) -> None:
        memory.set("a", 1, timedelta(seconds=1))
        memory.set("b", 2, timedelta(seconds=10))
        clock.now = 2.0
        assert len(memory) == 1

    def test_non_positive_ttl_removes_entry(self, memory: MemoryCache) -> None:
        memory.set("courses:id:1", "old", timedelta(seconds=10))
        memory.set("courses:id:1", "new", timedelta(0))
        assert not memory.contains("courses:id:1")

    def test_stores_falsy_values(self, memory: MemoryCache) -> None:
        """Empty lists and zero are cached values, not misses."""
        memory.set("lessons:course:1", [], timedelta(seconds=10))
        assert memory.get("lessons:course:1", "missing") == []

    def test_remove(self, memory: MemoryCache) -> None:
        memory.set("courses:id:1", "x", timedelta(seconds=10))
        assert memory.remove("courses:id:1") is True
        assert memory.remove("courses:id:1") is False

    def test_remove_matching_prefix(self, memory: MemoryCache) -> None:
        """Prefix patterns remove every key under the prefix."""
        for key in ("courses:list:p1", "courses:list:p2", "courses:id:1", "badges:p1:s20"):
            memory.set(key, "x", timedelta(seconds=10))

        assert memory.remove_matching("courses:list:*") == 2
        assert sorted(memory.keys()) == ["badges:p1:s20", "courses:id:1"]

    def test_remove_matching_exact(self, memory: MemoryCache) -> None:
        memory.set("categories:tree", "x", timedelta(seconds=10))
        memory.set("categories:tree:old", "y", timedelta(seconds=10))

        assert memory.remove_matching("categories:tree") == 1
        assert memory.contains("categories:tree:old")

    def test_bounded_size(self, clock: FakeClock) -> None:
        memory = MemoryCache(max_size=2, timer=clock)
        for i in range(3):
            memory.set(f"courses:id:{i}", i, timedelta(seconds=10 + i))
        assert len(memory) == 2
        assert memory.max_size == 2

    def test_clear(self, memory: MemoryCache) -> None:
        memory.set("a:b", 1, timedelta(seconds=10))
        memory.clear()
        assert len(memory) == 0
