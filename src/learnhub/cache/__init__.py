"""Two-tier caching for LearnHub.

- L1: bounded in-process store (cachetools TLRUCache)
- L2: Redis, the shared source of truth
- Invalidation: pattern removal in both tiers, broadcast over Redis Pub/Sub
  so peer instances purge their L1
"""

from learnhub.cache.exceptions import (
    CacheError,
    CacheSerializationError,
    LockTimeoutError,
)
from learnhub.cache.invalidation import (
    CacheInvalidationBroadcaster,
    InvalidationMessage,
    LocalCacheInvalidator,
    start_cache_invalidation,
    stop_cache_invalidation,
)
from learnhub.cache.keys import CachePattern, build_key, pattern_matches
from learnhub.cache.memory import MemoryCache
from learnhub.cache.redis import RedisCache, close_redis, get_redis
from learnhub.cache.serializers import CacheSerializer, get_serializer
from learnhub.cache.service import TwoTierCache, get_cache
from learnhub.cache.ttl import CacheTtlPolicy, TtlRule

__all__ = [
    "CacheError",
    "CacheSerializationError",
    "LockTimeoutError",
    "CacheInvalidationBroadcaster",
    "InvalidationMessage",
    "LocalCacheInvalidator",
    "start_cache_invalidation",
    "stop_cache_invalidation",
    "CachePattern",
    "build_key",
    "pattern_matches",
    "MemoryCache",
    "RedisCache",
    "close_redis",
    "get_redis",
    "CacheSerializer",
    "get_serializer",
    "TwoTierCache",
    "get_cache",
    "CacheTtlPolicy",
    "TtlRule",
]
