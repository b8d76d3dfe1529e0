"""Prometheus metrics for the LearnHub cache.

Counters are labelled by key prefix (the entity namespace, e.g. "courses")
rather than by full key, to keep label cardinality bounded.

Usage:
    from learnhub.observability.metrics import get_metrics

    metrics = get_metrics()
    metrics.record_l1_hit("courses:id:42")
"""

from __future__ import annotations

import logging
from typing import Any

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram, generate_latest

from learnhub.config import settings

logger = logging.getLogger(__name__)


def key_prefix(key: str) -> str:
    """Entity namespace of a cache key or pattern ("courses:id:1" -> "courses")."""
    head, _, _ = key.partition(":")
    return head.rstrip("*") or "_"


class NoOpMetric:
    """No-op metric for when metrics are disabled."""

    def labels(self, *args: Any, **kwargs: Any) -> "NoOpMetric":
        return self

    def inc(self, amount: float = 1) -> None:
        pass

    def observe(self, amount: float) -> None:
        pass


class CacheMetrics:
    """Cache hit/miss, invalidation and lock counters."""

    def __init__(self, registry: CollectorRegistry | None = None, enabled: bool = True):
        self.enabled = enabled
        self._registry = registry if registry is not None else REGISTRY

        if not enabled:
            noop = NoOpMetric()
            self.l1_hits = self.l1_misses = noop
            self.l2_hits = self.l2_misses = noop
            self.invalidations = self.lock_acquired = self.lock_timeouts = noop
            self.errors = self.operation_duration = noop
            return

        self.l1_hits = Counter(
            "learnhub_cache_l1_hits_total",
            "In-process (L1) cache hits",
            ["key_prefix"],
            registry=self._registry,
        )
        self.l1_misses = Counter(
            "learnhub_cache_l1_misses_total",
            "In-process (L1) cache misses",
            ["key_prefix"],
            registry=self._registry,
        )
        self.l2_hits = Counter(
            "learnhub_cache_l2_hits_total",
            "Distributed (L2) cache hits",
            ["key_prefix"],
            registry=self._registry,
        )
        self.l2_misses = Counter(
            "learnhub_cache_l2_misses_total",
            "Distributed (L2) cache misses",
            ["key_prefix"],
            registry=self._registry,
        )
        self.invalidations = Counter(
            "learnhub_cache_invalidations_total",
            "Pattern invalidations applied",
            ["key_prefix", "origin"],
            registry=self._registry,
        )
        self.lock_acquired = Counter(
            "learnhub_cache_lock_acquired_total",
            "Distributed stampede lock acquisitions",
            ["key_prefix"],
            registry=self._registry,
        )
        self.lock_timeouts = Counter(
            "learnhub_cache_lock_timeouts_total",
            "Distributed stampede lock acquisition timeouts",
            ["key_prefix"],
            registry=self._registry,
        )
        self.errors = Counter(
            "learnhub_cache_errors_total",
            "Swallowed cache errors (degraded operation)",
            ["operation"],
            registry=self._registry,
        )
        self.operation_duration = Histogram(
            "learnhub_cache_operation_duration_seconds",
            "Distributed cache operation latency in seconds",
            ["operation"],
            buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25),
            registry=self._registry,
        )

    def record_l1_hit(self, key: str) -> None:
        self.l1_hits.labels(key_prefix=key_prefix(key)).inc()

    def record_l1_miss(self, key: str) -> None:
        self.l1_misses.labels(key_prefix=key_prefix(key)).inc()

    def record_l2_hit(self, key: str) -> None:
        self.l2_hits.labels(key_prefix=key_prefix(key)).inc()

    def record_l2_miss(self, key: str) -> None:
        self.l2_misses.labels(key_prefix=key_prefix(key)).inc()

    def record_invalidation(self, pattern: str, origin: str) -> None:
        self.invalidations.labels(key_prefix=key_prefix(pattern), origin=origin).inc()

    def record_lock_acquired(self, key: str) -> None:
        self.lock_acquired.labels(key_prefix=key_prefix(key)).inc()

    def record_lock_timeout(self, key: str) -> None:
        self.lock_timeouts.labels(key_prefix=key_prefix(key)).inc()

    def record_error(self, operation: str) -> None:
        self.errors.labels(operation=operation).inc()

    def generate_latest(self) -> bytes:
        """Prometheus exposition for the registry these metrics live in."""
        if not self.enabled:
            return b"# Metrics disabled\n"
        return generate_latest(self._registry)


_metrics: CacheMetrics | None = None


def get_metrics() -> CacheMetrics:
    """Get the process-wide cache metrics, creating them on first access."""
    global _metrics
    if _metrics is None:
        _metrics = CacheMetrics(enabled=settings.enable_metrics)
        logger.info("Cache metrics initialized (enabled=%s)", settings.enable_metrics)
    return _metrics
