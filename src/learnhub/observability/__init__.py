"""Observability module for LearnHub.

Provides structured logging with correlation IDs and Prometheus cache
metrics.
"""

from learnhub.observability.logging import (
    LogContext,
    configure_logging,
    correlation_id_var,
    current_correlation_id,
    request_id_var,
)
from learnhub.observability.metrics import CacheMetrics, get_metrics

__all__ = [
    # Logging
    "configure_logging",
    "LogContext",
    "request_id_var",
    "correlation_id_var",
    "current_correlation_id",
    # Metrics
    "CacheMetrics",
    "get_metrics",
]
