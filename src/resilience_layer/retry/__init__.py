"""
Retry executor with exponential backoff and jitter.

Wraps async operations with per-service retry policies, classifies errors
as retryable or fatal and records one outcome per retry sequence.
"""

from resilience_layer.retry.backoff import calculate_delay, exponential_component
from resilience_layer.retry.config import RetryConfig, default_retry_configs
from resilience_layer.retry.engine import RetryExecutor
from resilience_layer.retry.exceptions import RetryableHTTPStatusError
from resilience_layer.retry.http import fetch_with_retry
from resilience_layer.retry.metadata import RetryOutcome, RetryResult
from resilience_layer.retry.metrics_store import (
    RetryHealthStatus,
    RetryMetricsStore,
    RetryStatistics,
    ServiceRetryStats,
)

__all__ = [
    "RetryConfig",
    "default_retry_configs",
    "calculate_delay",
    "exponential_component",
    "RetryExecutor",
    "RetryOutcome",
    "RetryResult",
    "RetryMetricsStore",
    "RetryStatistics",
    "RetryHealthStatus",
    "ServiceRetryStats",
    "RetryableHTTPStatusError",
    "fetch_with_retry",
]
