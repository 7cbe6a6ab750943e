"""Monitoring, metrics and health read model for the resilience layer.

Exports custom Prometheus metrics for operational monitoring and alerting.
The per-service health read model lives in ``monitoring.health``.
"""

from resilience_layer.monitoring.metrics import (
    api_cost_usd_total,
    batch_items_total,
    batch_provider_calls_total,
    cache_savings_usd_total,
    circuit_breaker_rejections_total,
    circuit_breaker_state,
    fallback_executions_total,
    provider_latency_seconds,
    provider_tokens_total,
    retry_attempts_total,
    retry_sequences_total,
    scheduler_concurrency_level,
    scheduler_tasks_total,
)

__all__ = [
    "retry_attempts_total",
    "retry_sequences_total",
    "circuit_breaker_state",
    "circuit_breaker_rejections_total",
    "fallback_executions_total",
    "scheduler_tasks_total",
    "scheduler_concurrency_level",
    "batch_provider_calls_total",
    "batch_items_total",
    "provider_latency_seconds",
    "provider_tokens_total",
    "api_cost_usd_total",
    "cache_savings_usd_total",
]
