"""Custom Prometheus metrics for the resilience layer.

These metrics are exposed at /metrics endpoint and should be scraped by Prometheus.
Alert rules should be configured for:
- retry_sequences_total (high failure rate per service)
- circuit_breaker_state (any circuit stuck OPEN)
- fallback_executions_total (sustained degraded responses)
- api_cost_usd_total (spend velocity)
"""

from prometheus_client import Counter, Gauge, Histogram

# === Retry Metrics ===

retry_attempts_total = Counter(
    "retry_attempts_total",
    "Total attempts made by the retry executor by service and outcome",
    ["service", "outcome"],
)
"""
Individual attempt counter.

Labels:
- service: Target service name (google_cse, firecrawl, gemini, supabase, ...)
- outcome: success, retryable_error, fatal_error
"""

retry_sequences_total = Counter(
    "retry_sequences_total",
    "Completed retry sequences by service and final success",
    ["service", "success"],
)
"""
Terminal retry outcome counter (one per executeWithRetry call).

Alert thresholds:
- WARN: failure ratio > 5% per service
- CRITICAL: failure ratio > 20% per service
"""

# === Circuit Breaker Metrics ===

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state per service (0=closed, 1=half_open, 2=open)",
    ["service"],
)

circuit_breaker_rejections_total = Counter(
    "circuit_breaker_rejections_total",
    "Calls short-circuited without invoking the dependency",
    ["service"],
)

# === Fallback Metrics ===

fallback_executions_total = Counter(
    "fallback_executions_total",
    "Fallback strategy executions by service, strategy and success",
    ["service", "strategy", "success"],
)
"""
Degradation counter.

Labels:
- strategy: cache_only, demo_data, reduced_functionality, alternative_service, error_response
- success: true (degraded response served), false (strategy failed)
"""

# === Scheduler Metrics ===

scheduler_tasks_total = Counter(
    "scheduler_tasks_total",
    "Tasks processed by the adaptive parallel processor",
    ["service", "success"],
)

scheduler_concurrency_level = Gauge(
    "scheduler_concurrency_level",
    "Current adaptive concurrency level of the parallel processor",
)

# === Batch Aggregator Metrics ===

batch_provider_calls_total = Counter(
    "batch_provider_calls_total",
    "Batched provider calls by batch kind and success",
    ["kind", "success"],
)

batch_items_total = Counter(
    "batch_items_total",
    "Items demultiplexed from batched provider calls by resolution source",
    ["kind", "source"],
)
"""
Labels:
- source: provider (id found), default (id absent), heuristic (unparsable), failed (call failed),
  precomputed (no call needed)
"""

# === Provider Metrics ===

provider_latency_seconds = Histogram(
    "provider_latency_seconds",
    "LLM provider generation latency in seconds",
    ["model", "success"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

provider_tokens_total = Counter(
    "provider_tokens_total",
    "Total tokens consumed by model and type",
    ["model", "token_type"],
)

# === Cost Metrics ===

api_cost_usd_total = Counter(
    "api_cost_usd_total",
    "Accumulated external API cost in USD by service",
    ["service"],
)

cache_savings_usd_total = Counter(
    "cache_savings_usd_total",
    "Accumulated cost avoided by cache hits in USD by service",
    ["service"],
)
