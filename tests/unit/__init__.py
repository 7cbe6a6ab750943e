"""
Unit tests for the resilience layer.

Test individual components in isolation, with injected clocks, sleeps and
random draws:
- Backoff and retry executor (classification, metrics store, HTTP variant)
- Circuit breaker state machine and registry
- Fallback ladders
- Adaptive parallel scheduler
- Batch aggregation (parsing, dedupe, kinds)
- Cost accounting and budgets
- Health read model, user-facing messages, API routes
"""
