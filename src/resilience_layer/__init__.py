"""
Resilience and orchestration layer for the Attendry event platform.

Coordinates unreliable external AI/search/crawl calls:
- Retry with exponential backoff and jitter
- Per-service circuit breakers
- Ordered fallback (degradation) strategies
- Request batching/demultiplexing for LLM calls
- Adaptive parallel task scheduling
- Cost and cache-usage accounting

Architecture: in-process async library + FastAPI read-model for health/costs
"""

__version__ = "0.1.0"
