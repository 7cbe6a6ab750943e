"""Shared test fixtures and configuration for all tests.

This conftest.py provides common fixtures used across unit and integration tests.
Time never passes for real in unit tests: sleeps are AsyncMocks and clocks
are FakeClock instances advanced by the test.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from resilience_layer.config import Settings
from resilience_layer.retry.config import RetryConfig
from resilience_layer.retry.engine import RetryExecutor
from resilience_layer.retry.metrics_store import RetryMetricsStore


class FakeClock:
    """Monotonic clock (seconds) advanced manually."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWallClock:
    """UTC datetime clock advanced manually."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with safe defaults for local testing.

    Override specific settings in individual tests as needed:
        def test_something(test_settings):
            settings = test_settings.model_copy(update={"BATCH_SIZE": 2})
    """
    return Settings(
        # === Application ===
        APP_NAME="Attendry Resilience Layer (Test)",
        APP_VERSION="0.1.0",
        DEBUG=True,
        LOG_LEVEL="DEBUG",
        ENVIRONMENT="development",
        # === Providers ===
        GEMINI_API_KEY=None,
        # === Persistence ===
        STORE_BACKEND="memory",
        REDIS_URL="redis://localhost:6379/15",
        REDIS_MAX_CONNECTIONS=10,
        PROMETHEUS_ENABLED=False,  # Disable metrics in tests unless explicitly needed
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def wall_clock() -> FakeWallClock:
    return FakeWallClock()


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Sleep replacement; inspect ``await_args_list`` for requested delays."""
    return AsyncMock(return_value=None)


@pytest.fixture
def fast_retry_configs() -> dict[str, RetryConfig]:
    """Small deterministic policies: 2 retries, 100ms base, doubling, no jitter."""
    config = RetryConfig(max_retries=2, base_delay_ms=100, max_delay_ms=1000, backoff_multiplier=2.0, jitter_ms=0)
    return {"google_cse": config, "firecrawl": config, "gemini": config, "supabase": config}


@pytest.fixture
def retry_metrics() -> RetryMetricsStore:
    return RetryMetricsStore(history_limit=100)


@pytest.fixture
def retry_executor(fast_retry_configs, retry_metrics, no_sleep) -> RetryExecutor:
    return RetryExecutor(fast_retry_configs, retry_metrics, sleep=no_sleep, random_fn=lambda: 0.0)
