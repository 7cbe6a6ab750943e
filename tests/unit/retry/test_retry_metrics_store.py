"""
Unit tests for RetryMetricsStore.
"""

from datetime import timedelta

import pytest

from resilience_layer.retry.metadata import RetryOutcome
from resilience_layer.retry.metrics_store import RetryMetricsStore


def outcome(service="gemini", attempts=1, success=True, delay=0, at=None) -> RetryOutcome:
    kwargs = {} if at is None else {"timestamp": at}
    return RetryOutcome(
        service=service,
        operation="op",
        attempts=attempts,
        total_delay_ms=delay,
        success=success,
        last_error=None if success else "boom",
        **kwargs,
    )


def test_outcome_rejects_impossible_values():
    with pytest.raises(ValueError):
        outcome(attempts=0)
    with pytest.raises(ValueError):
        outcome(delay=-1)


def test_history_is_capped_oldest_evicted():
    store = RetryMetricsStore(history_limit=3)
    for attempts in range(1, 6):
        store.record(outcome(attempts=attempts))

    assert len(store) == 3
    assert [o.attempts for o in store.get_metrics()] == [3, 4, 5]


def test_window_filters_old_outcomes(wall_clock):
    store = RetryMetricsStore(clock=wall_clock)
    store.record(outcome(at=wall_clock.now - timedelta(minutes=10)))
    store.record(outcome(at=wall_clock.now - timedelta(seconds=30)))

    assert len(store.get_metrics()) == 2
    assert len(store.get_metrics(window_seconds=60)) == 1


def test_statistics_aggregate_per_service():
    store = RetryMetricsStore()
    store.record(outcome("gemini", attempts=1, success=True))
    store.record(outcome("gemini", attempts=3, success=False, delay=300))
    store.record(outcome("firecrawl", attempts=2, success=True, delay=100))
    store.record(outcome("firecrawl", attempts=1, success=True))

    stats = store.get_statistics()

    assert stats.total_requests == 4
    assert stats.successful_requests == 3
    assert stats.failed_requests == 1
    assert stats.average_attempts == pytest.approx(7 / 4)
    assert stats.average_delay_ms == pytest.approx(100)
    assert stats.retry_rate == pytest.approx(0.5)
    assert stats.service_breakdown["gemini"].success_rate == pytest.approx(0.5)
    assert stats.service_breakdown["firecrawl"].requests == 2


def test_empty_statistics():
    stats = RetryMetricsStore().get_statistics()
    assert stats.total_requests == 0
    assert stats.retry_rate == 0.0


def test_health_healthy_without_traffic():
    assert RetryMetricsStore().get_health_status().status == "healthy"


def test_health_unhealthy_on_low_success_rate():
    store = RetryMetricsStore()
    for _ in range(3):
        store.record(outcome(success=False))
    store.record(outcome(success=True))

    health = store.get_health_status()

    assert health.status == "unhealthy"
    assert any("Low success rate" in issue for issue in health.issues)


def test_health_degraded_on_high_retry_rate():
    store = RetryMetricsStore()
    for _ in range(10):
        store.record(outcome(attempts=2, success=True))

    health = store.get_health_status()

    assert health.status == "degraded"
    assert any("retry rate" in issue for issue in health.issues)


def test_clear():
    store = RetryMetricsStore()
    store.record(outcome())
    store.clear()
    assert len(store) == 0


def test_history_limit_must_be_positive():
    with pytest.raises(ValueError):
        RetryMetricsStore(history_limit=0)
