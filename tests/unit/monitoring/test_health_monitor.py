"""
Unit tests for HealthMonitor (service and system health read model).
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from resilience_layer.circuit.models import CircuitBreakerConfig, CircuitState
from resilience_layer.circuit.registry import CircuitBreakerRegistry
from resilience_layer.monitoring.health import HealthMonitor
from resilience_layer.retry.metadata import RetryOutcome
from resilience_layer.retry.metrics_store import RetryMetricsStore


def record(store: RetryMetricsStore, service: str, *, success: bool = True, attempts: int = 1, **kwargs) -> None:
    store.record(
        RetryOutcome(
            service=service,
            operation="op",
            attempts=attempts,
            total_delay_ms=0,
            success=success,
            **kwargs,
        )
    )


@pytest.fixture
def breakers(clock) -> CircuitBreakerRegistry:
    return CircuitBreakerRegistry(default_config=CircuitBreakerConfig(failure_threshold=1), clock=clock)


@pytest.fixture
def monitor(retry_metrics, breakers) -> HealthMonitor:
    return HealthMonitor(retry_metrics, breakers, services=("gemini", "firecrawl"))


async def open_circuit(breakers: CircuitBreakerRegistry, service: str) -> None:
    with pytest.raises(ConnectionError):
        await breakers.execute_with_circuit_breaker(service, AsyncMock(side_effect=ConnectionError("down")))


def test_no_activity_is_unknown(monitor):
    health = monitor.service_health("gemini")

    assert health.status == "unknown"
    assert health.requests == 0
    assert health.error_rate is None
    assert "No recent activity" in health.issues


def test_healthy_service(monitor, retry_metrics):
    for _ in range(10):
        record(retry_metrics, "gemini")

    health = monitor.service_health("gemini")

    assert health.status == "healthy"
    assert health.error_rate == 0.0
    assert health.issues == []


def test_error_rate_thresholds(monitor, retry_metrics):
    for i in range(10):
        record(retry_metrics, "gemini", success=i >= 1)
        record(retry_metrics, "firecrawl", success=i >= 3)

    assert monitor.service_health("gemini").status == "healthy"
    firecrawl = monitor.service_health("firecrawl")
    assert firecrawl.status == "unhealthy"
    assert firecrawl.error_rate == pytest.approx(0.3)


def test_elevated_error_rate_is_degraded(monitor, retry_metrics):
    for i in range(20):
        record(retry_metrics, "gemini", success=i >= 3)

    health = monitor.service_health("gemini")

    assert health.status == "degraded"
    assert health.issues[0].startswith("Elevated error rate")


def test_retries_degrade(monitor, retry_metrics):
    for _ in range(4):
        record(retry_metrics, "gemini", attempts=2)

    health = monitor.service_health("gemini")

    assert health.status == "degraded"
    assert health.retry_rate == 1.0
    assert health.average_attempts == 2.0
    assert len(health.issues) == 2


@pytest.mark.asyncio
async def test_open_circuit_is_unhealthy(monitor, breakers, retry_metrics):
    record(retry_metrics, "gemini")
    await open_circuit(breakers, "gemini")

    health = monitor.service_health("gemini")

    assert health.status == "unhealthy"
    assert health.circuit_state is CircuitState.OPEN


@pytest.mark.asyncio
async def test_half_open_circuit_is_degraded(monitor, breakers, clock):
    await open_circuit(breakers, "gemini")
    clock.advance(120)
    release = asyncio.Event()

    async def trial():
        await release.wait()

    pending = asyncio.create_task(breakers.execute_with_circuit_breaker("gemini", trial))
    await asyncio.sleep(0)

    health = monitor.service_health("gemini")
    release.set()
    await pending

    assert health.status == "degraded"
    assert health.circuit_state is CircuitState.HALF_OPEN


def test_window_excludes_old_outcomes(breakers, wall_clock):
    store = RetryMetricsStore(clock=wall_clock)
    record(store, "gemini", success=False, timestamp=wall_clock.now - timedelta(minutes=10))
    record(store, "gemini", timestamp=wall_clock.now - timedelta(seconds=30))

    health = HealthMonitor(store, breakers, window_seconds=60).service_health("gemini")

    assert health.requests == 1
    assert health.status == "healthy"


@pytest.mark.asyncio
async def test_overall_is_worst_of_known(monitor, breakers, retry_metrics):
    record(retry_metrics, "gemini")
    await open_circuit(breakers, "linkedin")

    system = monitor.overall()

    assert [s.service for s in system.services] == ["gemini", "firecrawl", "linkedin"]
    assert system.status == "unhealthy"
    assert system.summary.healthy_services == 1
    assert system.summary.unknown_services == 1
    assert system.summary.unhealthy_services == 1
    assert system.alerts == ["linkedin is UNHEALTHY - immediate attention required"]
    assert len(system.recommendations) == 1


def test_overall_ignores_unknown(monitor):
    system = monitor.overall()
    assert system.status == "healthy"
    assert system.summary.unknown_services == 2
    assert system.alerts == []
