"""
Unit tests for the read-model API routes.

The container is built from test settings and injected through
``dependency_overrides``; component state is prepared directly.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from resilience_layer.api.dependencies import get_container
from resilience_layer.api.error_handlers import EXCEPTION_HANDLERS
from resilience_layer.api.routes import router
from resilience_layer.orchestration.container import ResilienceContainer
from resilience_layer.retry.metadata import RetryOutcome


@pytest.fixture
def container(test_settings) -> ResilienceContainer:
    return ResilienceContainer.from_settings(test_settings)


@pytest.fixture
def client(container) -> TestClient:
    app = FastAPI()
    app.include_router(router)
    for exc_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exc_class, handler)
    app.dependency_overrides[get_container] = lambda: container
    return TestClient(app)


def trip(container: ResilienceContainer, service: str) -> None:
    breaker = container.breakers.get_breaker(service)

    async def fail_until_open():
        for _ in range(breaker.config.failure_threshold):
            try:
                await breaker.execute(AsyncMock(side_effect=ConnectionError("down")))
            except ConnectionError:
                pass

    asyncio.run(fail_until_open())


class TestHealth:
    def test_system_health(self, client, container):
        container.retry_metrics.record(
            RetryOutcome(service="gemini", operation="op", attempts=1, total_delay_ms=0, success=True)
        )

        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert {s["service"] for s in data["services"]} >= {"gemini", "firecrawl"}

    def test_open_circuit_makes_system_unhealthy(self, client, container):
        trip(container, "firecrawl")

        data = client.get("/health").json()

        assert data["status"] == "unhealthy"
        assert "firecrawl is UNHEALTHY - immediate attention required" in data["alerts"]

    def test_service_health(self, client):
        response = client.get("/health/gemini")

        assert response.status_code == 200
        assert response.json()["status"] == "unknown"


class TestCircuitBreakers:
    def test_snapshot(self, client, container):
        trip(container, "gemini")

        data = client.get("/circuit-breakers").json()

        assert data["gemini"]["state"] == "OPEN"
        assert data["gemini"]["retry_after_seconds"] > 0

    def test_reset(self, client, container):
        trip(container, "gemini")

        response = client.post("/circuit-breakers/gemini/reset")

        assert response.status_code == 200
        assert response.json() == {"service": "gemini", "reset": True}
        assert client.get("/circuit-breakers").json()["gemini"]["state"] == "CLOSED"

    def test_reset_unknown_service(self, client):
        assert client.post("/circuit-breakers/nothing/reset").status_code == 404


class TestRetryStatistics:
    def test_statistics(self, client, container):
        container.retry_metrics.record(
            RetryOutcome(service="google_cse", operation="search", attempts=3, total_delay_ms=300, success=False)
        )

        data = client.get("/retry/statistics", params={"window_seconds": 60}).json()

        assert data["total_requests"] == 1
        assert data["failed_requests"] == 1
        assert data["service_breakdown"]["google_cse"]["average_attempts"] == 3.0

    def test_invalid_window(self, client):
        assert client.get("/retry/statistics", params={"window_seconds": 0}).status_code == 422

    def test_retry_health(self, client):
        data = client.get("/retry/health").json()
        assert data["status"] == "healthy"


def test_scheduler_metrics(client, test_settings):
    data = client.get("/scheduler/metrics").json()

    assert data["total_tasks"] == 0
    assert data["concurrency_level"] == test_settings.SCHEDULER.default_concurrency
    assert set(data["resource_utilization"]) == {"memory", "cpu", "timestamp"}


class TestCosts:
    def test_budget_roundtrip_and_alerts(self, client, container):
        response = client.put("/costs/budget/user-1", json={"budget_type": "daily", "limit_usd": 0.01})
        assert response.status_code == 200
        assert response.json()["alert_threshold_percent"] == 80.0

        asyncio.run(container.accountant.track_api_call("user-1", "linkedin", feature="enrichment"))

        [alert] = client.get("/costs/budget/user-1").json()
        assert alert["budget_type"] == "daily"
        assert alert["exceeded"] is True

    def test_invalid_budget(self, client):
        assert client.put("/costs/budget/user-1", json={"limit_usd": 0}).status_code == 422

    def test_summaries(self, client, container):
        asyncio.run(container.accountant.track_api_call("user-1", "firecrawl", feature="crawl"))
        asyncio.run(container.accountant.track_api_call("user-2", "firecrawl", feature="crawl"))

        summary = client.get("/costs/summary", params={"user_id": "user-1"}).json()
        admin = client.get("/costs/admin-summary").json()

        assert summary["total_calls"] == 1
        assert summary["by_service"]["firecrawl"]["calls"] == 1
        assert admin["total_users"] == 2
        assert admin["total_calls"] == 2
