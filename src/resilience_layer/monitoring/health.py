"""
Per-service health read model.

Combines windowed retry outcomes with circuit breaker state:

- error rate > 0.2: unhealthy; > 0.1: degraded
- retry rate > 0.3 or average attempts > 1.5: at least degraded
- circuit OPEN: unhealthy; HALF_OPEN: at least degraded
- no outcomes in the window and a CLOSED (or unknown) circuit: unknown
"""

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Literal, Optional

import structlog
from pydantic import BaseModel, Field

from resilience_layer.circuit.models import CircuitState
from resilience_layer.circuit.registry import CircuitBreakerRegistry
from resilience_layer.retry.metrics_store import DEFAULT_HEALTH_WINDOW_SECONDS, RetryMetricsStore

logger = structlog.get_logger(__name__)

ServiceStatus = Literal["healthy", "degraded", "unhealthy", "unknown"]
SystemStatus = Literal["healthy", "degraded", "unhealthy"]

DEFAULT_MONITORED_SERVICES = ("firecrawl", "google_cse", "gemini", "supabase")

UNHEALTHY_ERROR_RATE = 0.2
DEGRADED_ERROR_RATE = 0.1
DEGRADED_RETRY_RATE = 0.3
DEGRADED_AVERAGE_ATTEMPTS = 1.5


class ServiceHealth(BaseModel):
    service: str
    status: ServiceStatus
    requests: int = 0
    error_rate: Optional[float] = None
    retry_rate: Optional[float] = None
    average_attempts: Optional[float] = None
    circuit_state: Optional[CircuitState] = None
    issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    checked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class HealthSummary(BaseModel):
    total_services: int = 0
    healthy_services: int = 0
    degraded_services: int = 0
    unhealthy_services: int = 0
    unknown_services: int = 0


class SystemHealth(BaseModel):
    status: SystemStatus
    services: list[ServiceHealth]
    summary: HealthSummary
    alerts: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


def _worsen(current: ServiceStatus, floor: ServiceStatus) -> ServiceStatus:
    order = {"unknown": 0, "healthy": 1, "degraded": 2, "unhealthy": 3}
    return floor if order[floor] > order[current] else current


class HealthMonitor:
    """Read model over a RetryMetricsStore and a CircuitBreakerRegistry."""

    def __init__(
        self,
        retry_metrics: RetryMetricsStore,
        breakers: Optional[CircuitBreakerRegistry] = None,
        window_seconds: float = DEFAULT_HEALTH_WINDOW_SECONDS,
        services: Iterable[str] = DEFAULT_MONITORED_SERVICES,
    ):
        self.retry_metrics = retry_metrics
        self.breakers = breakers
        self.window_seconds = window_seconds
        self.services = tuple(services)

    def _circuit_state(self, service: str) -> Optional[CircuitState]:
        if self.breakers is None or service not in self.breakers:
            return None
        return self.breakers.get_breaker(service).state

    def service_health(self, service: str) -> ServiceHealth:
        outcomes = [o for o in self.retry_metrics.get_metrics(self.window_seconds) if o.service == service]
        circuit_state = self._circuit_state(service)
        issues: list[str] = []
        recommendations: list[str] = []
        status: ServiceStatus = "unknown"
        health = ServiceHealth(service=service, status=status, requests=len(outcomes), circuit_state=circuit_state)

        if outcomes:
            total = len(outcomes)
            error_rate = sum(1 for o in outcomes if not o.success) / total
            retry_rate = sum(1 for o in outcomes if o.retried) / total
            average_attempts = sum(o.attempts for o in outcomes) / total
            status = "healthy"

            if error_rate > UNHEALTHY_ERROR_RATE:
                status = "unhealthy"
                issues.append(f"High error rate: {error_rate * 100:.1f}%")
                recommendations.append("Check service configuration and network connectivity")
            elif error_rate > DEGRADED_ERROR_RATE:
                status = "degraded"
                issues.append(f"Elevated error rate: {error_rate * 100:.1f}%")
                recommendations.append("Monitor service performance closely")

            if retry_rate > DEGRADED_RETRY_RATE:
                status = _worsen(status, "degraded")
                issues.append(f"High retry rate: {retry_rate * 100:.1f}%")
                recommendations.append("Consider increasing retry delays or checking service load")

            if average_attempts > DEGRADED_AVERAGE_ATTEMPTS:
                status = _worsen(status, "degraded")
                issues.append(f"High average attempts: {average_attempts:.2f}")
                recommendations.append("Review retry configuration and service reliability")

            health.error_rate = error_rate
            health.retry_rate = retry_rate
            health.average_attempts = average_attempts
        else:
            issues.append("No recent activity")

        if circuit_state is CircuitState.OPEN:
            status = "unhealthy"
            issues.append("Circuit breaker is OPEN - service unavailable")
            recommendations.append("Wait for the cool-down or reset the circuit breaker once the service recovers")
        elif circuit_state is CircuitState.HALF_OPEN:
            status = _worsen(status, "degraded")
            issues.append("Circuit breaker is HALF_OPEN - testing recovery")

        health.status = status
        health.issues = issues
        health.recommendations = recommendations
        return health

    def overall(self) -> SystemHealth:
        """Health of every monitored service plus the worst-of aggregate."""
        names = list(self.services)
        if self.breakers is not None:
            names.extend(name for name in self.breakers.snapshot() if name not in names)

        services = [self.service_health(name) for name in names]
        summary = HealthSummary(
            total_services=len(services),
            healthy_services=sum(1 for s in services if s.status == "healthy"),
            degraded_services=sum(1 for s in services if s.status == "degraded"),
            unhealthy_services=sum(1 for s in services if s.status == "unhealthy"),
            unknown_services=sum(1 for s in services if s.status == "unknown"),
        )

        if summary.unhealthy_services:
            status: SystemStatus = "unhealthy"
        elif summary.degraded_services:
            status = "degraded"
        else:
            status = "healthy"

        alerts = [
            f"{s.service} is {s.status.upper()}"
            + (" - immediate attention required" if s.status == "unhealthy" else " - monitor closely")
            for s in services
            if s.status in ("unhealthy", "degraded")
        ]

        recommendations: list[str] = []
        for s in services:
            for recommendation in s.recommendations:
                if recommendation not in recommendations:
                    recommendations.append(recommendation)

        if status != "healthy":
            logger.warning("System health degraded", status=status, alerts=len(alerts))

        return SystemHealth(
            status=status,
            services=services,
            summary=summary,
            alerts=alerts,
            recommendations=recommendations,
        )
