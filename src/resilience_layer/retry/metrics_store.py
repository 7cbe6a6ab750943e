"""
Bounded in-memory store of retry outcomes.

One store instance is passed to every RetryExecutor that should share
statistics; there is no module-level buffer. Oldest outcomes are evicted
once the cap is reached.
"""

from collections import deque
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Literal

import structlog
from pydantic import BaseModel, Field

from resilience_layer.retry.metadata import RetryOutcome

logger = structlog.get_logger(__name__)

HealthStatusLevel = Literal["healthy", "degraded", "unhealthy"]

DEFAULT_HISTORY_LIMIT = 1000
DEFAULT_HEALTH_WINDOW_SECONDS = 300.0


class ServiceRetryStats(BaseModel):
    """Per-service slice of the retry statistics."""

    requests: int
    success_rate: float
    average_attempts: float


class RetryStatistics(BaseModel):
    """Aggregate statistics over the outcomes inside a time window."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_attempts: float = 0.0
    average_delay_ms: float = 0.0
    retry_rate: float = 0.0
    service_breakdown: dict[str, ServiceRetryStats] = Field(default_factory=dict)


class RetryHealthStatus(BaseModel):
    status: HealthStatusLevel
    issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class RetryMetricsStore:
    """
    Ring buffer of RetryOutcome records with windowed aggregation.

    Attributes:
        history_limit: Maximum number of outcomes kept
    """

    def __init__(
        self,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        clock: Callable[[], datetime] | None = None,
    ):
        if history_limit < 1:
            raise ValueError("history_limit must be >= 1")
        self.history_limit = history_limit
        self._outcomes: deque[RetryOutcome] = deque(maxlen=history_limit)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def __len__(self) -> int:
        return len(self._outcomes)

    def record(self, outcome: RetryOutcome) -> None:
        """Append an outcome, evicting the oldest past the cap."""
        self._outcomes.append(outcome)

        if not outcome.success or outcome.retried:
            logger.info(
                "Retry sequence recorded",
                service=outcome.service,
                operation=outcome.operation,
                attempts=outcome.attempts,
                success=outcome.success,
                total_delay_ms=outcome.total_delay_ms,
                last_error=outcome.last_error,
            )

    def get_metrics(self, window_seconds: float | None = None) -> list[RetryOutcome]:
        """Return outcomes, optionally only those recorded in the last ``window_seconds``."""
        if not window_seconds:
            return list(self._outcomes)

        cutoff = self._clock() - timedelta(seconds=window_seconds)
        return [outcome for outcome in self._outcomes if outcome.timestamp >= cutoff]

    def get_statistics(self, window_seconds: float | None = None) -> RetryStatistics:
        outcomes = self.get_metrics(window_seconds)
        if not outcomes:
            return RetryStatistics()

        total = len(outcomes)
        successful = sum(1 for o in outcomes if o.success)
        total_attempts = sum(o.attempts for o in outcomes)
        total_delay = sum(o.total_delay_ms for o in outcomes)
        retried = sum(1 for o in outcomes if o.retried)

        by_service: dict[str, list[RetryOutcome]] = {}
        for outcome in outcomes:
            by_service.setdefault(outcome.service, []).append(outcome)

        breakdown = {
            service: ServiceRetryStats(
                requests=len(items),
                success_rate=sum(1 for o in items if o.success) / len(items),
                average_attempts=sum(o.attempts for o in items) / len(items),
            )
            for service, items in by_service.items()
        }

        return RetryStatistics(
            total_requests=total,
            successful_requests=successful,
            failed_requests=total - successful,
            average_attempts=total_attempts / total,
            average_delay_ms=total_delay / total,
            retry_rate=retried / total,
            service_breakdown=breakdown,
        )

    def get_health_status(
        self, window_seconds: float = DEFAULT_HEALTH_WINDOW_SECONDS
    ) -> RetryHealthStatus:
        """
        Classify recent retry behaviour.

        Thresholds:
        - overall success rate < 0.8: unhealthy
        - overall success rate < 0.95: degraded
        - retry rate > 0.3 or average attempts > 1.5: degraded
        - any service with success rate < 0.9: degraded
        """
        stats = self.get_statistics(window_seconds)
        issues: list[str] = []
        recommendations: list[str] = []
        unhealthy = False

        if stats.total_requests > 0:
            success_rate = stats.successful_requests / stats.total_requests
            if success_rate < 0.8:
                unhealthy = True
                issues.append(f"Low success rate: {success_rate * 100:.1f}%")
                recommendations.append("Check external service health and network connectivity")
            elif success_rate < 0.95:
                issues.append(f"Degraded success rate: {success_rate * 100:.1f}%")
                recommendations.append("Monitor external services for intermittent issues")

        if stats.retry_rate > 0.3:
            issues.append(f"High retry rate: {stats.retry_rate * 100:.1f}%")
            recommendations.append("Consider increasing retry delays or checking service load")

        if stats.average_attempts > 1.5:
            issues.append(f"High average attempts: {stats.average_attempts:.2f}")
            recommendations.append("Review retry configuration and service reliability")

        for service, breakdown in stats.service_breakdown.items():
            if breakdown.success_rate < 0.9:
                issues.append(
                    f"{service} service degraded: {breakdown.success_rate * 100:.1f}% success rate"
                )
                recommendations.append(f"Investigate {service} service health and configuration")

        if unhealthy:
            status: HealthStatusLevel = "unhealthy"
        elif issues:
            status = "degraded"
        else:
            status = "healthy"

        return RetryHealthStatus(status=status, issues=issues, recommendations=recommendations)

    def clear(self) -> None:
        self._outcomes.clear()
