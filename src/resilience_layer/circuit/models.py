"""
Circuit breaker state, configuration and read model.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"

    @property
    def gauge_value(self) -> int:
        return {"CLOSED": 0, "HALF_OPEN": 1, "OPEN": 2}[self.value]


class CircuitBreakerConfig(BaseModel):
    """
    Per-service breaker policy.

    Attributes:
        failure_threshold: Consecutive failures that open the circuit
        reset_timeout_seconds: Cool-down before a trial call is allowed
        call_timeout_seconds: Optional timeout applied to every protected call
        half_open_max_calls: Trial calls allowed in flight while HALF_OPEN
    """

    model_config = ConfigDict(frozen=True)

    failure_threshold: int = Field(default=5, ge=1)
    reset_timeout_seconds: float = Field(default=60.0, ge=0.0)
    call_timeout_seconds: Optional[float] = Field(default=None, gt=0.0)
    half_open_max_calls: int = Field(default=1, ge=1)


class CircuitBreakerSnapshot(BaseModel):
    """
    Point-in-time view of one breaker, for health reporting.

    Times are values of the breaker's clock (monotonic by default);
    ``retry_after_seconds`` is relative and only set while OPEN.
    """

    service: str
    state: CircuitState
    failure_count: int
    success_count: int
    request_count: int
    rejected_count: int
    last_failure_time: Optional[float] = None
    last_state_change_time: Optional[float] = None
    retry_after_seconds: Optional[float] = None


DEFAULT_CIRCUIT_BREAKER = CircuitBreakerConfig(failure_threshold=5, reset_timeout_seconds=60.0)


def default_circuit_breaker_configs() -> dict[str, CircuitBreakerConfig]:
    """Built-in per-service breaker table."""
    return {
        "google_cse": CircuitBreakerConfig(failure_threshold=3, reset_timeout_seconds=30.0),
        "firecrawl": CircuitBreakerConfig(failure_threshold=3, reset_timeout_seconds=30.0),
        "gemini": CircuitBreakerConfig(failure_threshold=5, reset_timeout_seconds=30.0),
        "supabase": CircuitBreakerConfig(failure_threshold=10, reset_timeout_seconds=15.0),
    }
