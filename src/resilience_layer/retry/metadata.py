"""
Retry outcome tracking.

RetryOutcome is created once per completed retry sequence (success or
exhaustion) and never mutated afterwards.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Generic, TypeVar

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RetryOutcome:
    """
    Terminal record of one retry sequence.

    Attributes:
        service: Service name the sequence targeted
        operation: Caller-supplied operation label
        attempts: Number of invocations made (1..max_retries + 1)
        total_delay_ms: Sum of backoff sleeps between attempts
        success: Whether the final attempt succeeded
        last_error: Message of the last failure, if any
        timestamp: Completion time (UTC)
    """

    service: str
    operation: str
    attempts: int
    total_delay_ms: int
    success: bool
    last_error: str | None = None
    timestamp: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        """Reject impossible attempt and delay values."""
        if self.attempts < 1:
            raise ValueError("attempts must be >= 1")

        if self.total_delay_ms < 0:
            raise ValueError("total_delay_ms must be >= 0")

    @property
    def retried(self) -> bool:
        return self.attempts > 1


@dataclass(frozen=True)
class RetryResult(Generic[T]):
    """Value returned by the operation plus the outcome of its retry sequence."""

    value: T
    metrics: RetryOutcome
