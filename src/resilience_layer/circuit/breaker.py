"""
Per-service circuit breaker.

State machine:
    CLOSED --(failure_threshold consecutive failures)--> OPEN
    OPEN --(reset timeout elapsed, next call)--> HALF_OPEN (trial call)
    HALF_OPEN --(trial success)--> CLOSED
    HALF_OPEN --(trial failure)--> OPEN (cool-down restarted)

All state changes happen synchronously between awaits, so interleaved
coroutines on one event loop always observe a consistent state.
"""

import asyncio
import re
import time
from collections.abc import Awaitable, Callable
from typing import Optional, TypeVar

import httpx
import structlog

from resilience_layer.circuit.exceptions import CircuitOpenError
from resilience_layer.circuit.models import CircuitBreakerConfig, CircuitBreakerSnapshot, CircuitState
from resilience_layer.monitoring.metrics import circuit_breaker_rejections_total, circuit_breaker_state

T = TypeVar("T")

logger = structlog.get_logger(__name__)

PROGRAMMER_ERROR_TYPES: tuple[type[BaseException], ...] = (
    TypeError,
    NameError,
    SyntaxError,
    AttributeError,
)

# Client errors say nothing about the dependency's health, except these two.
_DEPENDENCY_4XX = {408, 429}
_HTTP_STATUS_IN_MESSAGE = re.compile(r"\bHTTP (\d{3})\b")


def _status_code_of(error: BaseException) -> Optional[int]:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code

    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status

    match = _HTTP_STATUS_IN_MESSAGE.search(str(error))
    return int(match.group(1)) if match else None


def counts_as_failure(error: BaseException) -> bool:
    """
    Whether an error should count against the dependency.

    Programmer errors and HTTP 4xx responses (other than 408 and 429) are
    caller problems and leave the failure counter untouched.
    """
    if isinstance(error, PROGRAMMER_ERROR_TYPES):
        return False

    status = _status_code_of(error)
    if status is not None and 400 <= status < 500 and status not in _DEPENDENCY_4XX:
        return False

    return True


class CircuitBreaker:
    """
    Circuit breaker protecting calls to one service.

    Attributes:
        service: Service name (used in errors, logs and metrics)
        config: Breaker policy
        state: Current state
    """

    def __init__(
        self,
        service: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.service = service
        self.config = config or CircuitBreakerConfig()
        self._clock = clock

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.request_count = 0
        self.rejected_count = 0
        self.last_failure_time: Optional[float] = None
        self.last_state_change_time: Optional[float] = None
        self._opened_at: Optional[float] = None
        self._trials_in_flight = 0

        circuit_breaker_state.labels(service=service).set(self.state.gauge_value)

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self.state
        self.state = new_state
        self.last_state_change_time = self._clock()
        circuit_breaker_state.labels(service=self.service).set(new_state.gauge_value)

        if new_state is CircuitState.OPEN:
            self._opened_at = self.last_state_change_time

        logger.info(
            "Circuit state changed",
            service=self.service,
            from_state=old_state.value,
            to_state=new_state.value,
            failure_count=self.failure_count,
        )

    def _retry_after(self) -> float:
        if self._opened_at is None:
            return 0.0
        elapsed = self._clock() - self._opened_at
        return max(0.0, self.config.reset_timeout_seconds - elapsed)

    def is_call_permitted(self) -> bool:
        """Read-only check: would a call made now reach the dependency?"""
        if self.state is CircuitState.CLOSED:
            return True
        if self.state is CircuitState.OPEN:
            return self._retry_after() <= 0.0
        return self._trials_in_flight < self.config.half_open_max_calls

    def _acquire(self) -> bool:
        """Admit or reject a call; returns True when the call is a HALF_OPEN trial."""
        if self.state is CircuitState.OPEN:
            retry_after = self._retry_after()
            if retry_after > 0.0:
                self._reject()
                raise CircuitOpenError(self.service, retry_after_seconds=retry_after)
            self._transition(CircuitState.HALF_OPEN)

        if self.state is CircuitState.HALF_OPEN:
            if self._trials_in_flight >= self.config.half_open_max_calls:
                self._reject()
                raise CircuitOpenError(self.service, state=CircuitState.HALF_OPEN.value)
            self._trials_in_flight += 1
            self.request_count += 1
            return True

        self.request_count += 1
        return False

    def _reject(self) -> None:
        self.rejected_count += 1
        circuit_breaker_rejections_total.labels(service=self.service).inc()
        logger.debug("Call short-circuited", service=self.service, state=self.state.value)

    def _on_success(self, trial: bool) -> None:
        self.success_count += 1
        self.failure_count = 0
        if trial and self.state is CircuitState.HALF_OPEN:
            self._transition(CircuitState.CLOSED)
            self._opened_at = None

    def _on_failure(self, error: BaseException, trial: bool) -> None:
        if not counts_as_failure(error):
            logger.debug(
                "Non-transient error, not counted",
                service=self.service,
                error_type=type(error).__name__,
            )
            return

        self.failure_count += 1
        self.last_failure_time = self._clock()

        if trial and self.state is CircuitState.HALF_OPEN:
            self._transition(CircuitState.OPEN)
        elif self.state is CircuitState.CLOSED and self.failure_count >= self.config.failure_threshold:
            self._transition(CircuitState.OPEN)

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``fn`` under breaker protection.

        Raises:
            CircuitOpenError: The call was not attempted
            Exception: Whatever ``fn`` raised (including TimeoutError when a call timeout is configured)
        """
        trial = self._acquire()
        try:
            if self.config.call_timeout_seconds is not None:
                result = await asyncio.wait_for(fn(), timeout=self.config.call_timeout_seconds)
            else:
                result = await fn()
        except Exception as error:
            self._on_failure(error, trial)
            raise
        finally:
            if trial:
                self._trials_in_flight = max(0, self._trials_in_flight - 1)

        self._on_success(trial)
        return result

    def snapshot(self) -> CircuitBreakerSnapshot:
        return CircuitBreakerSnapshot(
            service=self.service,
            state=self.state,
            failure_count=self.failure_count,
            success_count=self.success_count,
            request_count=self.request_count,
            rejected_count=self.rejected_count,
            last_failure_time=self.last_failure_time,
            last_state_change_time=self.last_state_change_time,
            retry_after_seconds=self._retry_after() if self.state is CircuitState.OPEN else None,
        )

    def reset(self) -> None:
        """Force the breaker back to CLOSED (operator action)."""
        self.failure_count = 0
        self._trials_in_flight = 0
        self._opened_at = None
        if self.state is not CircuitState.CLOSED:
            self._transition(CircuitState.CLOSED)
        logger.info("Circuit reset to CLOSED", service=self.service)
