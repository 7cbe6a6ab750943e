"""
Circuit breaker exceptions.
"""

from typing import Optional

from resilience_layer.exceptions import ResilienceError


class CircuitOpenError(ResilienceError):
    """
    Raised when a call is short-circuited without invoking the dependency.

    Distinct from any error the dependency itself raises, so fallback logic
    can tell "never attempted" from "attempted and failed".

    Attributes:
        service: Service whose circuit rejected the call
        retry_after_seconds: Remaining cool-down, or None while a trial is in flight
    """

    def __init__(self, service: str, retry_after_seconds: Optional[float] = None, state: str = "OPEN"):
        self.service = service
        self.retry_after_seconds = retry_after_seconds
        self.state = state

        if retry_after_seconds is not None:
            message = f"Circuit breaker for {service} is OPEN. Next attempt in {retry_after_seconds:.1f}s"
        else:
            message = f"Circuit breaker for {service} is {state} and its trial call is in flight"

        super().__init__(
            message,
            details={"service": service, "state": state, "retry_after_seconds": retry_after_seconds},
        )
