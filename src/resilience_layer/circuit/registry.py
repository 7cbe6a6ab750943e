"""
Registry of per-service circuit breakers.

Breakers are created lazily on first use from the configured table (or the
default config for unknown services). Each registry instance is
independent; there is no process-wide breaker map.
"""

import time
from collections.abc import Awaitable, Callable, Mapping
from typing import TypeVar

import structlog

from resilience_layer.circuit.breaker import CircuitBreaker
from resilience_layer.circuit.models import (
    DEFAULT_CIRCUIT_BREAKER,
    CircuitBreakerConfig,
    CircuitBreakerSnapshot,
    CircuitState,
)

T = TypeVar("T")

logger = structlog.get_logger(__name__)


def should_use_fallback(state: CircuitState) -> bool:
    """OPEN and HALF_OPEN circuits route callers straight to degradation."""
    return state in (CircuitState.OPEN, CircuitState.HALF_OPEN)


class CircuitBreakerRegistry:
    def __init__(
        self,
        configs: Mapping[str, CircuitBreakerConfig] | None = None,
        default_config: CircuitBreakerConfig = DEFAULT_CIRCUIT_BREAKER,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.configs = dict(configs or {})
        self.default_config = default_config
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}

    def __contains__(self, service: str) -> bool:
        return service in self._breakers

    def get_breaker(self, service: str, config: CircuitBreakerConfig | None = None) -> CircuitBreaker:
        """
        Get or create the breaker for ``service``.

        ``config`` only applies when the breaker does not exist yet.
        """
        breaker = self._breakers.get(service)
        if breaker is None:
            effective = config or self.configs.get(service) or self.default_config
            breaker = CircuitBreaker(service, effective, clock=self._clock)
            self._breakers[service] = breaker
            logger.debug(
                "Circuit breaker created",
                service=service,
                failure_threshold=effective.failure_threshold,
                reset_timeout_seconds=effective.reset_timeout_seconds,
            )
        return breaker

    async def execute_with_circuit_breaker(
        self,
        service: str,
        fn: Callable[[], Awaitable[T]],
        config: CircuitBreakerConfig | None = None,
    ) -> T:
        return await self.get_breaker(service, config).execute(fn)

    def is_call_permitted(self, service: str) -> bool:
        breaker = self._breakers.get(service)
        return breaker is None or breaker.is_call_permitted()

    def snapshot(self) -> dict[str, CircuitBreakerSnapshot]:
        """Read-only view of every breaker created so far."""
        return {service: breaker.snapshot() for service, breaker in self._breakers.items()}

    def reset(self, service: str) -> bool:
        """Force one breaker to CLOSED. Returns False if it was never created."""
        breaker = self._breakers.get(service)
        if breaker is None:
            return False
        breaker.reset()
        return True

    def reset_all(self) -> None:
        for breaker in self._breakers.values():
            breaker.reset()
