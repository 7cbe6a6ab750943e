"""
Circuit breaker layer.

Per-service CLOSED/OPEN/HALF_OPEN state machines that fail fast with
CircuitOpenError while a dependency is known to be failing.
"""

from resilience_layer.circuit.breaker import CircuitBreaker, counts_as_failure
from resilience_layer.circuit.exceptions import CircuitOpenError
from resilience_layer.circuit.models import (
    DEFAULT_CIRCUIT_BREAKER,
    CircuitBreakerConfig,
    CircuitBreakerSnapshot,
    CircuitState,
    default_circuit_breaker_configs,
)
from resilience_layer.circuit.registry import CircuitBreakerRegistry, should_use_fallback

__all__ = [
    "CircuitState",
    "CircuitBreakerConfig",
    "CircuitBreakerSnapshot",
    "DEFAULT_CIRCUIT_BREAKER",
    "default_circuit_breaker_configs",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitOpenError",
    "counts_as_failure",
    "should_use_fallback",
]
