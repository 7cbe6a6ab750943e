"""
Fallback layer exceptions.

Only the fallback selector produces a terminal error; these are the errors
its strategies raise when they cannot serve a degraded response.
"""

from typing import Any

from resilience_layer.exceptions import ResilienceError


class FallbackError(ResilienceError):
    """
    Base class for strategy failures.

    Attributes:
        service: Service whose strategy failed
        strategy: Strategy kind value
    """

    def __init__(self, message: str, service: str, strategy: str, details: dict[str, Any] | None = None):
        self.service = service
        self.strategy = strategy
        super().__init__(message, details={"service": service, "strategy": strategy, **(details or {})})


class CacheOnlyError(FallbackError):
    """cache_only had no cached data to serve. Never fabricates a result."""

    def __init__(self, service: str, cache_key: str | None = None):
        super().__init__(
            f"Service {service} is in cache-only mode. No fresh data available.",
            service=service,
            strategy="cache_only",
            details={"cache_key": cache_key},
        )


class FallbackNotConfiguredError(FallbackError):
    """A strategy is missing the payload or alternate it needs."""


class ServiceUnavailableError(FallbackError):
    """
    Raised by error_response. ``user_message`` is safe to show to end users.
    """

    def __init__(self, service: str, user_message: str):
        self.user_message = user_message
        super().__init__(user_message, service=service, strategy="error_response")
