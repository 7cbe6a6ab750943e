"""
Base exception for the resilience layer.

Every error raised by the layer itself (as opposed to errors raised by the
wrapped operations, which are always propagated unchanged) derives from
ResilienceError so API handlers can map them to user-facing responses.
"""

from typing import Any


class ResilienceError(Exception):
    """
    Base exception for all resilience-layer errors.

    Attributes:
        message: Human-readable error description
        details: Structured error data for logging/metrics
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message
