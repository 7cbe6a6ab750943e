"""
FastAPI exception handlers for user-facing error responses.

Every body carries the user-friendly message, a suggested action, an error
code and a timestamp. Technical details only go to the logs.
"""

from datetime import datetime, timezone

import structlog
from fastapi import Request, status
from fastapi.responses import JSONResponse

from resilience_layer.api.models import ErrorResponse
from resilience_layer.circuit.exceptions import CircuitOpenError
from resilience_layer.errors.user_messages import UserFriendlyMessage, get_user_friendly_message
from resilience_layer.exceptions import ResilienceError
from resilience_layer.fallback.exceptions import FallbackError, ServiceUnavailableError
from resilience_layer.llm.exceptions import LLMClientError, LLMTimeoutError
from resilience_layer.scheduler.exceptions import TaskTimeoutError

logger = structlog.get_logger(__name__)


def _error_response(status_code: int, error: str, friendly: UserFriendlyMessage) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        message=friendly.message,
        action=friendly.action,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def circuit_open_handler(request: Request, exc: CircuitOpenError) -> JSONResponse:
    """
    Handle short-circuited calls.

    Maps to 503 Service Unavailable, with Retry-After when the cool-down is known.
    """
    logger.warning("Circuit open", service=exc.service, retry_after_seconds=exc.retry_after_seconds)

    response = _error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE, "circuit_open", get_user_friendly_message(exc)
    )
    if exc.retry_after_seconds is not None:
        response.headers["Retry-After"] = str(max(1, round(exc.retry_after_seconds)))
    return response


async def service_unavailable_handler(request: Request, exc: ServiceUnavailableError) -> JSONResponse:
    """The configured error_response message is already user-facing."""
    logger.warning("Service unavailable", details=exc.details)
    return _error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "service_unavailable",
        UserFriendlyMessage(message=exc.user_message, action="Check back later"),
    )


async def timeout_error_handler(request: Request, exc: ResilienceError) -> JSONResponse:
    """Maps to 504 Gateway Timeout."""
    logger.error("Upstream timeout", error_type=type(exc).__name__, details=exc.details)
    return _error_response(status.HTTP_504_GATEWAY_TIMEOUT, "timeout", get_user_friendly_message(exc))


async def upstream_error_handler(request: Request, exc: ResilienceError) -> JSONResponse:
    """Provider and fallback failures. Maps to 502 Bad Gateway."""
    logger.error("Upstream failure", error_type=type(exc).__name__, details=exc.details)
    return _error_response(status.HTTP_502_BAD_GATEWAY, "upstream_error", get_user_friendly_message(exc))


async def resilience_error_handler(request: Request, exc: ResilienceError) -> JSONResponse:
    logger.error("Resilience error", error_type=type(exc).__name__, details=exc.details)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", get_user_friendly_message(exc)
    )


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected errors.

    Maps to 500 Internal Server Error with the generic message.
    """
    logger.exception("Unexpected error", error_type=type(exc).__name__)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", get_user_friendly_message("")
    )


# Exception handler mapping for FastAPI app.add_exception_handler()
# Starlette resolves handlers along the MRO, so subclasses need their own entry
EXCEPTION_HANDLERS = {
    CircuitOpenError: circuit_open_handler,
    ServiceUnavailableError: service_unavailable_handler,
    TaskTimeoutError: timeout_error_handler,
    LLMTimeoutError: timeout_error_handler,
    LLMClientError: upstream_error_handler,
    FallbackError: upstream_error_handler,
    ResilienceError: resilience_error_handler,
    Exception: generic_error_handler,
}
