"""Request tracing middleware for the read-model API."""

import time
import uuid
from typing import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
RESPONSE_TIME_HEADER = "X-Response-Time-Ms"


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """Binds a request id into the structlog context of every request.

    An incoming X-Request-ID header is reused, otherwise a UUID4 is
    generated. The id and the handling time are echoed back as headers.
    Server errors are logged at warning level so degraded read models stand
    out from routine traffic.
    """

    async def dispatch(self, request: Request, call_next: Callable[[Request], Response]) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("Request failed", exc_info=exc, duration_ms=_elapsed_ms(started))
            structlog.contextvars.clear_contextvars()
            raise

        duration_ms = _elapsed_ms(started)
        log = logger.warning if response.status_code >= 500 else logger.info
        log("Request completed", status_code=response.status_code, duration_ms=duration_ms)

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[RESPONSE_TIME_HEADER] = str(duration_ms)
        structlog.contextvars.clear_contextvars()
        return response
