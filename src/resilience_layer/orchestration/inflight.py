"""
In-flight request de-duplication.

Concurrent callers asking for the same key share one execution: the first
caller starts it, later callers await the same task. The key is released
as soon as that execution settles, so nothing is cached past completion.

Usage:
    deduplicator = RequestDeduplicator()
    key = request_fingerprint("google_cse", "search", {"q": "legal tech"})
    results = await deduplicator.dedupe(key, lambda: search("legal tech"))
"""

import asyncio
import hashlib
import json
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

import structlog

T = TypeVar("T")

logger = structlog.get_logger(__name__)


def _normalize(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): _normalize(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return value


def request_fingerprint(service: str, operation: str, params: Mapping[str, Any] | None = None) -> str:
    """
    Stable key for a logical request.

    None-valued params are ignored and mapping order does not matter;
    list order does.
    """
    payload = json.dumps(
        {"service": service, "operation": operation, "params": _normalize(params or {})},
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class RequestDeduplicator:
    """Shares one running task per key between concurrent callers."""

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Future[Any]] = {}

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    async def dedupe(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``fn`` unless an execution for ``key`` is already in flight.

        Every caller sharing an execution gets its result or its exception.
        Cancelling one waiting caller does not cancel the shared execution.
        """
        future = self._in_flight.get(key)
        if future is not None:
            logger.debug("Joining in-flight request", key=key, in_flight=len(self._in_flight))
            return await asyncio.shield(future)

        async def run() -> T:
            try:
                return await fn()
            finally:
                self._in_flight.pop(key, None)

        future = asyncio.ensure_future(run())
        self._in_flight[key] = future
        logger.debug("Starting request", key=key, in_flight=len(self._in_flight))
        return await asyncio.shield(future)
