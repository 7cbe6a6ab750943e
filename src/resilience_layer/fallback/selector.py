"""
Fallback strategy selector.

Single pass: the primary call, then at most ``max_fallback_depth``
configured strategies in order. The first success wins; if everything
fails the last encountered error propagates. Outer retries of the whole
ladder are the caller's concern.
"""

import asyncio
import copy
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Optional, TypeVar

import structlog

from resilience_layer.circuit.exceptions import CircuitOpenError
from resilience_layer.circuit.registry import CircuitBreakerRegistry
from resilience_layer.fallback.exceptions import (
    CacheOnlyError,
    FallbackNotConfiguredError,
    ServiceUnavailableError,
)
from resilience_layer.fallback.models import FallbackStrategy, FallbackStrategyKind
from resilience_layer.monitoring.metrics import fallback_executions_total
from resilience_layer.persistence.store import BaseStore

T = TypeVar("T")

logger = structlog.get_logger(__name__)

FALLBACK_WARNING_KEY = "fallback_warning"


class FallbackSelector:
    """
    Executes a service's degradation ladder when its primary call fails.

    Attributes:
        configs: Ordered strategies per service
        cache: Store consulted by cache_only (optional)
        breakers: Breaker registry; an open circuit skips the primary call (optional)
    """

    def __init__(
        self,
        configs: Mapping[str, list[FallbackStrategy]],
        cache: Optional[BaseStore] = None,
        breakers: Optional[CircuitBreakerRegistry] = None,
        demo_latency_seconds: float = 0.1,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.configs: dict[str, list[FallbackStrategy]] = {
            service: list(strategies) for service, strategies in configs.items()
        }
        self.cache = cache
        self.breakers = breakers
        self.demo_latency_seconds = demo_latency_seconds
        self._sleep = sleep

    async def execute_with_fallback(
        self,
        service: str,
        primary: Callable[[], Awaitable[T]],
        max_fallback_depth: int = 3,
        cache_key: Optional[str] = None,
    ) -> T:
        """
        Run ``primary`` and degrade through the configured strategies on failure.

        Args:
            service: Service name selecting the strategy list
            primary: Zero-argument coroutine function for the real call
            max_fallback_depth: Maximum number of strategies to try
            cache_key: Key read by cache_only

        Raises:
            The primary error when no strategies are configured, otherwise the
            last strategy's error (e.g. ServiceUnavailableError, CacheOnlyError)
        """
        strategies = self.configs.get(service, [])
        last_error: Exception

        if self.breakers is not None and not self.breakers.is_call_permitted(service):
            snapshot = self.breakers.get_breaker(service).snapshot()
            last_error = CircuitOpenError(
                service,
                retry_after_seconds=snapshot.retry_after_seconds,
                state=snapshot.state.value,
            )
            logger.info("Circuit open, skipping primary call", service=service)
            if not strategies:
                raise last_error
        else:
            try:
                return await primary()
            except Exception as error:
                if not strategies:
                    raise
                last_error = error
                logger.warning(
                    "Primary call failed, degrading",
                    service=service,
                    error_type=type(error).__name__,
                    fallbacks=len(strategies),
                )

        for index, strategy in enumerate(strategies[: max(0, max_fallback_depth)]):
            logger.info(
                "Executing fallback strategy",
                service=service,
                strategy=strategy.kind.value,
                index=index,
                message=strategy.message,
            )
            try:
                result = await self._execute_strategy(service, strategy, primary, cache_key)
            except Exception as error:
                last_error = error
                fallback_executions_total.labels(
                    service=service, strategy=strategy.kind.value, success="false"
                ).inc()
                logger.warning(
                    "Fallback strategy failed",
                    service=service,
                    strategy=strategy.kind.value,
                    index=index,
                    error_type=type(error).__name__,
                )
                continue

            fallback_executions_total.labels(
                service=service, strategy=strategy.kind.value, success="true"
            ).inc()
            return result

        logger.error("All fallback strategies failed", service=service, error_type=type(last_error).__name__)
        raise last_error

    async def _execute_strategy(
        self,
        service: str,
        strategy: FallbackStrategy,
        primary: Callable[[], Awaitable[Any]],
        cache_key: Optional[str],
    ) -> Any:
        if strategy.kind is FallbackStrategyKind.CACHE_ONLY:
            return await self._cache_only(service, cache_key)

        if strategy.kind is FallbackStrategyKind.DEMO_DATA:
            if strategy.data is None:
                raise FallbackNotConfiguredError(
                    "Demo data not configured for this service", service=service, strategy=strategy.kind.value
                )
            await self._sleep(self.demo_latency_seconds)
            return copy.deepcopy(strategy.data)

        if strategy.kind is FallbackStrategyKind.REDUCED_FUNCTIONALITY:
            result = await primary()
            return _annotate(
                result,
                {
                    "message": strategy.message,
                    "strategy": strategy.kind.value,
                    "reduced_features": list(strategy.reduced_features),
                },
            )

        if strategy.kind is FallbackStrategyKind.ALTERNATIVE_SERVICE:
            if not strategy.alternative_service:
                raise FallbackNotConfiguredError(
                    "Alternative service not configured", service=service, strategy=strategy.kind.value
                )
            logger.info(
                "Attempting alternative service",
                service=service,
                alternative_service=strategy.alternative_service,
            )
            result = await primary()
            return _annotate(
                result,
                {
                    "message": strategy.message,
                    "strategy": strategy.kind.value,
                    "alternative_service": strategy.alternative_service,
                },
            )

        raise ServiceUnavailableError(service, strategy.message or "Service unavailable")

    async def _cache_only(self, service: str, cache_key: Optional[str]) -> Any:
        if self.cache is None or cache_key is None:
            raise CacheOnlyError(service, cache_key)

        cached = await self.cache.get(cache_key)
        if cached is None:
            raise CacheOnlyError(service, cache_key)

        logger.info("Serving cached result", service=service, cache_key=cache_key)
        return cached

    # === Strategy table management ===

    def get_fallback_config(self, service: str, index: int = 0) -> Optional[FallbackStrategy]:
        """Strategy at ``index``, clamped to the last one; None when none are configured."""
        strategies = self.configs.get(service)
        if not strategies:
            return None
        return strategies[min(max(index, 0), len(strategies) - 1)]

    def get_available_fallbacks(self, service: str) -> list[FallbackStrategy]:
        return list(self.configs.get(service, []))

    def has_fallbacks(self, service: str) -> bool:
        return bool(self.configs.get(service))

    def fallback_count(self, service: str) -> int:
        return len(self.configs.get(service, []))

    def add_fallback(self, service: str, strategy: FallbackStrategy) -> None:
        self.configs.setdefault(service, []).append(strategy)

    def remove_fallback(self, service: str, index: int) -> bool:
        strategies = self.configs.get(service)
        if not strategies or not 0 <= index < len(strategies):
            return False
        del strategies[index]
        return True

    def all_fallbacks(self) -> dict[str, list[FallbackStrategy]]:
        return {service: list(strategies) for service, strategies in self.configs.items()}


def _annotate(result: Any, warning: dict[str, Any]) -> Any:
    """Attach a fallback warning to mapping results; other shapes pass through."""
    if isinstance(result, Mapping):
        return {**result, FALLBACK_WARNING_KEY: warning}
    return result
