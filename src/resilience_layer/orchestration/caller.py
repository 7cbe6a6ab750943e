"""
End-to-end resilient call.

    fallback( breaker( retry( fn ) ) )

The breaker wraps the whole retry sequence, so one exhausted sequence is
one breaker failure. The fallback selector decides the degraded outcome
and every terminal outcome is reported to the cost accountant.

Calls given a ``dedupe_key`` are shared with identical concurrent calls.
"""

from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Literal, Optional, TypeVar

import structlog

from resilience_layer.circuit.registry import CircuitBreakerRegistry
from resilience_layer.costs.accountant import CostAccountant
from resilience_layer.costs.models import CostRecord
from resilience_layer.fallback.selector import FallbackSelector
from resilience_layer.orchestration.inflight import RequestDeduplicator
from resilience_layer.retry.config import RetryConfig
from resilience_layer.retry.engine import RetryExecutor

T = TypeVar("T")

logger = structlog.get_logger(__name__)

CallOutcome = Literal["success", "fallback", "failure"]


class ResilientCaller:
    def __init__(
        self,
        retry_executor: RetryExecutor,
        breakers: CircuitBreakerRegistry,
        fallback_selector: FallbackSelector,
        accountant: Optional[CostAccountant] = None,
        cache_ttl_seconds: Optional[int] = None,
        deduplicator: Optional[RequestDeduplicator] = None,
    ):
        self.retry_executor = retry_executor
        self.breakers = breakers
        self.fallback_selector = fallback_selector
        self.accountant = accountant
        self.cache_ttl_seconds = cache_ttl_seconds
        self.deduplicator = deduplicator

    async def call(
        self,
        service: str,
        operation: str,
        fn: Callable[[], Awaitable[T]],
        *,
        cache_key: Optional[str] = None,
        user_id: Optional[str] = None,
        feature: Optional[str] = None,
        tokens_used: Optional[int] = None,
        max_fallback_depth: int = 3,
        config_override: RetryConfig | Mapping[str, Any] | None = None,
        dedupe_key: Optional[str] = None,
    ) -> T:
        """
        Call ``fn`` with circuit breaking, retries and fallback.

        Args:
            service: Target service name (selects every policy)
            operation: Label for retry outcomes and logs
            fn: Zero-argument coroutine function performing one attempt
            cache_key: Key refreshed on success and read by a cache_only fallback
            user_id / feature: Cost attribution
            tokens_used: Token count priced for token-priced services
            max_fallback_depth: Maximum fallback strategies to try
            config_override: Partial retry policy for this call
            dedupe_key: Concurrent calls to the same service with the same key
                share one execution (and one cost record)

        Returns:
            The primary result, or the fallback's degraded result

        Raises:
            The terminal error chosen by the fallback selector
        """
        if dedupe_key is not None and self.deduplicator is not None:
            return await self.deduplicator.dedupe(
                f"{service}:{dedupe_key}",
                lambda: self._call(
                    service, operation, fn, cache_key, user_id, feature, tokens_used, max_fallback_depth, config_override
                ),
            )
        return await self._call(
            service, operation, fn, cache_key, user_id, feature, tokens_used, max_fallback_depth, config_override
        )

    async def _call(
        self,
        service: str,
        operation: str,
        fn: Callable[[], Awaitable[T]],
        cache_key: Optional[str],
        user_id: Optional[str],
        feature: Optional[str],
        tokens_used: Optional[int],
        max_fallback_depth: int,
        config_override: RetryConfig | Mapping[str, Any] | None,
    ) -> T:
        primary_failed = False
        provider_successes = 0
        attempts = 0

        async def protected() -> T:
            nonlocal primary_failed, provider_successes, attempts
            try:
                result = await self.breakers.execute_with_circuit_breaker(
                    service,
                    lambda: self.retry_executor.execute_with_retry(service, operation, fn, config_override),
                )
            except Exception:
                primary_failed = True
                raise
            provider_successes += 1
            attempts += result.metrics.attempts
            return result.value

        try:
            value = await self.fallback_selector.execute_with_fallback(
                service, protected, max_fallback_depth=max_fallback_depth, cache_key=cache_key
            )
        except Exception as error:
            await self._account(service, operation, "failure", user_id, feature, None, 0, attempts, error)
            raise

        outcome: CallOutcome = "success" if provider_successes and not primary_failed else "fallback"
        if outcome == "success" and cache_key is not None:
            await self._refresh_cache(service, cache_key, value)
        await self._account(
            service, operation, outcome, user_id, feature, tokens_used, provider_successes, attempts
        )
        return value

    async def _refresh_cache(self, service: str, cache_key: str, value: Any) -> None:
        cache = self.fallback_selector.cache
        if cache is None:
            return
        try:
            await cache.set(cache_key, value, ttl=self.cache_ttl_seconds)
        except Exception as error:
            logger.warning(
                "Cache refresh failed",
                service=service,
                cache_key=cache_key,
                error_type=type(error).__name__,
            )

    async def _account(
        self,
        service: str,
        operation: str,
        outcome: CallOutcome,
        user_id: Optional[str],
        feature: Optional[str],
        tokens_used: Optional[int],
        provider_calls: int,
        attempts: int,
        error: Optional[BaseException] = None,
    ) -> None:
        """
        Report the terminal outcome.

        Every successful provider call is priced, including one made by a
        reduced_functionality or alternative_service fallback. Outcomes served
        without reaching the provider are recorded at zero cost.
        """
        if self.accountant is None:
            return

        metadata: dict[str, Any] = {"operation": operation, "outcome": outcome, "attempts": attempts}
        if error is not None:
            metadata["error_type"] = type(error).__name__

        # Accounting is advisory: a store failure is logged, the call result stands
        try:
            if provider_calls:
                await self.accountant.track_api_call(
                    user_id,
                    service,
                    feature,
                    tokens_used=tokens_used,
                    calls=provider_calls,
                    metadata=metadata,
                )
            else:
                await self.accountant.track_call(
                    CostRecord(user_id=user_id, service=service, feature=feature, metadata=metadata)
                )
        except Exception as tracking_error:
            logger.error(
                "Cost tracking failed",
                service=service,
                operation=operation,
                outcome=outcome,
                error_type=type(tracking_error).__name__,
                error=str(tracking_error),
            )
