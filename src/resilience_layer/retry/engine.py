"""
Retry executor with exponential backoff and jitter.

This module implements the RetryExecutor that wraps an arbitrary async
operation, classifies its failures as retryable or fatal, sleeps between
attempts according to the backoff policy and records exactly one
RetryOutcome per sequence.

Usage:
    executor = RetryExecutor(default_retry_configs(), RetryMetricsStore())
    result = await executor.execute_with_retry("gemini", "extract_speakers", call)
    result.value, result.metrics.attempts
"""

import asyncio
import random
import re
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

import httpx
import structlog

from resilience_layer.llm.exceptions import LLMConnectionError
from resilience_layer.monitoring.metrics import retry_attempts_total, retry_sequences_total
from resilience_layer.retry.backoff import calculate_delay
from resilience_layer.retry.config import RetryConfig
from resilience_layer.retry.metadata import RetryOutcome, RetryResult
from resilience_layer.retry.metrics_store import RetryMetricsStore

T = TypeVar("T")

logger = structlog.get_logger(__name__)

NETWORK_ERROR_TYPES: tuple[type[BaseException], ...] = (
    httpx.TransportError,
    ConnectionError,
    TimeoutError,
    LLMConnectionError,
)

Sleep = Callable[[float], Awaitable[Any]]


async def _sleep_ms(delay_ms: float) -> None:
    await asyncio.sleep(delay_ms / 1000.0)


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__


class RetryExecutor:
    """
    Executes async operations under a per-service retry policy.

    Attributes:
        configs: Retry policy per service name
        metrics_store: Shared outcome store (one record per sequence)
        default_service: Service whose policy applies to unknown names
    """

    def __init__(
        self,
        configs: Mapping[str, RetryConfig],
        metrics_store: RetryMetricsStore,
        default_service: str = "google_cse",
        sleep: Sleep = _sleep_ms,
        random_fn: Callable[[], float] = random.random,
    ):
        """
        Initialize retry executor.

        Args:
            configs: Retry policy per service name
            metrics_store: Store receiving every terminal RetryOutcome
            default_service: Key of ``configs`` used for unknown services
            sleep: Coroutine awaited with the backoff delay in milliseconds
            random_fn: Uniform [0, 1) source for jitter
        """
        self.configs = dict(configs)
        self.metrics_store = metrics_store
        self.default_service = default_service
        self._sleep = sleep
        self._random = random_fn

        logger.info(
            "RetryExecutor initialized",
            services=sorted(self.configs),
            default_service=default_service,
        )

    def config_for(
        self,
        service: str,
        override: RetryConfig | Mapping[str, Any] | None = None,
    ) -> RetryConfig:
        """Resolve the policy for ``service`` and apply a per-call override."""
        base = self.configs.get(service) or self.configs.get(self.default_service) or RetryConfig()
        return base.merged(override)

    @staticmethod
    def is_retryable(error: BaseException, config: RetryConfig) -> bool:
        """
        Classify an error.

        Retryable when the message or exception type name contains one of the
        configured error substrings, when the message contains a configured
        status code as a standalone token, or when the error is a generic
        network/transport failure.
        """
        if isinstance(error, NETWORK_ERROR_TYPES):
            return True

        message = str(error)
        haystack = f"{type(error).__name__}: {message}"
        if any(fragment and fragment in haystack for fragment in config.retryable_errors):
            return True

        return any(
            re.search(rf"(?<!\d){code}(?!\d)", message) for code in config.retryable_status_codes
        )

    async def execute_with_retry(
        self,
        service: str,
        operation: str,
        fn: Callable[[], Awaitable[T]],
        config_override: RetryConfig | Mapping[str, Any] | None = None,
    ) -> RetryResult[T]:
        """
        Invoke ``fn`` until it succeeds, fails fatally or the policy is exhausted.

        Args:
            service: Service name selecting the retry policy
            operation: Label recorded with the outcome
            fn: Zero-argument coroutine function performing one attempt
            config_override: Partial policy applied on top of the service's

        Returns:
            RetryResult with the operation's value and the sequence outcome

        Raises:
            The original exception of the last attempt, once the error is
            non-retryable or retries are exhausted
        """
        config = self.config_for(service, config_override)
        total_delay_ms = 0

        for attempt in range(config.max_retries + 1):
            try:
                value = await fn()
            except Exception as error:
                retryable = self.is_retryable(error, config)
                final = attempt == config.max_retries

                if final or not retryable:
                    retry_attempts_total.labels(
                        service=service,
                        outcome="retryable_error" if retryable else "fatal_error",
                    ).inc()
                    self._record(
                        RetryOutcome(
                            service=service,
                            operation=operation,
                            attempts=attempt + 1,
                            total_delay_ms=total_delay_ms,
                            success=False,
                            last_error=_describe(error),
                        )
                    )
                    logger.warning(
                        "Retry sequence failed",
                        service=service,
                        operation=operation,
                        attempts=attempt + 1,
                        retryable=retryable,
                        error_type=type(error).__name__,
                    )
                    raise

                retry_attempts_total.labels(service=service, outcome="retryable_error").inc()
                delay_ms = calculate_delay(attempt, config, self._random)
                total_delay_ms += delay_ms

                logger.info(
                    "Retrying after backoff",
                    service=service,
                    operation=operation,
                    attempt=attempt + 1,
                    max_retries=config.max_retries,
                    delay_ms=delay_ms,
                    error=_describe(error),
                )
                await self._sleep(delay_ms)
                continue

            retry_attempts_total.labels(service=service, outcome="success").inc()
            outcome = RetryOutcome(
                service=service,
                operation=operation,
                attempts=attempt + 1,
                total_delay_ms=total_delay_ms,
                success=True,
            )
            self._record(outcome)
            return RetryResult(value=value, metrics=outcome)

        # range(max_retries + 1) is never empty, the loop always returns or raises
        raise AssertionError("retry loop exited without outcome")

    def _record(self, outcome: RetryOutcome) -> None:
        self.metrics_store.record(outcome)
        retry_sequences_total.labels(
            service=outcome.service, success=str(outcome.success).lower()
        ).inc()
