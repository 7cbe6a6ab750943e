"""
Batch request aggregator.

Merges many small logical requests of one kind into a few provider calls,
then routes the single response back to each item by id. The aggregator
never raises for provider or parsing problems: every input item always
gets exactly one result.

Usage:
    aggregator = BatchRequestAggregator(gemini_client, retry_executor)
    batch = await aggregator.process_batch(SpeakerExtractionKind(), events)
    batch.results[0].speakers, batch.stats.failed_batches
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

import jsonschema
import structlog

from resilience_layer.batching.exceptions import JSONParseError
from resilience_layer.batching.kinds import BatchKind
from resilience_layer.batching.models import BatchResult, BatchStats
from resilience_layer.batching.parsing import parse_llm_json
from resilience_layer.llm.base_client import BaseLLMClient
from resilience_layer.llm.models import LLMGenerationRequest
from resilience_layer.monitoring.metrics import batch_items_total, batch_provider_calls_total
from resilience_layer.retry.engine import RetryExecutor

logger = structlog.get_logger(__name__)

I = TypeVar("I")
R = TypeVar("R")


class BatchRequestAggregator:
    """Chunks items, one retried provider call per chunk, id-correlated results."""

    def __init__(
        self,
        provider: BaseLLMClient,
        retry_executor: RetryExecutor,
        batch_size: int = 5,
        delay_between_batches_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        service: str = "gemini",
        max_tokens: int = 4096,
        clock: Callable[[], float] = time.monotonic,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.provider = provider
        self.retry_executor = retry_executor
        self.batch_size = batch_size
        self.delay_between_batches_seconds = delay_between_batches_seconds
        self.service = service
        self.max_tokens = max_tokens
        self._sleep = sleep
        self._clock = clock
        self._validators: dict[str, jsonschema.Draft7Validator] = {}

    async def process_batch(self, kind: BatchKind[I, R], items: Sequence[I]) -> BatchResult[R]:
        """
        Resolve every item of ``items`` through as few provider calls as possible.

        Args:
            kind: Batch kind describing prompt, schema and demultiplexing
            items: Logical requests; order is preserved in the results

        Returns:
            BatchResult with one result per input item, in input order
        """
        started = self._clock()
        stats = BatchStats()
        resolved: dict[int, R] = {}
        pending: list[tuple[int, I]] = []

        for index, item in enumerate(items):
            precomputed = kind.precomputed_result(item)
            if precomputed is not None:
                resolved[index] = precomputed
                batch_items_total.labels(kind=kind.name, source="precomputed").inc()
            else:
                pending.append((index, item))

        chunks = [pending[i : i + self.batch_size] for i in range(0, len(pending), self.batch_size)]

        for chunk_index, chunk in enumerate(chunks):
            logger.debug(
                "Processing batch chunk",
                kind=kind.name,
                chunk=chunk_index + 1,
                chunks=len(chunks),
                size=len(chunk),
            )
            chunk_items = [item for _, item in chunk]
            chunk_results = await self._process_chunk(kind, chunk_items, stats)

            for (index, _), result in zip(chunk, chunk_results):
                resolved[index] = result

            if chunk_index < len(chunks) - 1 and self.delay_between_batches_seconds > 0:
                await self._sleep(self.delay_between_batches_seconds)

        stats.total_processed = len(items)
        stats.processing_time_ms = (self._clock() - started) * 1000

        logger.info(
            "Batch processing completed",
            kind=kind.name,
            items=len(items),
            provider_calls=len(chunks),
            successful_batches=stats.successful_batches,
            failed_batches=stats.failed_batches,
            tokens=stats.total_tokens_used,
        )

        return BatchResult(results=[resolved[i] for i in range(len(items))], stats=stats)

    async def _process_chunk(self, kind: BatchKind[I, R], items: list[I], stats: BatchStats) -> list[R]:
        request = LLMGenerationRequest(prompt=kind.build_prompt(items), max_tokens=self.max_tokens)

        try:
            retry_result = await self.retry_executor.execute_with_retry(
                self.service,
                kind.operation,
                lambda: self.provider.generate(request),
            )
        except Exception as error:
            stats.failed_batches += 1
            batch_provider_calls_total.labels(kind=kind.name, success="false").inc()
            batch_items_total.labels(kind=kind.name, source="failed").inc(len(items))
            logger.error(
                "Batch provider call failed",
                kind=kind.name,
                size=len(items),
                error_type=type(error).__name__,
                error=str(error),
            )
            return [kind.failed_result(item, error) for item in items]

        response = retry_result.value
        stats.successful_batches += 1
        stats.total_tokens_used += response.usage_tokens or 0
        batch_provider_calls_total.labels(kind=kind.name, success="true").inc()

        try:
            parsed = parse_llm_json(response.content)
            self._validator(kind).validate(parsed)
        except (JSONParseError, jsonschema.ValidationError) as error:
            batch_items_total.labels(kind=kind.name, source="heuristic").inc(len(items))
            logger.warning(
                "Batch response unusable, applying heuristic results",
                kind=kind.name,
                size=len(items),
                error_type=type(error).__name__,
            )
            return [kind.heuristic_result(item) for item in items]

        by_id = kind.demultiplex(parsed, items)
        results: list[R] = []
        for item in items:
            result = by_id.get(kind.item_id(item))
            if result is None:
                batch_items_total.labels(kind=kind.name, source="default").inc()
                result = kind.default_result(item)
            else:
                batch_items_total.labels(kind=kind.name, source="provider").inc()
            results.append(result)
        return results

    def _validator(self, kind: BatchKind[Any, Any]) -> jsonschema.Draft7Validator:
        validator = self._validators.get(kind.name)
        if validator is None:
            validator = jsonschema.Draft7Validator(kind.response_schema)
            self._validators[kind.name] = validator
        return validator
