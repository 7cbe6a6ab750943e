"""
Adaptive parallel processor.

Runs prioritized tasks in batches with bounded, adaptive concurrency:

1. Tasks are sorted by priority; high-priority tasks are dispatched first in
   small batches (min(level, min_batch_size)), then normal tasks in batches
   of the current level (at most max_batch_size). Batch sizes are read from
   the adaptive level each time a batch is formed.
2. Each task runs through the retry executor under its own timeout; a
   failure is captured into that task's ParallelResult.
3. After each batch joins, metrics are updated once and the level moves by
   at most one step, clamped to [min_concurrency, max_concurrency].
4. Before each batch, early termination may drop the remaining tasks.
"""

import asyncio
import time
from collections import Counter, deque
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import replace
from typing import Any, Optional, TypeVar

import structlog

from resilience_layer.monitoring.metrics import scheduler_concurrency_level, scheduler_tasks_total
from resilience_layer.retry.engine import RetryExecutor
from resilience_layer.scheduler.exceptions import TaskTimeoutError
from resilience_layer.scheduler.models import (
    ParallelMetrics,
    ParallelResult,
    ParallelTask,
    ProcessOptions,
    ResourceSample,
    SchedulerConfig,
    create_parallel_task,
)
from resilience_layer.scheduler.resources import ResourceMonitor, ResourceSampler

T = TypeVar("T")
R = TypeVar("R")

logger = structlog.get_logger(__name__)

Processor = Callable[[ParallelTask[T]], Awaitable[R]]


def _field(result: Any, name: str) -> Any:
    if isinstance(result, Mapping):
        return result.get(name)
    return getattr(result, name, None)


def is_high_quality_result(result: Any, quality_threshold: float) -> bool:
    """
    Default quality heuristic.

    A numeric ``confidence`` decides on its own; otherwise the result needs a
    title, a description and at least one speaker.
    """
    if result is None:
        return False

    confidence = _field(result, "confidence")
    if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
        return confidence >= quality_threshold

    return bool(_field(result, "title") and _field(result, "description") and _field(result, "speakers"))


class AdaptiveParallelProcessor:
    """
    Priority-aware batch scheduler with resource-driven concurrency.

    Attributes:
        config: Scheduler settings
        retry_executor: Executor wrapping every task attempt
        resource_monitor: Pressure sampler consulted at batch dispatch
        concurrency_level: Current adaptive level
    """

    def __init__(
        self,
        config: SchedulerConfig,
        retry_executor: RetryExecutor,
        resource_monitor: Optional[ResourceSampler] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.retry_executor = retry_executor
        self.resource_monitor = resource_monitor or ResourceMonitor(config.max_concurrency)
        self._clock = clock

        self.concurrency_level = config.default_concurrency
        self.metrics = ParallelMetrics(concurrency_level=self.concurrency_level)
        self._last_sample = ResourceSample(memory=0.0, cpu=0.0)
        self._active: set[asyncio.Task] = set()
        self._batches_completed = 0
        self._shutting_down = False

        scheduler_concurrency_level.set(self.concurrency_level)

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    async def process_parallel(
        self,
        tasks: Sequence[ParallelTask[T]],
        processor: Processor,
        options: Optional[ProcessOptions] = None,
    ) -> list[ParallelResult[R]]:
        """
        Process ``tasks`` and return one ParallelResult per processed task.

        Never raises because of a task failure. Tasks skipped by early
        termination or shutdown get no result and are counted as dropped.

        Raises:
            ValueError: Two tasks share an id
        """
        duplicates = sorted(task_id for task_id, count in Counter(task.id for task in tasks).items() if count > 1)
        if duplicates:
            raise ValueError(f"Duplicate task ids: {', '.join(duplicates)}")

        options = options or ProcessOptions()
        early_termination = (
            self.config.early_termination if options.early_termination is None else options.early_termination
        )
        quality_threshold = (
            self.config.quality_threshold if options.quality_threshold is None else options.quality_threshold
        )
        min_results = (
            self.config.min_results_for_early_termination if options.min_results is None else options.min_results
        )
        quality_predicate = options.quality_predicate or (
            lambda value: is_high_quality_result(value, quality_threshold)
        )

        ordered = sorted(tasks, key=lambda task: task.priority, reverse=True)
        high = deque(t for t in ordered if t.priority >= self.config.priority_threshold)
        normal = deque(t for t in ordered if t.priority < self.config.priority_threshold)

        results: list[ParallelResult[R]] = []
        run_started = self._clock()
        run_completed = 0

        logger.info(
            "Starting parallel processing",
            tasks=len(ordered),
            high_priority=len(high),
            concurrency=self.concurrency_level,
        )

        while high or normal:
            if self._shutting_down:
                self._drop(len(high) + len(normal), reason="shutdown")
                break

            if early_termination and self._enough_quality(results, min_results, quality_predicate):
                self._drop(len(high) + len(normal), reason="early_termination")
                break

            level = self.concurrency_level if options.max_concurrency is None else options.max_concurrency
            if high:
                size = min(level, self.config.min_batch_size)
                source = high
            else:
                size = min(level, self.config.max_batch_size)
                source = normal
            batch = [source.popleft() for _ in range(min(size, len(source)))]

            batch_results, sample = await self._process_batch(batch, processor)
            results.extend(batch_results)
            run_completed += sum(1 for r in batch_results if r.success)

            self._update_metrics(batch_results, run_completed, self._clock() - run_started)
            self._adjust_concurrency(sample)

        logger.info(
            "Parallel processing completed",
            processed=len(results),
            failed=sum(1 for r in results if not r.success),
            duration_ms=round((self._clock() - run_started) * 1000, 1),
            concurrency=self.concurrency_level,
        )
        return results

    async def _process_batch(
        self, batch: list[ParallelTask[T]], processor: Processor
    ) -> tuple[list[ParallelResult[R]], ResourceSample]:
        running = [asyncio.create_task(self._run_task(task, processor)) for task in batch]
        self._active.update(running)

        sample = self.resource_monitor.sample(len(self._active), self.metrics.throughput)
        self._last_sample = sample

        try:
            batch_results = await asyncio.gather(*running)
        finally:
            self._active.difference_update(running)

        return list(batch_results), sample

    async def _run_task(self, task: ParallelTask[T], processor: Processor) -> ParallelResult[R]:
        attempts = 0

        async def attempt() -> R:
            nonlocal attempts
            attempts += 1
            return await processor(task)

        async def sequence() -> tuple[Optional[R], Optional[BaseException]]:
            # Operation errors come back as values; wait_for's TimeoutError is the budget
            try:
                retry_result = await self.retry_executor.execute_with_retry(
                    task.service,
                    f"parallel_task:{task.id}",
                    attempt,
                    {"max_retries": task.max_retries},
                )
            except Exception as exc:
                return None, exc
            return retry_result.value, None

        started = self._clock()
        try:
            value, error = await asyncio.wait_for(sequence(), timeout=task.timeout_seconds)
        except asyncio.TimeoutError:
            value, error = None, TaskTimeoutError(task.id, task.timeout_seconds, task.service)

        success = error is None
        scheduler_tasks_total.labels(service=task.service, success=str(success).lower()).inc()
        if not success:
            logger.warning(
                "Task failed",
                task_id=task.id,
                service=task.service,
                error_type=type(error).__name__,
            )

        return ParallelResult(
            id=task.id,
            result=value,
            error=error,
            duration_ms=(self._clock() - started) * 1000,
            retry_count=task.retry_count + max(0, attempts - 1),
            success=success,
        )

    def _enough_quality(
        self,
        results: list[ParallelResult[R]],
        min_results: int,
        quality_predicate: Callable[[Any], bool],
    ) -> bool:
        successes = [r for r in results if r.success]
        if len(successes) < min_results:
            return False
        high_quality = sum(1 for r in successes if quality_predicate(r.result))
        return high_quality >= min_results

    def _drop(self, remaining: int, reason: str) -> None:
        if remaining <= 0:
            return
        self.metrics.dropped_tasks += remaining
        logger.info("Dropping remaining tasks", remaining=remaining, reason=reason)

    def _update_metrics(
        self, batch_results: list[ParallelResult[R]], run_completed: int, elapsed_seconds: float
    ) -> None:
        """Apply one batch's results to the shared metrics in a single step."""
        if not batch_results:
            return

        successful = sum(1 for r in batch_results if r.success)
        batch_average = sum(r.duration_ms for r in batch_results) / len(batch_results)

        self.metrics.total_tasks += len(batch_results)
        self.metrics.completed_tasks += successful
        self.metrics.failed_tasks += len(batch_results) - successful
        if self._batches_completed == 0:
            self.metrics.average_duration_ms = batch_average
        else:
            self.metrics.average_duration_ms = (self.metrics.average_duration_ms + batch_average) / 2
        self._batches_completed += 1

        self.metrics.total_duration_ms = elapsed_seconds * 1000
        self.metrics.throughput = run_completed / elapsed_seconds if elapsed_seconds > 0 else 0.0
        self.metrics.resource_utilization = self._last_sample

    def _adjust_concurrency(self, sample: ResourceSample) -> None:
        if not self.config.adaptive:
            return

        cfg = self.config
        previous = self.concurrency_level

        if sample.memory > cfg.memory_threshold or sample.cpu > cfg.cpu_threshold:
            self.concurrency_level = max(cfg.min_concurrency, self.concurrency_level - 1)
        elif (
            sample.memory < cfg.memory_threshold * cfg.raise_headroom
            and sample.cpu < cfg.cpu_threshold * cfg.raise_headroom
            and self.metrics.throughput > 0
        ):
            self.concurrency_level = min(cfg.max_concurrency, self.concurrency_level + 1)

        self.concurrency_level = min(cfg.max_concurrency, max(cfg.min_concurrency, self.concurrency_level))
        self.metrics.concurrency_level = self.concurrency_level
        scheduler_concurrency_level.set(self.concurrency_level)

        if self.concurrency_level != previous:
            logger.info(
                "Concurrency adjusted",
                previous=previous,
                current=self.concurrency_level,
                memory=round(sample.memory, 3),
                cpu=round(sample.cpu, 3),
            )

    def get_metrics(self) -> ParallelMetrics:
        """Copy of the current metrics."""
        return replace(self.metrics)

    def get_resource_utilization(self) -> ResourceSample:
        return self._last_sample

    async def shutdown(self) -> None:
        """Stop starting new batches and wait for in-flight tasks to settle."""
        logger.info("Shutting down parallel processor", active_tasks=len(self._active))
        self._shutting_down = True
        if self._active:
            await asyncio.gather(*list(self._active), return_exceptions=True)
        logger.info("Parallel processor shutdown complete")


# === Convenience runners ===


async def process_url_discovery(
    scheduler: AdaptiveParallelProcessor,
    queries: Sequence[str],
    discover: Callable[[str], Awaitable[list[str]]],
) -> list[ParallelResult[list[str]]]:
    """Run URL discovery queries at high priority against firecrawl."""
    tasks = [
        create_parallel_task(f"discovery_{index}", query, priority=0.8, service="firecrawl")
        for index, query in enumerate(queries)
    ]
    return await scheduler.process_parallel(tasks, lambda task: discover(task.data))


async def process_event_extraction(
    scheduler: AdaptiveParallelProcessor,
    urls: Sequence[str],
    extract: Callable[[str], Awaitable[Any]],
) -> list[ParallelResult[Any]]:
    tasks = [
        create_parallel_task(f"extraction_{index}", url, priority=0.6, service="firecrawl")
        for index, url in enumerate(urls)
    ]
    return await scheduler.process_parallel(tasks, lambda task: extract(task.data))


async def process_speaker_enhancement(
    scheduler: AdaptiveParallelProcessor,
    events: Sequence[Any],
    enhance: Callable[[Any], Awaitable[Any]],
) -> list[ParallelResult[Any]]:
    tasks = [
        create_parallel_task(f"enhancement_{index}", event, priority=0.4, service="gemini")
        for index, event in enumerate(events)
    ]
    return await scheduler.process_parallel(tasks, lambda task: enhance(task.data))
