"""
Unit tests for AdaptiveParallelProcessor and ResourceMonitor.
"""

import asyncio

import pytest

from resilience_layer.scheduler.exceptions import TaskTimeoutError
from resilience_layer.scheduler.models import (
    ProcessOptions,
    ResourceSample,
    SchedulerConfig,
    create_parallel_task,
)
from resilience_layer.scheduler.processor import (
    AdaptiveParallelProcessor,
    is_high_quality_result,
    process_speaker_enhancement,
    process_url_discovery,
)
from resilience_layer.scheduler.resources import ResourceMonitor


class FixedSampler:
    """Returns the same pressure on every sample."""

    def __init__(self, memory: float, cpu: float):
        self.memory = memory
        self.cpu = cpu

    def sample(self, active_tasks: int, throughput: float) -> ResourceSample:
        return ResourceSample(memory=self.memory, cpu=self.cpu)


def make_processor(retry_executor, clock, sampler=None, **config) -> AdaptiveParallelProcessor:
    return AdaptiveParallelProcessor(
        SchedulerConfig(**config),
        retry_executor,
        resource_monitor=sampler or FixedSampler(0.5, 0.5),
        clock=clock,
    )


async def echo(task):
    return task.data


@pytest.mark.asyncio
async def test_results_follow_priority_order(retry_executor, clock):
    processor = make_processor(retry_executor, clock, early_termination=False)
    tasks = [
        create_parallel_task("low", "l", priority=0.1),
        create_parallel_task("high", "h", priority=0.9),
        create_parallel_task("mid", "m", priority=0.5),
    ]

    results = await processor.process_parallel(tasks, echo, ProcessOptions(max_concurrency=1))

    assert [r.id for r in results] == ["high", "mid", "low"]
    assert [r.result for r in results] == ["h", "m", "l"]
    assert all(r.success for r in results)


@pytest.mark.asyncio
async def test_failures_are_captured(retry_executor, clock):
    processor = make_processor(retry_executor, clock, early_termination=False)

    async def flaky(task):
        if task.id == "bad":
            raise ValueError("invalid payload")
        return task.data

    tasks = [create_parallel_task("good", 1), create_parallel_task("bad", 2)]
    results = {r.id: r for r in await processor.process_parallel(tasks, flaky)}

    assert results["good"].success
    assert not results["bad"].success
    assert isinstance(results["bad"].error, ValueError)
    assert results["bad"].result is None
    assert processor.get_metrics().failed_tasks == 1


@pytest.mark.asyncio
async def test_retry_count_reflects_attempts(retry_executor, clock):
    processor = make_processor(retry_executor, clock, early_termination=False)
    calls = {"n": 0}

    async def recovers(task):
        calls["n"] += 1
        if calls["n"] < 3:
            raise ConnectionError("reset")
        return "ok"

    [result] = await processor.process_parallel([create_parallel_task("t", None, max_retries=3)], recovers)

    assert result.success
    assert result.retry_count == 2


@pytest.mark.asyncio
async def test_timeout_becomes_task_timeout_error(retry_executor, clock):
    processor = make_processor(retry_executor, clock, early_termination=False)

    async def hang(task):
        await asyncio.sleep(5)

    task = create_parallel_task("slow", None, timeout_seconds=0.01, service="gemini")
    [result] = await processor.process_parallel([task], hang)

    assert not result.success
    assert isinstance(result.error, TaskTimeoutError)
    assert result.error.task_id == "slow"


@pytest.mark.asyncio
async def test_operation_timeout_error_is_not_a_budget_timeout(retry_executor, clock):
    processor = make_processor(retry_executor, clock, early_termination=False)

    async def upstream_timeout(task):
        raise TimeoutError("upstream read timed out")

    task = create_parallel_task("t", None, max_retries=0, timeout_seconds=30.0)
    [result] = await processor.process_parallel([task], upstream_timeout)

    assert not result.success
    assert not isinstance(result.error, TaskTimeoutError)
    assert isinstance(result.error, TimeoutError)
    assert str(result.error) == "upstream read timed out"


@pytest.mark.asyncio
async def test_duplicate_task_ids_are_rejected(retry_executor, clock):
    processor = make_processor(retry_executor, clock)
    calls = []

    async def record(task):
        calls.append(task.id)

    tasks = [create_parallel_task("a", 1), create_parallel_task("b", 2), create_parallel_task("a", 3)]

    with pytest.raises(ValueError, match="Duplicate task ids: a"):
        await processor.process_parallel(tasks, record)
    assert calls == []


@pytest.mark.parametrize("field", ["max_concurrency", "min_results"])
def test_process_options_reject_zero(field):
    with pytest.raises(ValueError, match=field):
        ProcessOptions(**{field: 0})


@pytest.mark.asyncio
async def test_concurrency_never_exceeds_level(retry_executor, clock):
    processor = make_processor(retry_executor, clock, early_termination=False, default_concurrency=3)
    in_flight = 0
    peak = 0

    async def track(task):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0)
        in_flight -= 1
        return task.id

    tasks = [create_parallel_task(f"t{i}", i, priority=0.2) for i in range(10)]
    results = await processor.process_parallel(tasks, track, ProcessOptions(max_concurrency=2))

    assert len(results) == 10
    assert peak <= 2


@pytest.mark.asyncio
async def test_high_priority_batches_are_small(retry_executor, clock):
    processor = make_processor(retry_executor, clock, early_termination=False, min_batch_size=2)
    batches: list[int] = []
    in_flight = 0

    async def track(task):
        nonlocal in_flight
        in_flight += 1
        await asyncio.sleep(0)
        batches.append(in_flight)
        in_flight -= 1
        return None

    tasks = [create_parallel_task(f"h{i}", i, priority=0.9) for i in range(4)]
    await processor.process_parallel(tasks, track)

    assert max(batches) <= 2


@pytest.mark.asyncio
async def test_early_termination_drops_remaining(retry_executor, clock):
    processor = make_processor(retry_executor, clock, min_results_for_early_termination=2)

    async def confident(task):
        return {"confidence": 0.95}

    tasks = [create_parallel_task(f"t{i}", i, priority=0.2) for i in range(10)]
    results = await processor.process_parallel(tasks, confident, ProcessOptions(max_concurrency=2))

    assert len(results) == 2
    assert processor.get_metrics().dropped_tasks == 8


@pytest.mark.asyncio
async def test_custom_quality_predicate(retry_executor, clock):
    processor = make_processor(retry_executor, clock)
    options = ProcessOptions(max_concurrency=1, min_results=1, quality_predicate=lambda value: value == "keep")

    tasks = [create_parallel_task(f"t{i}", "skip" if i < 2 else "keep", priority=0.5 - i * 0.1) for i in range(4)]
    results = await processor.process_parallel(tasks, echo, options)

    assert [r.result for r in results] == ["skip", "skip", "keep"]


@pytest.mark.asyncio
async def test_pressure_lowers_concurrency(retry_executor, clock):
    processor = make_processor(
        retry_executor, clock, FixedSampler(0.95, 0.9), early_termination=False, default_concurrency=3
    )
    tasks = [create_parallel_task(f"t{i}", i, priority=0.2) for i in range(9)]

    await processor.process_parallel(tasks, echo)

    assert processor.concurrency_level == 2
    assert processor.get_metrics().concurrency_level == 2


@pytest.mark.asyncio
async def test_headroom_raises_concurrency(retry_executor, clock):
    processor = make_processor(
        retry_executor, clock, FixedSampler(0.1, 0.1), early_termination=False, default_concurrency=3
    )

    async def timed(task):
        clock.advance(0.1)
        return task.id

    tasks = [create_parallel_task(f"t{i}", i, priority=0.2) for i in range(20)]
    await processor.process_parallel(tasks, timed)

    assert processor.concurrency_level == 5


@pytest.mark.asyncio
async def test_metrics_after_run(retry_executor, clock):
    processor = make_processor(retry_executor, clock, early_termination=False, adaptive=False)

    async def timed(task):
        clock.advance(0.5)
        return task.id

    tasks = [create_parallel_task(f"t{i}", i, priority=0.2) for i in range(3)]
    await processor.process_parallel(tasks, timed)
    metrics = processor.get_metrics()

    assert metrics.total_tasks == 3
    assert metrics.completed_tasks == 3
    assert metrics.throughput > 0
    assert metrics.concurrency_level == 3
    assert processor.get_resource_utilization().memory == pytest.approx(0.5)


@pytest.mark.asyncio
async def test_shutdown_stops_new_batches(retry_executor, clock):
    processor = make_processor(retry_executor, clock, early_termination=False)
    await processor.shutdown()

    results = await processor.process_parallel([create_parallel_task("t", 1)], echo)

    assert results == []
    assert processor.is_shutting_down
    assert processor.get_metrics().dropped_tasks == 1


@pytest.mark.asyncio
async def test_url_discovery_runner(retry_executor, clock):
    processor = make_processor(retry_executor, clock, early_termination=False)

    async def discover(query):
        return [f"https://example.com/{query}"]

    results = await process_url_discovery(processor, ["legal", "privacy"], discover)

    assert {r.id for r in results} == {"discovery_0", "discovery_1"}
    assert all(r.success for r in results)


@pytest.mark.asyncio
async def test_speaker_enhancement_runner_uses_gemini(retry_executor, clock, retry_metrics):
    processor = make_processor(retry_executor, clock, early_termination=False)

    async def enhance(event):
        return {**event, "enhanced": True}

    [result] = await process_speaker_enhancement(processor, [{"id": "e1"}], enhance)

    assert result.result == {"id": "e1", "enhanced": True}
    assert retry_metrics.get_statistics().service_breakdown["gemini"].requests == 1


class TestResourceMonitor:
    def test_formula(self):
        monitor = ResourceMonitor(max_concurrency=5)
        sample = monitor.sample(active_tasks=5, throughput=2.0)
        assert sample.memory == pytest.approx(0.9)
        assert sample.cpu == pytest.approx(0.4)

    def test_caps(self):
        sample = ResourceMonitor(max_concurrency=2).sample(active_tasks=10, throughput=100.0)
        assert sample.memory == pytest.approx(0.9)
        assert sample.cpu == pytest.approx(0.7)

    def test_idle(self):
        sample = ResourceMonitor().sample(active_tasks=0, throughput=0.0)
        assert sample.memory == pytest.approx(0.3)
        assert sample.cpu == pytest.approx(0.2)

    def test_invalid_max_concurrency(self):
        with pytest.raises(ValueError):
            ResourceMonitor(max_concurrency=0)


class TestQualityHeuristic:
    def test_confidence_decides(self):
        assert is_high_quality_result({"confidence": 0.9}, 0.8)
        assert not is_high_quality_result({"confidence": 0.5, "title": "t", "description": "d", "speakers": [1]}, 0.8)

    def test_completeness_without_confidence(self):
        assert is_high_quality_result({"title": "t", "description": "d", "speakers": ["a"]}, 0.8)
        assert not is_high_quality_result({"title": "t", "description": "d", "speakers": []}, 0.8)
        assert not is_high_quality_result(None, 0.8)


def test_config_bounds_validated():
    with pytest.raises(ValueError):
        SchedulerConfig(min_concurrency=4, default_concurrency=3)
