"""
Scheduler data model.

Task and result payloads are generic so that the value a processor
returns for a ``ParallelTask[T]`` flows unchanged into ``ParallelResult[R]``.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class ParallelTask(Generic[T]):
    """
    One unit of work submitted to the scheduler.

    Attributes:
        id: Unique within a scheduling run
        data: Payload handed to the processor
        priority: Higher is more urgent
        service: Service tag selecting the retry policy
        max_retries: Retry budget for this task (overrides the service's)
        timeout_seconds: Budget for the whole retry sequence
        retry_count: Retries already consumed before submission
    """

    id: str
    data: T
    priority: float = 0.5
    service: str = "firecrawl"
    max_retries: int = 3
    timeout_seconds: float = 30.0
    retry_count: int = 0


@dataclass(frozen=True)
class ParallelResult(Generic[R]):
    """Outcome of exactly one ParallelTask."""

    id: str
    result: Optional[R]
    error: Optional[BaseException]
    duration_ms: float
    retry_count: int
    success: bool


@dataclass(frozen=True)
class ResourceSample:
    memory: float
    cpu: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class ParallelMetrics:
    """Scheduler-wide rolling state, updated once per completed batch."""

    total_tasks: int = 0
    completed_tasks: int = 0
    failed_tasks: int = 0
    dropped_tasks: int = 0
    average_duration_ms: float = 0.0
    total_duration_ms: float = 0.0
    concurrency_level: int = 0
    resource_utilization: ResourceSample = field(default_factory=lambda: ResourceSample(0.0, 0.0))
    throughput: float = 0.0


class SchedulerConfig(BaseModel):
    """
    Concurrency, batching, resource and early-termination settings.

    Attributes:
        min_concurrency / max_concurrency / default_concurrency: Adaptive level bounds and start value
        adaptive: Whether the level is adjusted after each batch
        max_batch_size: Upper bound of a normal-priority batch
        min_batch_size: Size of high-priority batches (bounded by the current level)
        priority_threshold: Tasks at or above this priority are high-priority
        memory_threshold / cpu_threshold: Pressure above either lowers concurrency
        raise_headroom: Both fractions below threshold * headroom (with positive throughput) raise it
        early_termination: Stop once enough high-quality results exist
        quality_threshold: Confidence needed by the default quality heuristic
        min_results_for_early_termination: Successful and high-quality results both needed
    """

    model_config = ConfigDict(frozen=True)

    min_concurrency: int = Field(default=2, ge=1)
    max_concurrency: int = Field(default=5, ge=1)
    default_concurrency: int = Field(default=3, ge=1)
    adaptive: bool = True

    max_batch_size: int = Field(default=8, ge=1)
    min_batch_size: int = Field(default=2, ge=1)
    priority_threshold: float = 0.7

    memory_threshold: float = Field(default=0.8, gt=0.0, le=1.0)
    cpu_threshold: float = Field(default=0.7, gt=0.0, le=1.0)
    raise_headroom: float = Field(default=0.6, gt=0.0, lt=1.0)

    early_termination: bool = True
    quality_threshold: float = 0.8
    min_results_for_early_termination: int = Field(default=5, ge=1)

    @model_validator(mode="after")
    def _check_bounds(self) -> "SchedulerConfig":
        if not self.min_concurrency <= self.default_concurrency <= self.max_concurrency:
            raise ValueError("concurrency bounds must satisfy min <= default <= max")
        if self.min_batch_size > self.max_batch_size:
            raise ValueError("min_batch_size must be <= max_batch_size")
        return self


@dataclass(frozen=True)
class ProcessOptions:
    """
    Per-run overrides for ``process_parallel``. Unset fields use SchedulerConfig.

    ``quality_predicate`` receives a successful result value and decides
    whether it counts as high quality for early termination.
    """

    max_concurrency: Optional[int] = None
    early_termination: Optional[bool] = None
    quality_threshold: Optional[float] = None
    min_results: Optional[int] = None
    quality_predicate: Optional[Callable[[Any], bool]] = None

    def __post_init__(self) -> None:
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        if self.min_results is not None and self.min_results < 1:
            raise ValueError("min_results must be >= 1")


def create_parallel_task(
    id: str,
    data: T,
    priority: float = 0.5,
    service: str = "firecrawl",
    max_retries: int = 3,
    timeout_seconds: float = 30.0,
) -> ParallelTask[T]:
    return ParallelTask(
        id=id,
        data=data,
        priority=priority,
        service=service,
        max_retries=max_retries,
        timeout_seconds=timeout_seconds,
    )
