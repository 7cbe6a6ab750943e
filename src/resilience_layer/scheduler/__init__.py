"""
Adaptive parallel task scheduler.

Priority batching with resource-aware concurrency, per-task retry and
timeout, early termination and cooperative shutdown.
"""

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
from resilience_layer.scheduler.processor import (
    AdaptiveParallelProcessor,
    is_high_quality_result,
    process_event_extraction,
    process_speaker_enhancement,
    process_url_discovery,
)
from resilience_layer.scheduler.resources import ResourceMonitor, ResourceSampler

__all__ = [
    "ParallelTask",
    "ParallelResult",
    "ParallelMetrics",
    "ResourceSample",
    "SchedulerConfig",
    "ProcessOptions",
    "create_parallel_task",
    "TaskTimeoutError",
    "ResourceMonitor",
    "ResourceSampler",
    "AdaptiveParallelProcessor",
    "is_high_quality_result",
    "process_url_discovery",
    "process_event_extraction",
    "process_speaker_enhancement",
]
