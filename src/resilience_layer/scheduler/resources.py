"""
Resource pressure sampling.

The default monitor infers pressure from scheduler state instead of reading
OS counters:

    memory = min(0.9, 0.3 + active_tasks / max_concurrency * 0.6)
    cpu    = 0.2 + min(0.5, throughput / 10)

Any object with a compatible ``sample`` method can replace it.
"""

from typing import Optional, Protocol

from resilience_layer.scheduler.models import ResourceSample


class ResourceSampler(Protocol):
    def sample(self, active_tasks: int, throughput: float) -> ResourceSample: ...


class ResourceMonitor:
    def __init__(self, max_concurrency: int = 5):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.max_concurrency = max_concurrency
        self.last_sample: Optional[ResourceSample] = None

    def sample(self, active_tasks: int, throughput: float) -> ResourceSample:
        memory = min(0.9, 0.3 + (active_tasks / self.max_concurrency) * 0.6)
        cpu = 0.2 + min(0.5, max(0.0, throughput) / 10)
        self.last_sample = ResourceSample(memory=memory, cpu=cpu)
        return self.last_sample
