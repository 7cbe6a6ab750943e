"""
Scheduler exceptions.
"""

from resilience_layer.exceptions import ResilienceError


class TaskTimeoutError(ResilienceError):
    """
    A task's retry sequence exceeded its timeout budget.

    Captured into the task's ParallelResult; never raised out of a run.
    """

    def __init__(self, task_id: str, timeout_seconds: float, service: str):
        self.task_id = task_id
        self.timeout_seconds = timeout_seconds
        self.service = service
        super().__init__(
            f"Task {task_id} timed out after {timeout_seconds}s",
            details={"task_id": task_id, "timeout_seconds": timeout_seconds, "service": service},
        )
