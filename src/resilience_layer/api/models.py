"""
API request/response models.

Component read models (SystemHealth, CircuitBreakerSnapshot, CostSummary,
...) are returned as-is; only shapes specific to the HTTP surface live here.
"""

from dataclasses import asdict
from typing import Optional

from pydantic import BaseModel, Field

from resilience_layer.costs.models import BudgetType
from resilience_layer.scheduler.models import ParallelMetrics


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="User-facing message, never raw provider text")
    action: str = Field(..., description="Suggested next step")
    timestamp: str


class CircuitResetResponse(BaseModel):
    service: str
    reset: bool


class ResourceUtilization(BaseModel):
    memory: float
    cpu: float
    timestamp: float


class SchedulerMetricsResponse(BaseModel):
    total_tasks: int
    completed_tasks: int
    failed_tasks: int
    dropped_tasks: int
    average_duration_ms: float
    total_duration_ms: float
    concurrency_level: int
    resource_utilization: ResourceUtilization
    throughput: float = Field(..., description="Completed tasks per second in the last run")

    @classmethod
    def from_metrics(cls, metrics: ParallelMetrics) -> "SchedulerMetricsResponse":
        return cls.model_validate(asdict(metrics))


class BudgetRequest(BaseModel):
    budget_type: BudgetType = "monthly"
    limit_usd: float = Field(..., gt=0.0)
    alert_threshold_percent: Optional[float] = Field(default=None, gt=0.0, le=100.0)
