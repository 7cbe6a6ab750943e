"""
Read-model API routes.

Health, circuit breaker, retry statistics, scheduler and cost endpoints.
All data comes from the process-wide ResilienceContainer.
"""

from datetime import datetime
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from resilience_layer.api.dependencies import get_accountant, get_container, get_health_monitor
from resilience_layer.api.models import BudgetRequest, CircuitResetResponse, SchedulerMetricsResponse
from resilience_layer.circuit.models import CircuitBreakerSnapshot
from resilience_layer.costs.accountant import CostAccountant
from resilience_layer.costs.models import AdminCostSummary, BudgetAlert, BudgetConfig, CostSummary
from resilience_layer.monitoring.health import HealthMonitor, ServiceHealth, SystemHealth
from resilience_layer.orchestration.container import ResilienceContainer
from resilience_layer.retry.metrics_store import RetryHealthStatus, RetryStatistics

logger = structlog.get_logger(__name__)

router = APIRouter()


# === Health ===


@router.get("/health", response_model=SystemHealth, tags=["health"])
async def system_health(monitor: HealthMonitor = Depends(get_health_monitor)) -> SystemHealth:
    """Overall status plus per-service health."""
    return monitor.overall()


@router.get("/health/{service}", response_model=ServiceHealth, tags=["health"])
async def service_health(service: str, monitor: HealthMonitor = Depends(get_health_monitor)) -> ServiceHealth:
    return monitor.service_health(service)


# === Circuit breakers ===


@router.get(
    "/circuit-breakers",
    response_model=dict[str, CircuitBreakerSnapshot],
    tags=["circuit-breakers"],
)
async def circuit_breakers(
    container: ResilienceContainer = Depends(get_container),
) -> dict[str, CircuitBreakerSnapshot]:
    return container.breakers.snapshot()


@router.post(
    "/circuit-breakers/{service}/reset",
    response_model=CircuitResetResponse,
    tags=["circuit-breakers"],
    responses={404: {"description": "No breaker exists for this service"}},
)
async def reset_circuit_breaker(
    service: str,
    container: ResilienceContainer = Depends(get_container),
) -> CircuitResetResponse:
    """Force a breaker back to CLOSED."""
    if not container.breakers.reset(service):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No circuit breaker for {service}")
    logger.info("Circuit breaker reset via API", service=service)
    return CircuitResetResponse(service=service, reset=True)


# === Retry ===


@router.get("/retry/statistics", response_model=RetryStatistics, tags=["retry"])
async def retry_statistics(
    window_seconds: Optional[float] = Query(default=None, gt=0, description="Only outcomes newer than this"),
    container: ResilienceContainer = Depends(get_container),
) -> RetryStatistics:
    return container.retry_metrics.get_statistics(window_seconds)


@router.get("/retry/health", response_model=RetryHealthStatus, tags=["retry"])
async def retry_health(container: ResilienceContainer = Depends(get_container)) -> RetryHealthStatus:
    return container.retry_metrics.get_health_status(container.settings.HEALTH_WINDOW_SECONDS)


# === Scheduler ===


@router.get("/scheduler/metrics", response_model=SchedulerMetricsResponse, tags=["scheduler"])
async def scheduler_metrics(container: ResilienceContainer = Depends(get_container)) -> SchedulerMetricsResponse:
    return SchedulerMetricsResponse.from_metrics(container.scheduler.get_metrics())


# === Costs ===


@router.get("/costs/summary", response_model=CostSummary, tags=["costs"])
async def cost_summary(
    user_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    accountant: CostAccountant = Depends(get_accountant),
) -> CostSummary:
    return await accountant.get_summary(user_id, start, end)


@router.get("/costs/admin-summary", response_model=AdminCostSummary, tags=["costs"])
async def admin_cost_summary(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    accountant: CostAccountant = Depends(get_accountant),
) -> AdminCostSummary:
    return await accountant.get_admin_summary(start, end)


@router.get("/costs/budget/{user_id}", response_model=list[BudgetAlert], tags=["costs"])
async def budget_alerts(user_id: str, accountant: CostAccountant = Depends(get_accountant)) -> list[BudgetAlert]:
    """Budget alerts for the current period (advisory)."""
    return await accountant.check_budget(user_id)


@router.put("/costs/budget/{user_id}", response_model=BudgetConfig, tags=["costs"])
async def set_budget(
    user_id: str,
    request: BudgetRequest,
    accountant: CostAccountant = Depends(get_accountant),
) -> BudgetConfig:
    return await accountant.set_budget(
        user_id, request.budget_type, request.limit_usd, request.alert_threshold_percent
    )
