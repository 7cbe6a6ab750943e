"""
FastAPI dependency injection for the resilience layer.

One ResilienceContainer per process: breakers, retry statistics and the
scheduler are stateful and must be shared by every request.
"""

from functools import lru_cache

from fastapi import Depends

from resilience_layer.config import Settings, settings
from resilience_layer.costs.accountant import CostAccountant
from resilience_layer.monitoring.health import HealthMonitor
from resilience_layer.orchestration.container import ResilienceContainer


@lru_cache()
def get_settings() -> Settings:
    return settings


@lru_cache()
def get_container() -> ResilienceContainer:
    """
    Get the process-wide component container.

    Returns:
        ResilienceContainer built from the application settings
    """
    return ResilienceContainer.from_settings(get_settings())


def get_health_monitor(container: ResilienceContainer = Depends(get_container)) -> HealthMonitor:
    return container.health_monitor


def get_accountant(container: ResilienceContainer = Depends(get_container)) -> CostAccountant:
    return container.accountant
