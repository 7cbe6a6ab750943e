"""
Cost and usage accounting.
"""

from resilience_layer.costs.accountant import COST_COLLECTION, CostAccountant, period_start
from resilience_layer.costs.models import (
    AdminCostSummary,
    BudgetAlert,
    BudgetConfig,
    CostBreakdown,
    CostRecord,
    CostSummary,
    UserCost,
)
from resilience_layer.costs.pricing import (
    ServicePricing,
    TokenRates,
    calculate_api_cost,
    default_service_pricing,
)

__all__ = [
    "CostAccountant",
    "COST_COLLECTION",
    "period_start",
    "CostRecord",
    "CostSummary",
    "CostBreakdown",
    "AdminCostSummary",
    "UserCost",
    "BudgetConfig",
    "BudgetAlert",
    "ServicePricing",
    "TokenRates",
    "calculate_api_cost",
    "default_service_pricing",
]
