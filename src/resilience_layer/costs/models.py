"""
Cost accounting models.
"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

BudgetType = Literal["monthly", "daily"]


class CostRecord(BaseModel):
    """One billable external call. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    user_id: Optional[str] = None
    service: str
    feature: Optional[str] = None
    cost_usd: float = Field(default=0.0, ge=0.0)
    tokens_used: Optional[int] = Field(default=None, ge=0)
    api_calls: int = Field(default=1, ge=1)
    cache_hit: bool = False
    cache_savings_usd: float = Field(default=0.0, ge=0.0)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class CostBreakdown(BaseModel):
    cost: float = 0.0
    calls: int = 0


class CostSummary(BaseModel):
    total_cost_usd: float = 0.0
    total_calls: int = 0
    cache_hits: int = 0
    cache_savings_usd: float = 0.0
    cache_hit_rate: float = Field(default=0.0, description="Cache hits as a percentage of records")
    by_service: dict[str, CostBreakdown] = Field(default_factory=dict)
    by_feature: dict[str, CostBreakdown] = Field(default_factory=dict)


class UserCost(BaseModel):
    user_id: str
    cost: float


class AdminCostSummary(BaseModel):
    total_cost_usd: float = 0.0
    total_calls: int = 0
    total_users: int = 0
    by_service: dict[str, float] = Field(default_factory=dict)
    by_feature: dict[str, float] = Field(default_factory=dict)
    top_users: list[UserCost] = Field(default_factory=list)


class BudgetConfig(BaseModel):
    user_id: str
    budget_type: BudgetType = "monthly"
    limit_usd: float = Field(..., gt=0.0)
    alert_threshold_percent: float = Field(default=80.0, gt=0.0, le=100.0)


class BudgetAlert(BaseModel):
    """Advisory: a budget crossed its alert threshold. Calls are never blocked."""

    user_id: str
    budget_type: BudgetType
    budget_limit_usd: float
    current_spend_usd: float
    percentage_used: float
    alert_threshold_percent: float
    exceeded: bool
