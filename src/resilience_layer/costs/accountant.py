"""
Cost and usage accountant.

Records one CostRecord per billable call in the ``api_costs`` collection
of the store, computes summaries on demand and evaluates per-user budgets.
Budgets live in the key-value part of the store under
``budget:{user_id}:{budget_type}``.
"""

from collections import defaultdict
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from resilience_layer.costs.models import (
    AdminCostSummary,
    BudgetAlert,
    BudgetConfig,
    BudgetType,
    CostBreakdown,
    CostRecord,
    CostSummary,
    UserCost,
)
from resilience_layer.costs.pricing import ServicePricing, calculate_api_cost, default_service_pricing
from resilience_layer.monitoring.metrics import api_cost_usd_total, cache_savings_usd_total
from resilience_layer.persistence.store import BaseStore

logger = structlog.get_logger(__name__)

COST_COLLECTION = "api_costs"
BUDGET_TYPES: tuple[BudgetType, ...] = ("monthly", "daily")
TOP_USERS_LIMIT = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def period_start(budget_type: BudgetType, now: datetime) -> datetime:
    """Start of the current budget period (UTC calendar month or day)."""
    day_start = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    if budget_type == "daily":
        return day_start
    return day_start.replace(day=1)


class CostAccountant:
    """Tracks per-call cost, summarizes spend and evaluates budgets."""

    def __init__(
        self,
        store: BaseStore,
        pricing: Optional[Mapping[str, ServicePricing]] = None,
        default_monthly_budget_usd: Optional[float] = None,
        alert_threshold_percent: float = 80.0,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.pricing = dict(pricing) if pricing is not None else default_service_pricing()
        self.default_monthly_budget_usd = default_monthly_budget_usd
        self.alert_threshold_percent = alert_threshold_percent
        self._clock = clock

    def pricing_for(self, service: str) -> ServicePricing:
        return self.pricing.get(service) or self.pricing.get("other") or ServicePricing()

    async def track_call(self, record: CostRecord) -> list[BudgetAlert]:
        """
        Persist ``record`` and evaluate the user's budgets.

        A cache hit is never charged: its cost moves to ``cache_savings_usd``
        (an explicit saving wins, then the charged cost, then the priced cost).

        Returns:
            Budget alerts raised by this call (advisory, never enforced)
        """
        if record.cache_hit:
            record = self._as_cache_hit(record)

        created_at = record.created_at or self._clock()
        payload = record.model_dump(mode="json")
        payload["created_at"] = created_at.isoformat()
        await self.store.insert(COST_COLLECTION, payload)

        api_cost_usd_total.labels(service=record.service).inc(record.cost_usd)
        if record.cache_savings_usd:
            cache_savings_usd_total.labels(service=record.service).inc(record.cache_savings_usd)

        logger.debug(
            "Cost tracked",
            service=record.service,
            feature=record.feature,
            user_id=record.user_id,
            cost_usd=record.cost_usd,
            cache_hit=record.cache_hit,
        )

        if record.user_id is None:
            return []
        return await self.check_budget(record.user_id)

    def _as_cache_hit(self, record: CostRecord) -> CostRecord:
        savings = record.cache_savings_usd or record.cost_usd
        if not savings:
            savings = calculate_api_cost(
                self.pricing_for(record.service),
                tokens_used=record.tokens_used,
                calls=record.api_calls,
            )
        return record.model_copy(update={"cost_usd": 0.0, "cache_savings_usd": savings})

    async def track_api_call(
        self,
        user_id: Optional[str],
        service: str,
        feature: Optional[str] = None,
        tokens_used: Optional[int] = None,
        input_tokens: Optional[int] = None,
        output_tokens: Optional[int] = None,
        calls: int = 1,
        cache_hit: bool = False,
        metadata: Optional[dict[str, Any]] = None,
    ) -> CostRecord:
        """Price the call from the service's pricing and track it. A cache hit costs nothing."""
        would_be_cost = calculate_api_cost(
            self.pricing_for(service),
            tokens_used=tokens_used,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            calls=calls,
        )
        record = CostRecord(
            user_id=user_id,
            service=service,
            feature=feature,
            cost_usd=0.0 if cache_hit else would_be_cost,
            tokens_used=tokens_used,
            api_calls=max(1, calls),
            cache_hit=cache_hit,
            cache_savings_usd=would_be_cost if cache_hit else 0.0,
            metadata=metadata or {},
            created_at=self._clock(),
        )
        await self.track_call(record)
        return record

    async def _records(
        self,
        user_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[dict[str, Any]]:
        filters = {"user_id": user_id} if user_id is not None else None
        return await self.store.query(COST_COLLECTION, filters, start, end)

    async def get_summary(
        self,
        user_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> CostSummary:
        """Aggregate spend for one user (or everyone) within an optional date range."""
        records = await self._records(user_id, start, end)
        summary = CostSummary(total_calls=len(records))
        by_service: dict[str, CostBreakdown] = defaultdict(CostBreakdown)
        by_feature: dict[str, CostBreakdown] = defaultdict(CostBreakdown)

        for record in records:
            cost = float(record.get("cost_usd") or 0.0)
            calls = int(record.get("api_calls") or 1)
            summary.total_cost_usd += cost

            if record.get("cache_hit"):
                summary.cache_hits += 1
                summary.cache_savings_usd += float(record.get("cache_savings_usd") or 0.0)

            service = by_service[record["service"]]
            service.cost += cost
            service.calls += calls

            if record.get("feature"):
                feature = by_feature[record["feature"]]
                feature.cost += cost
                feature.calls += calls

        summary.by_service = dict(by_service)
        summary.by_feature = dict(by_feature)
        if summary.total_calls:
            summary.cache_hit_rate = summary.cache_hits / summary.total_calls * 100
        return summary

    async def get_admin_summary(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> AdminCostSummary:
        """Spend across all users, with the ten most expensive users."""
        records = await self._records(None, start, end)
        summary = AdminCostSummary(total_calls=len(records))
        by_service: dict[str, float] = defaultdict(float)
        by_feature: dict[str, float] = defaultdict(float)
        by_user: dict[str, float] = defaultdict(float)

        for record in records:
            cost = float(record.get("cost_usd") or 0.0)
            summary.total_cost_usd += cost
            by_service[record["service"]] += cost
            if record.get("feature"):
                by_feature[record["feature"]] += cost
            if record.get("user_id"):
                by_user[record["user_id"]] += cost

        summary.total_users = len(by_user)
        summary.by_service = dict(by_service)
        summary.by_feature = dict(by_feature)
        summary.top_users = [
            UserCost(user_id=user_id, cost=cost)
            for user_id, cost in sorted(by_user.items(), key=lambda item: item[1], reverse=True)[:TOP_USERS_LIMIT]
        ]
        return summary

    async def get_period_spend(self, user_id: str, budget_type: BudgetType = "monthly") -> float:
        now = self._clock()
        records = await self._records(user_id, period_start(budget_type, now), now)
        return sum(float(record.get("cost_usd") or 0.0) for record in records)

    @staticmethod
    def _budget_key(user_id: str, budget_type: BudgetType) -> str:
        return f"budget:{user_id}:{budget_type}"

    async def set_budget(
        self,
        user_id: str,
        budget_type: BudgetType,
        limit_usd: float,
        alert_threshold_percent: Optional[float] = None,
    ) -> BudgetConfig:
        budget = BudgetConfig(
            user_id=user_id,
            budget_type=budget_type,
            limit_usd=limit_usd,
            alert_threshold_percent=(
                self.alert_threshold_percent if alert_threshold_percent is None else alert_threshold_percent
            ),
        )
        await self.store.set(self._budget_key(user_id, budget_type), budget.model_dump(mode="json"))
        logger.info("Budget set", user_id=user_id, budget_type=budget_type, limit_usd=limit_usd)
        return budget

    async def get_budget(self, user_id: str, budget_type: BudgetType) -> Optional[BudgetConfig]:
        stored = await self.store.get(self._budget_key(user_id, budget_type))
        if stored is not None:
            return BudgetConfig.model_validate(stored)
        if budget_type == "monthly" and self.default_monthly_budget_usd:
            return BudgetConfig(
                user_id=user_id,
                budget_type="monthly",
                limit_usd=self.default_monthly_budget_usd,
                alert_threshold_percent=self.alert_threshold_percent,
            )
        return None

    async def check_budget(self, user_id: str) -> list[BudgetAlert]:
        """
        Compare the current period's spend with every configured budget.

        Returns one alert per budget whose threshold is reached.
        """
        alerts: list[BudgetAlert] = []

        for budget_type in BUDGET_TYPES:
            budget = await self.get_budget(user_id, budget_type)
            if budget is None:
                continue

            spend = await self.get_period_spend(user_id, budget_type)
            percentage = spend / budget.limit_usd * 100
            if percentage < budget.alert_threshold_percent:
                continue

            alerts.append(
                BudgetAlert(
                    user_id=user_id,
                    budget_type=budget_type,
                    budget_limit_usd=budget.limit_usd,
                    current_spend_usd=spend,
                    percentage_used=percentage,
                    alert_threshold_percent=budget.alert_threshold_percent,
                    exceeded=spend >= budget.limit_usd,
                )
            )

        if alerts:
            logger.warning(
                "Budget threshold reached",
                user_id=user_id,
                budgets=[alert.budget_type for alert in alerts],
                percentages=[round(alert.percentage_used, 1) for alert in alerts],
            )
        return alerts
