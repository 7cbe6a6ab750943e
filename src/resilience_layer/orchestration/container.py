"""
Wiring of every resilience component from explicit settings.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from resilience_layer.batching.aggregator import BatchRequestAggregator
from resilience_layer.batching.kinds import SpeakerExtractionKind
from resilience_layer.circuit.registry import CircuitBreakerRegistry
from resilience_layer.config import Settings
from resilience_layer.costs.accountant import CostAccountant
from resilience_layer.fallback.selector import FallbackSelector
from resilience_layer.llm.gemini_client import GeminiClient
from resilience_layer.monitoring.health import HealthMonitor
from resilience_layer.orchestration.caller import ResilientCaller
from resilience_layer.orchestration.inflight import RequestDeduplicator
from resilience_layer.persistence.redis_client import RedisClient
from resilience_layer.persistence.store import BaseStore, InMemoryStore, RedisStore
from resilience_layer.retry.engine import RetryExecutor
from resilience_layer.retry.metrics_store import RetryMetricsStore
from resilience_layer.scheduler.processor import AdaptiveParallelProcessor

logger = structlog.get_logger(__name__)


@dataclass
class ResilienceContainer:
    settings: Settings
    store: BaseStore
    retry_metrics: RetryMetricsStore
    retry_executor: RetryExecutor
    breakers: CircuitBreakerRegistry
    fallback_selector: FallbackSelector
    accountant: CostAccountant
    caller: ResilientCaller
    scheduler: AdaptiveParallelProcessor
    health_monitor: HealthMonitor
    provider: Optional[GeminiClient] = None
    aggregator: Optional[BatchRequestAggregator] = None

    @classmethod
    def from_settings(cls, settings: Settings, store: Optional[BaseStore] = None) -> "ResilienceContainer":
        """
        Build every component from ``settings``.

        ``store`` overrides STORE_BACKEND; the Gemini provider and the batch
        aggregator are only built when GEMINI_API_KEY is set.
        """
        if store is None:
            if settings.STORE_BACKEND == "redis":
                store = RedisStore(RedisClient.get_async_client(settings), prefix=settings.REDIS_KEY_PREFIX)
            else:
                store = InMemoryStore()

        retry_metrics = RetryMetricsStore(history_limit=settings.METRICS_HISTORY_LIMIT)
        retry_executor = RetryExecutor(
            settings.RETRY_CONFIGS,
            retry_metrics,
            default_service=settings.DEFAULT_RETRY_SERVICE,
        )
        breakers = CircuitBreakerRegistry(
            settings.CIRCUIT_BREAKER_CONFIGS,
            default_config=settings.DEFAULT_CIRCUIT_BREAKER,
        )
        fallback_selector = FallbackSelector(
            settings.FALLBACK_CONFIGS,
            cache=store,
            breakers=breakers,
            demo_latency_seconds=settings.FALLBACK_DEMO_LATENCY_SECONDS,
        )
        accountant = CostAccountant(
            store,
            pricing=settings.SERVICE_PRICING,
            default_monthly_budget_usd=settings.DEFAULT_MONTHLY_BUDGET_USD,
            alert_threshold_percent=settings.BUDGET_ALERT_THRESHOLD_PERCENT,
        )

        provider = None
        aggregator = None
        if settings.GEMINI_API_KEY:
            provider = GeminiClient(
                api_key=settings.GEMINI_API_KEY,
                model=settings.GEMINI_MODEL,
                base_url=settings.GEMINI_BASE_URL,
                timeout=settings.GEMINI_TIMEOUT,
            )
            aggregator = BatchRequestAggregator(
                provider,
                retry_executor,
                batch_size=settings.BATCH_SIZE,
                delay_between_batches_seconds=settings.BATCH_DELAY_SECONDS,
                max_tokens=settings.BATCH_MAX_TOKENS,
            )

        logger.info(
            "Resilience container built",
            store_backend=type(store).__name__,
            retry_services=sorted(settings.RETRY_CONFIGS),
            batching_enabled=aggregator is not None,
        )

        return cls(
            settings=settings,
            store=store,
            retry_metrics=retry_metrics,
            retry_executor=retry_executor,
            breakers=breakers,
            fallback_selector=fallback_selector,
            accountant=accountant,
            caller=ResilientCaller(
                retry_executor,
                breakers,
                fallback_selector,
                accountant,
                cache_ttl_seconds=settings.CACHE_TTL_SECONDS,
                deduplicator=RequestDeduplicator(),
            ),
            scheduler=AdaptiveParallelProcessor(settings.SCHEDULER, retry_executor),
            health_monitor=HealthMonitor(
                retry_metrics,
                breakers,
                window_seconds=settings.HEALTH_WINDOW_SECONDS,
                services=settings.RETRY_CONFIGS.keys(),
            ),
            provider=provider,
            aggregator=aggregator,
        )

    def speaker_extraction_kind(self) -> SpeakerExtractionKind:
        return SpeakerExtractionKind(description_limit=self.settings.BATCH_DESCRIPTION_LIMIT)

    async def close(self) -> None:
        await self.scheduler.shutdown()
        if self.provider is not None:
            await self.provider.close()
        if isinstance(self.store, RedisStore):
            await RedisClient.close_async_pool()
