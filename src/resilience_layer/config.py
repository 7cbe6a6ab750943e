"""
Configuration settings for the resilience layer.

All settings are loaded from environment variables with sensible defaults.
Per-service tables (retry, circuit breaker, fallback, pricing) accept JSON
in the environment, e.g. RETRY_CONFIGS='{"gemini": {"max_retries": 2, ...}}'.
Use .env file for local development (see .env.example).
"""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from resilience_layer.circuit.models import (
    DEFAULT_CIRCUIT_BREAKER,
    CircuitBreakerConfig,
    default_circuit_breaker_configs,
)
from resilience_layer.costs.pricing import ServicePricing, default_service_pricing
from resilience_layer.fallback.models import FallbackStrategy, default_fallback_configs
from resilience_layer.retry.config import RetryConfig, default_retry_configs
from resilience_layer.scheduler.models import SchedulerConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Application ===
    APP_NAME: str = "Attendry Resilience Layer"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # === Retry ===
    RETRY_CONFIGS: dict[str, RetryConfig] = Field(default_factory=default_retry_configs)
    DEFAULT_RETRY_SERVICE: str = "google_cse"  # Policy used for unknown services
    METRICS_HISTORY_LIMIT: int = 1000  # Retry outcomes kept in memory
    HEALTH_WINDOW_SECONDS: float = 300.0

    # === Circuit Breaker ===
    CIRCUIT_BREAKER_CONFIGS: dict[str, CircuitBreakerConfig] = Field(
        default_factory=default_circuit_breaker_configs
    )
    DEFAULT_CIRCUIT_BREAKER: CircuitBreakerConfig = DEFAULT_CIRCUIT_BREAKER

    # === Fallback ===
    FALLBACK_CONFIGS: dict[str, list[FallbackStrategy]] = Field(default_factory=default_fallback_configs)
    FALLBACK_DEMO_LATENCY_SECONDS: float = 0.1

    # === Scheduler ===
    SCHEDULER: SchedulerConfig = Field(default_factory=SchedulerConfig)

    # === Batching ===
    BATCH_SIZE: int = 5
    BATCH_DELAY_SECONDS: float = 1.0  # Pause between provider calls of one batch run
    BATCH_DESCRIPTION_LIMIT: int = 500  # chars of event description sent to the provider
    BATCH_MAX_TOKENS: int = 4096

    # === Costs ===
    SERVICE_PRICING: dict[str, ServicePricing] = Field(default_factory=default_service_pricing)
    DEFAULT_MONTHLY_BUDGET_USD: Optional[float] = None
    BUDGET_ALERT_THRESHOLD_PERCENT: float = 80.0

    # === Gemini ===
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com"
    GEMINI_API_KEY: Optional[str] = None  # Batch aggregator is disabled without a key
    GEMINI_MODEL: str = "gemini-1.5-flash"
    GEMINI_TIMEOUT: int = 60  # seconds

    # === Persistence ===
    STORE_BACKEND: Literal["memory", "redis"] = "memory"
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_MAX_CONNECTIONS: int = 50  # Connection pool size
    REDIS_KEY_PREFIX: str = "resilience:"
    REDIS_SOCKET_TIMEOUT: float = 5.0  # seconds, connect and read
    CACHE_TTL_SECONDS: int = 3600

    # === Monitoring ===
    PROMETHEUS_ENABLED: bool = True


# Global settings instance
settings = Settings()
