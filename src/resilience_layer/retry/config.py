"""
Per-service retry configuration.

RetryConfig instances are immutable; one instance per service name.
Per-call overrides produce a new instance via ``merged``.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

DEFAULT_RETRYABLE_ERRORS = (
    "ECONNRESET",
    "ETIMEDOUT",
    "ENOTFOUND",
    "ECONNREFUSED",
    "ConnectionResetError",
    "ConnectionRefusedError",
    "Connection reset",
    "timed out",
)


class RetryConfig(BaseModel):
    """
    Retry policy for one service.

    Attributes:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        base_delay_ms: Delay before the first retry, before jitter
        max_delay_ms: Cap applied to the exponential term (jitter is added after the cap)
        backoff_multiplier: Growth factor per attempt, strictly greater than 1
        jitter_ms: Upper bound of the uniform random addition
        retryable_status_codes: HTTP status codes that trigger a retry
        retryable_errors: Substrings matched against error messages and type names
    """

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0)
    base_delay_ms: int = Field(default=1000, ge=0)
    max_delay_ms: int = Field(default=10000, ge=0)
    backoff_multiplier: float = Field(default=2.0, gt=1.0)
    jitter_ms: int = Field(default=500, ge=0)
    retryable_status_codes: frozenset[int] = DEFAULT_RETRYABLE_STATUS_CODES
    retryable_errors: tuple[str, ...] = DEFAULT_RETRYABLE_ERRORS

    @model_validator(mode="after")
    def _check_delay_bounds(self) -> "RetryConfig":
        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError(
                f"max_delay_ms ({self.max_delay_ms}) must be >= base_delay_ms ({self.base_delay_ms})"
            )
        return self

    def merged(self, override: "RetryConfig | Mapping[str, Any] | None") -> "RetryConfig":
        """Return a new config with the override's fields applied on top of this one."""
        if override is None:
            return self
        if isinstance(override, RetryConfig):
            updates = override.model_dump(exclude_unset=True)
        else:
            updates = dict(override)
        if not updates:
            return self
        return RetryConfig.model_validate({**self.model_dump(), **updates})


def default_retry_configs() -> dict[str, RetryConfig]:
    """Built-in per-service retry table used when nothing is configured."""
    return {
        "google_cse": RetryConfig(
            max_retries=3,
            base_delay_ms=1000,
            max_delay_ms=10000,
            backoff_multiplier=2.0,
            jitter_ms=500,
        ),
        "firecrawl": RetryConfig(
            max_retries=2,
            base_delay_ms=2000,
            max_delay_ms=15000,
            backoff_multiplier=2.5,
            jitter_ms=1000,
        ),
        "gemini": RetryConfig(
            max_retries=2,
            base_delay_ms=1500,
            max_delay_ms=8000,
            backoff_multiplier=2.0,
            jitter_ms=750,
        ),
        "supabase": RetryConfig(
            max_retries=2,
            base_delay_ms=500,
            max_delay_ms=5000,
            backoff_multiplier=2.0,
            jitter_ms=250,
        ),
    }
