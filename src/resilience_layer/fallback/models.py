"""
Fallback strategy configuration.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class FallbackStrategyKind(str, Enum):
    CACHE_ONLY = "cache_only"
    DEMO_DATA = "demo_data"
    REDUCED_FUNCTIONALITY = "reduced_functionality"
    ALTERNATIVE_SERVICE = "alternative_service"
    ERROR_RESPONSE = "error_response"


class FallbackStrategy(BaseModel):
    """
    One degradation step for a service.

    Attributes:
        kind: Strategy to execute
        message: User-facing description of the degraded mode
        data: Static payload served by demo_data
        alternative_service: Backend name reported by alternative_service
        reduced_features: Features disabled under reduced_functionality
    """

    model_config = ConfigDict(frozen=True)

    kind: FallbackStrategyKind
    message: Optional[str] = None
    data: Optional[Any] = None
    alternative_service: Optional[str] = None
    reduced_features: list[str] = Field(default_factory=list)


_DEMO_SEARCH_RESULTS = [
    {
        "title": "Legal Tech Conference 2025 - Munich",
        "link": "https://example.com/legal-tech-2025",
        "snippet": "Join us for the premier legal technology conference in Munich, featuring "
        "compliance, e-discovery, and regulatory technology sessions.",
    },
    {
        "title": "Compliance Summit 2025 - Berlin",
        "link": "https://example.com/compliance-summit-2025",
        "snippet": "Annual compliance summit bringing together industry leaders to discuss "
        "regulatory changes, risk management, and best practices.",
    },
    {
        "title": "Data Protection & Privacy Conference - Frankfurt",
        "link": "https://example.com/data-protection-2025",
        "snippet": "Comprehensive conference on GDPR, data protection, and privacy regulations "
        "with expert speakers and practical workshops.",
    },
]


def default_fallback_configs() -> dict[str, list[FallbackStrategy]]:
    """Built-in degradation ladders per service."""
    return {
        "google_cse": [
            FallbackStrategy(
                kind=FallbackStrategyKind.DEMO_DATA,
                message="Search service temporarily unavailable, showing demo results",
                data=_DEMO_SEARCH_RESULTS,
            ),
            FallbackStrategy(
                kind=FallbackStrategyKind.ERROR_RESPONSE,
                message="Search service unavailable. Please try again later.",
            ),
        ],
        "firecrawl": [
            FallbackStrategy(
                kind=FallbackStrategyKind.ALTERNATIVE_SERVICE,
                alternative_service="google_cse",
                message="Firecrawl unavailable, falling back to Google Search",
            ),
            FallbackStrategy(
                kind=FallbackStrategyKind.REDUCED_FUNCTIONALITY,
                message="Content extraction unavailable, showing basic search results",
                reduced_features=["content_extraction", "speaker_extraction", "enhanced_metadata"],
            ),
        ],
        "gemini": [
            FallbackStrategy(
                kind=FallbackStrategyKind.REDUCED_FUNCTIONALITY,
                message="AI processing unavailable, using basic filtering",
                reduced_features=["ai_filtering", "content_prioritization", "speaker_extraction"],
            ),
            FallbackStrategy(
                kind=FallbackStrategyKind.CACHE_ONLY,
                message="AI service unavailable, showing cached results only",
            ),
        ],
        "supabase": [
            FallbackStrategy(
                kind=FallbackStrategyKind.CACHE_ONLY,
                message="Database temporarily unavailable, using cached data",
            ),
            FallbackStrategy(
                kind=FallbackStrategyKind.ERROR_RESPONSE,
                message="Database service unavailable. Please try again later.",
            ),
        ],
    }
