"""
Fallback strategy selector.

Degradation ladders per service (cached data, demo data, reduced
functionality, alternate backend, hard error) executed when a primary call
fails or its circuit is open.
"""

from resilience_layer.fallback.exceptions import (
    CacheOnlyError,
    FallbackError,
    FallbackNotConfiguredError,
    ServiceUnavailableError,
)
from resilience_layer.fallback.models import FallbackStrategy, FallbackStrategyKind, default_fallback_configs
from resilience_layer.fallback.selector import FALLBACK_WARNING_KEY, FallbackSelector

__all__ = [
    "FallbackStrategyKind",
    "FallbackStrategy",
    "default_fallback_configs",
    "FallbackSelector",
    "FALLBACK_WARNING_KEY",
    "FallbackError",
    "CacheOnlyError",
    "FallbackNotConfiguredError",
    "ServiceUnavailableError",
]
