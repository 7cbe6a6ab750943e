"""
Backoff policy.

    delay(n) = floor(min(max_delay, base_delay * multiplier ** n) + U(0, 1) * jitter)

Jitter is additive, so the result is never below ``base_delay_ms``.
"""

import math
import random
from collections.abc import Callable

from resilience_layer.retry.config import RetryConfig


def exponential_component(attempt_index: int, config: RetryConfig) -> float:
    """Capped exponential term without jitter, in milliseconds."""
    if attempt_index < 0:
        raise ValueError("attempt_index must be >= 0")
    try:
        raw = config.base_delay_ms * config.backoff_multiplier**attempt_index
    except OverflowError:
        raw = math.inf
    return min(float(config.max_delay_ms), raw)


def calculate_delay(
    attempt_index: int,
    config: RetryConfig,
    random_fn: Callable[[], float] = random.random,
) -> int:
    """
    Compute the delay before retry ``attempt_index + 1``.

    Args:
        attempt_index: Zero-based index of the attempt that just failed
        config: Retry policy of the target service
        random_fn: Uniform source in [0, 1), injectable for deterministic tests

    Returns:
        Delay in milliseconds
    """
    jitter = random_fn() * config.jitter_ms
    return math.floor(exponential_component(attempt_index, config) + jitter)
