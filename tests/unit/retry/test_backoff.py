"""
Unit tests for the backoff policy.
"""

import pytest

from resilience_layer.retry.backoff import calculate_delay, exponential_component
from resilience_layer.retry.config import RetryConfig


@pytest.fixture
def config() -> RetryConfig:
    return RetryConfig(max_retries=5, base_delay_ms=1000, max_delay_ms=10000, backoff_multiplier=2.0, jitter_ms=500)


def test_first_retry_waits_base_delay(config):
    assert calculate_delay(0, config, random_fn=lambda: 0.0) == 1000


def test_delay_grows_exponentially(config):
    delays = [calculate_delay(i, config, random_fn=lambda: 0.0) for i in range(4)]
    assert delays == [1000, 2000, 4000, 8000]


def test_exponential_term_is_capped(config):
    assert calculate_delay(4, config, random_fn=lambda: 0.0) == 10000
    assert calculate_delay(9, config, random_fn=lambda: 0.0) == 10000


def test_jitter_is_added_after_cap(config):
    """Capped delays still receive jitter on top."""
    assert calculate_delay(9, config, random_fn=lambda: 0.5) == 10250


def test_jitter_is_floored(config):
    assert calculate_delay(1, config, random_fn=lambda: 0.999) == 2499


def test_delay_never_below_base(config):
    for attempt in range(12):
        for rand in (0.0, 0.3, 0.99):
            assert calculate_delay(attempt, config, random_fn=lambda: rand) >= config.base_delay_ms


def test_huge_attempt_index_does_not_overflow(config):
    assert exponential_component(100_000, config) == 10000.0


def test_negative_attempt_index_rejected(config):
    with pytest.raises(ValueError):
        calculate_delay(-1, config)


def test_default_random_source_stays_in_jitter_range(config):
    for _ in range(50):
        delay = calculate_delay(0, config)
        assert 1000 <= delay < 1500
