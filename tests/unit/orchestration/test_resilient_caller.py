"""
Unit tests for ResilientCaller: fallback(breaker(retry(fn))) plus accounting.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from resilience_layer.circuit.models import CircuitBreakerConfig
from resilience_layer.circuit.registry import CircuitBreakerRegistry
from resilience_layer.costs.accountant import COST_COLLECTION, CostAccountant
from resilience_layer.fallback.models import default_fallback_configs
from resilience_layer.fallback.selector import FallbackSelector
from resilience_layer.orchestration.caller import ResilientCaller
from resilience_layer.orchestration.inflight import RequestDeduplicator


@pytest.fixture
def breakers(clock) -> CircuitBreakerRegistry:
    return CircuitBreakerRegistry(default_config=CircuitBreakerConfig(failure_threshold=2), clock=clock)


@pytest.fixture
def accountant(memory_store, wall_clock) -> CostAccountant:
    return CostAccountant(memory_store, clock=wall_clock)


@pytest.fixture
def caller(retry_executor, breakers, memory_store, accountant, no_sleep) -> ResilientCaller:
    selector = FallbackSelector(default_fallback_configs(), cache=memory_store, breakers=breakers, sleep=no_sleep)
    return ResilientCaller(retry_executor, breakers, selector, accountant, cache_ttl_seconds=60)


async def cost_records(store) -> list[dict]:
    return await store.query(COST_COLLECTION)


@pytest.mark.asyncio
async def test_success_is_priced_and_cached(caller, memory_store):
    fn = AsyncMock(return_value={"results": ["a"]})

    value = await caller.call(
        "google_cse", "search", fn, cache_key="search:legal", user_id="user-1", feature="search"
    )

    assert value == {"results": ["a"]}
    assert await memory_store.get("search:legal") == {"results": ["a"]}
    [record] = await cost_records(memory_store)
    assert record["cost_usd"] == pytest.approx(0.0005)
    assert record["metadata"] == {"operation": "search", "outcome": "success", "attempts": 1}


@pytest.mark.asyncio
async def test_transient_failure_is_retried(caller, memory_store, breakers):
    fn = AsyncMock(side_effect=[ConnectionError("reset"), "ok"])

    assert await caller.call("google_cse", "search", fn) == "ok"

    [record] = await cost_records(memory_store)
    assert record["metadata"]["attempts"] == 2
    assert breakers.get_breaker("google_cse").failure_count == 0


@pytest.mark.asyncio
async def test_exhausted_retries_degrade_to_demo_data(caller, memory_store, breakers):
    fn = AsyncMock(side_effect=ConnectionError("down"))

    value = await caller.call("google_cse", "search", fn, user_id="user-1")

    assert value[0]["title"].startswith("Legal Tech Conference")
    assert fn.await_count == 3
    assert breakers.get_breaker("google_cse").failure_count == 1
    [record] = await cost_records(memory_store)
    assert record["cost_usd"] == 0.0
    assert record["metadata"]["outcome"] == "fallback"


@pytest.mark.asyncio
async def test_fallback_that_reaches_the_provider_is_priced(caller, memory_store):
    fn = AsyncMock(side_effect=[ValueError("bad prompt"), {"events": []}])

    value = await caller.call("gemini", "filter", fn, user_id="user-1", tokens_used=1000)

    assert value["fallback_warning"]["strategy"] == "reduced_functionality"
    assert fn.await_count == 2
    [record] = await cost_records(memory_store)
    assert record["cost_usd"] == pytest.approx(0.00012)
    assert record["api_calls"] == 1
    assert record["metadata"]["outcome"] == "fallback"


@pytest.mark.asyncio
async def test_terminal_failure_is_recorded_and_raised(caller, memory_store):
    with pytest.raises(ValueError):
        await caller.call("linkedin", "profile", AsyncMock(side_effect=ValueError("bad profile")))

    [record] = await cost_records(memory_store)
    assert record["metadata"]["outcome"] == "failure"
    assert record["metadata"]["error_type"] == "ValueError"


@pytest.mark.asyncio
async def test_cache_only_serves_last_success(caller):
    await caller.call("gemini", "filter", AsyncMock(return_value=["cached"]), cache_key="filter:berlin")

    value = await caller.call(
        "gemini", "filter", AsyncMock(side_effect=ConnectionError("down")), cache_key="filter:berlin"
    )

    assert value == ["cached"]


@pytest.mark.asyncio
async def test_open_circuit_skips_the_call(caller, breakers):
    for _ in range(2):
        await caller.call("google_cse", "search", AsyncMock(side_effect=ConnectionError("down")))

    fn = AsyncMock(return_value="fresh")
    value = await caller.call("google_cse", "search", fn)

    fn.assert_not_awaited()
    assert isinstance(value, list)


@pytest.mark.asyncio
async def test_accounting_failure_does_not_fail_the_call(retry_executor, breakers, memory_store):
    accountant = AsyncMock(spec=CostAccountant)
    accountant.track_api_call.side_effect = RuntimeError("store down")
    caller = ResilientCaller(retry_executor, breakers, FallbackSelector({}, cache=memory_store), accountant)

    assert await caller.call("google_cse", "search", AsyncMock(return_value="ok")) == "ok"
    accountant.track_api_call.assert_awaited_once()


@pytest.mark.asyncio
async def test_without_accountant(retry_executor, breakers):
    caller = ResilientCaller(retry_executor, breakers, FallbackSelector({}))
    assert await caller.call("gemini", "op", AsyncMock(return_value=1)) == 1


@pytest.mark.asyncio
async def test_identical_concurrent_calls_share_one_execution(
    retry_executor, breakers, memory_store, accountant, no_sleep
):
    selector = FallbackSelector(default_fallback_configs(), cache=memory_store, breakers=breakers, sleep=no_sleep)
    caller = ResilientCaller(retry_executor, breakers, selector, accountant, deduplicator=RequestDeduplicator())
    release = asyncio.Event()
    calls = {"n": 0}

    async def search():
        calls["n"] += 1
        await release.wait()
        return {"results": ["a"]}

    pending = [
        asyncio.ensure_future(caller.call("google_cse", "search", search, dedupe_key="q=legal")) for _ in range(3)
    ]
    await asyncio.sleep(0)
    release.set()
    results = await asyncio.gather(*pending)

    assert results == [{"results": ["a"]}] * 3
    assert calls["n"] == 1
    assert len(await cost_records(memory_store)) == 1

    await caller.call("google_cse", "search", search, dedupe_key="q=legal")
    assert calls["n"] == 2
