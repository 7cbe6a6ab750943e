"""
Unit tests for the HTTP retry variant.
"""

import httpx
import pytest

from resilience_layer.retry.exceptions import RetryableHTTPStatusError
from resilience_layer.retry.http import fetch_with_retry


def make_client(statuses: list[int], calls: list[httpx.Request]) -> httpx.AsyncClient:
    responses = iter(statuses)

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(next(responses), json={"ok": True})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://api.example.com")


@pytest.mark.asyncio
async def test_retryable_status_is_retried(retry_executor):
    calls: list[httpx.Request] = []
    async with make_client([503, 200], calls) as client:
        response = await fetch_with_retry(retry_executor, client, "google_cse", "search", "GET", "/search")

    assert response.status_code == 200
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_non_retryable_status_returned_untouched(retry_executor):
    calls: list[httpx.Request] = []
    async with make_client([404], calls) as client:
        response = await fetch_with_retry(retry_executor, client, "google_cse", "search", "GET", "/search")

    assert response.status_code == 404
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_persistent_retryable_status_raises(retry_executor, retry_metrics):
    calls: list[httpx.Request] = []
    async with make_client([429, 429, 429], calls) as client:
        with pytest.raises(RetryableHTTPStatusError) as exc_info:
            await fetch_with_retry(retry_executor, client, "firecrawl", "scrape", "POST", "/scrape", json={"url": "x"})

    assert exc_info.value.status_code == 429
    assert exc_info.value.message.startswith("HTTP 429")
    assert len(calls) == 3
    assert retry_metrics.get_metrics()[-1].success is False


@pytest.mark.asyncio
async def test_override_applies_to_status_codes(retry_executor):
    calls: list[httpx.Request] = []
    async with make_client([503], calls) as client:
        response = await fetch_with_retry(
            retry_executor,
            client,
            "google_cse",
            "search",
            "GET",
            "/search",
            config_override={"retryable_status_codes": [429]},
        )

    assert response.status_code == 503
    assert len(calls) == 1
