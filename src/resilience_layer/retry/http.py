"""
HTTP variant of the retry executor.

A response whose status is one of the service's retryable status codes is
turned into a RetryableHTTPStatusError inside the attempt, so it is retried
even though the transport call itself did not raise.
"""

from collections.abc import Mapping
from typing import Any

import httpx

from resilience_layer.retry.config import RetryConfig
from resilience_layer.retry.engine import RetryExecutor
from resilience_layer.retry.exceptions import RetryableHTTPStatusError


async def fetch_with_retry(
    executor: RetryExecutor,
    client: httpx.AsyncClient,
    service: str,
    operation: str,
    method: str,
    url: str,
    config_override: RetryConfig | Mapping[str, Any] | None = None,
    **request_kwargs: Any,
) -> httpx.Response:
    """
    Issue an HTTP request under the service's retry policy.

    Non-retryable statuses (e.g. 404) are returned to the caller untouched.

    Raises:
        RetryableHTTPStatusError: A retryable status persisted past the last attempt
        httpx.TransportError: Transport failure on the last attempt
    """
    config = executor.config_for(service, config_override)

    async def attempt() -> httpx.Response:
        response = await client.request(method, url, **request_kwargs)
        if response.status_code in config.retryable_status_codes:
            raise RetryableHTTPStatusError(
                response.status_code, response.reason_phrase, str(response.request.url)
            )
        return response

    result = await executor.execute_with_retry(service, operation, attempt, config_override)
    return result.value
