"""
Gemini client implementation.

Communicates with the Gemini ``generateContent`` REST endpoint using an
httpx AsyncClient. The client performs a single attempt per call: retries,
circuit breaking and fallbacks are composed around it by the resilience
layer.
"""

import json
import time
from typing import Any, Optional

import httpx
import structlog

from resilience_layer.llm.base_client import BaseLLMClient
from resilience_layer.llm.exceptions import (
    LLMConnectionError,
    LLMGenerationError,
    LLMModelNotAvailableError,
    LLMRateLimitError,
    LLMTimeoutError,
)
from resilience_layer.llm.models import LLMGenerationRequest, LLMGenerationResponse
from resilience_layer.monitoring.metrics import provider_latency_seconds, provider_tokens_total

logger = structlog.get_logger(__name__)


class GeminiClient(BaseLLMClient):
    """
    Gemini-specific client using httpx for async HTTP communication.

    API Endpoints:
    - POST /v1beta/models/{model}:generateContent: Generate completion
    - GET /v1beta/models/{model}: Model metadata (used as health check)
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com",
        timeout: float = 60.0,
        connection_limits: Optional[httpx.Limits] = None,
        **kwargs,
    ):
        super().__init__(base_url, timeout, **kwargs)
        self.api_key = api_key
        self.model = model

        if connection_limits is None:
            connection_limits = httpx.Limits(
                max_keepalive_connections=5,
                max_connections=10,
                keepalive_expiry=30.0,
            )

        self._client: Optional[httpx.AsyncClient] = None
        self._connection_limits = connection_limits

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                limits=self._connection_limits,
                headers={"x-goog-api-key": self.api_key},
            )
            logger.debug("Created new httpx AsyncClient")
        return self._client

    def _build_payload(self, request: LLMGenerationRequest) -> dict[str, Any]:
        generation_config: dict[str, Any] = {
            "temperature": request.temperature,
            "maxOutputTokens": request.max_tokens,
            "responseMimeType": request.response_mime_type,
        }
        if request.top_p is not None:
            generation_config["topP"] = request.top_p
        if request.stop_sequences:
            generation_config["stopSequences"] = request.stop_sequences

        return {
            "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
            "generationConfig": generation_config,
        }

    async def generate(self, request: LLMGenerationRequest) -> LLMGenerationResponse:
        """
        Generate completion using the Gemini API.

        Response:
        {
            "candidates": [{"content": {"parts": [{"text": "..."}]}, "finishReason": "STOP"}],
            "usageMetadata": {"promptTokenCount": 50, "candidatesTokenCount": 150, "totalTokenCount": 200},
            "modelVersion": "gemini-1.5-flash-002"
        }
        """
        model = request.model or self.model
        start_time = time.time()

        logger.info(
            "Sending generation request to Gemini",
            model=model,
            prompt_length=len(request.prompt),
            max_tokens=request.max_tokens,
        )

        try:
            client = await self._get_client()
            response = await client.post(
                f"/v1beta/models/{model}:generateContent",
                json=self._build_payload(request),
            )
            response.raise_for_status()
            data = response.json()

        except httpx.TimeoutException as e:
            provider_latency_seconds.labels(model=model, success="false").observe(time.time() - start_time)
            raise LLMTimeoutError(
                f"Request timed out after {self.timeout}s",
                details={"model": model, "error": str(e)},
            )

        except httpx.HTTPStatusError as e:
            provider_latency_seconds.labels(model=model, success="false").observe(time.time() - start_time)
            status_code = e.response.status_code
            logger.error("Gemini HTTP error", status_code=status_code, model=model)

            details = {"model": model, "status": status_code}
            if status_code == 404:
                raise LLMModelNotAvailableError(f"HTTP 404: model not found: {model}", details=details)
            if status_code == 429:
                raise LLMRateLimitError("HTTP 429: rate limited by provider", details=details)
            raise LLMGenerationError(f"HTTP {status_code}: provider error", details=details)

        except httpx.TransportError as e:
            provider_latency_seconds.labels(model=model, success="false").observe(time.time() - start_time)
            logger.warning("Gemini network error", model=model, error=str(e))
            raise LLMConnectionError(
                f"Network error: {e}",
                details={"model": model, "error_type": type(e).__name__},
            )

        except json.JSONDecodeError as e:
            raise LLMGenerationError(
                "Invalid JSON envelope from provider",
                details={"model": model, "parse_error": str(e)},
            )

        return self._parse_response(data, model, start_time)

    def _parse_response(
        self, data: dict[str, Any], model: str, start_time: float
    ) -> LLMGenerationResponse:
        candidates = data.get("candidates") or []
        if not candidates:
            raise LLMGenerationError(
                "Empty candidate list from provider",
                details={"model": model, "prompt_feedback": data.get("promptFeedback")},
            )

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        content = "".join(part.get("text", "") for part in parts)
        if not content:
            raise LLMGenerationError("Empty response from provider", details={"model": model})

        usage = data.get("usageMetadata") or {}
        prompt_tokens = usage.get("promptTokenCount")
        completion_tokens = usage.get("candidatesTokenCount")
        total_tokens = usage.get("totalTokenCount")
        if total_tokens is None and prompt_tokens and completion_tokens:
            total_tokens = prompt_tokens + completion_tokens

        latency_ms = int((time.time() - start_time) * 1000)
        model_version = data.get("modelVersion", model)

        provider_latency_seconds.labels(model=model, success="true").observe(latency_ms / 1000.0)
        if prompt_tokens:
            provider_tokens_total.labels(model=model, token_type="prompt").inc(prompt_tokens)
        if completion_tokens:
            provider_tokens_total.labels(model=model, token_type="completion").inc(completion_tokens)

        logger.info(
            "Gemini generation successful",
            model=model_version,
            latency_ms=latency_ms,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
        )

        return LLMGenerationResponse(
            content=content,
            model_version=model_version,
            finish_reason=candidate.get("finishReason", "STOP"),
            usage_tokens=total_tokens,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            latency_ms=latency_ms,
            raw_metadata={"safety_ratings": candidate.get("safetyRatings")},
        )

    async def health_check(self) -> bool:
        try:
            client = await self._get_client()
            response = await client.get(f"/v1beta/models/{self.model}", timeout=5.0)
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.warning("Gemini health check failed", error=str(e))
            return False

    async def close(self):
        """Close the HTTP client connection."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            logger.debug("Closed Gemini client connection")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
