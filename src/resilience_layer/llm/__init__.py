"""LLM provider layer: abstract client, Gemini implementation and error types."""

from resilience_layer.llm.base_client import BaseLLMClient
from resilience_layer.llm.exceptions import (
    LLMClientError,
    LLMConnectionError,
    LLMGenerationError,
    LLMModelNotAvailableError,
    LLMRateLimitError,
    LLMTimeoutError,
)
from resilience_layer.llm.gemini_client import GeminiClient
from resilience_layer.llm.models import LLMGenerationRequest, LLMGenerationResponse

__all__ = [
    "BaseLLMClient",
    "GeminiClient",
    "LLMGenerationRequest",
    "LLMGenerationResponse",
    "LLMClientError",
    "LLMConnectionError",
    "LLMGenerationError",
    "LLMModelNotAvailableError",
    "LLMRateLimitError",
    "LLMTimeoutError",
]
