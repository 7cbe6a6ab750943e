"""
Abstract base client for LLM providers.

Defines the interface the batch aggregator depends on, so the provider can
be swapped (or mocked in tests) without touching the batching logic.
"""

from abc import ABC, abstractmethod

import structlog

from resilience_layer.llm.models import LLMGenerationRequest, LLMGenerationResponse

logger = structlog.get_logger(__name__)


class BaseLLMClient(ABC):
    """
    Abstract base class for LLM provider clients.

    Responsibilities:
    - Send generation requests to the provider
    - Parse responses into LLMGenerationResponse
    - Translate transport failures into LLMClientError subclasses

    Does NOT handle:
    - Retries (that's RetryExecutor's job)
    - Prompt construction and response demultiplexing (BatchRequestAggregator)
    """

    def __init__(self, base_url: str, timeout: float = 60.0, **kwargs):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.extra_config = kwargs

        logger.info(
            "Initialized LLM client",
            client_class=self.__class__.__name__,
            base_url=self.base_url,
            timeout=timeout,
        )

    @abstractmethod
    async def generate(self, request: LLMGenerationRequest) -> LLMGenerationResponse:
        """
        Generate a completion.

        Raises:
            LLMConnectionError: Network/timeout errors
            LLMRateLimitError: Provider rate limit (HTTP 429)
            LLMGenerationError: Server-side generation errors
            LLMModelNotAvailableError: Model not found
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check whether the provider is reachable.

        Note:
            This should NOT raise exceptions - return False on error.
        """

    async def close(self):
        """Release connections. Default implementation does nothing."""
        logger.debug("Closing LLM client", client_class=self.__class__.__name__)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(base_url={self.base_url}, timeout={self.timeout}s)"
