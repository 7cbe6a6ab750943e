"""Unit test fixtures (mocks and stubs).

Provides mock objects for testing without external dependencies.
"""

from unittest.mock import AsyncMock

import pytest

from resilience_layer.llm.base_client import BaseLLMClient
from resilience_layer.llm.models import LLMGenerationResponse
from resilience_layer.persistence.store import InMemoryStore


def make_llm_response(content: str, usage_tokens: int = 120) -> LLMGenerationResponse:
    return LLMGenerationResponse(
        content=content,
        model_version="gemini-1.5-flash",
        finish_reason="STOP",
        usage_tokens=usage_tokens,
        prompt_tokens=int(usage_tokens * 0.8),
        completion_tokens=usage_tokens - int(usage_tokens * 0.8),
        latency_ms=250,
    )


@pytest.fixture
def llm_response():
    """Factory fixture: llm_response(content, usage_tokens=120) -> LLMGenerationResponse."""
    return make_llm_response


@pytest.fixture
def mock_llm_client():
    """Mock provider; set ``generate.return_value`` or ``side_effect`` per test."""
    mock = AsyncMock(spec=BaseLLMClient)
    mock.generate = AsyncMock(return_value=make_llm_response("[]"))
    mock.health_check = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def memory_store(clock) -> InMemoryStore:
    return InMemoryStore(clock=clock)


@pytest.fixture
def mock_async_redis():
    """Mock AsyncRedis client for unit tests (async)."""
    mock = AsyncMock()
    mock.set = AsyncMock(return_value=True)
    mock.get = AsyncMock(return_value=None)
    mock.delete = AsyncMock(return_value=1)
    mock.zadd = AsyncMock(return_value=1)
    mock.zrangebyscore = AsyncMock(return_value=[])
    return mock
