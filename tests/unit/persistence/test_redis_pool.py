"""
Unit tests for the shared Redis connection pool.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from resilience_layer.config import Settings
from resilience_layer.persistence.redis_client import RedisClient


@pytest.fixture
def mock_settings():
    """Mock settings for testing."""
    settings = MagicMock(spec=Settings)
    settings.REDIS_URL = "redis://localhost:6379/0"
    settings.REDIS_MAX_CONNECTIONS = 50
    settings.REDIS_SOCKET_TIMEOUT = 2.5
    return settings


@pytest.fixture(autouse=True)
def reset_pool():
    """Reset the connection pool before each test."""
    RedisClient._async_pool = None
    yield
    RedisClient._async_pool = None


def test_get_async_client_creates_pool_once(mock_settings):
    with patch("resilience_layer.persistence.redis_client.AsyncConnectionPool") as mock_pool:
        mock_pool.from_url.return_value = MagicMock()

        RedisClient.get_async_client(mock_settings)
        RedisClient.get_async_client(mock_settings)

        # Pool should be created only once
        mock_pool.from_url.assert_called_once_with(
            mock_settings.REDIS_URL,
            max_connections=mock_settings.REDIS_MAX_CONNECTIONS,
            decode_responses=True,
            socket_timeout=2.5,
            socket_connect_timeout=2.5,
            retry_on_timeout=True,
            health_check_interval=30,
        )


@pytest.mark.asyncio
async def test_close_async_pool():
    mock_pool = MagicMock()
    mock_pool.disconnect = AsyncMock(return_value=None)
    RedisClient._async_pool = mock_pool

    await RedisClient.close_async_pool()

    mock_pool.disconnect.assert_awaited_once()
    assert RedisClient._async_pool is None


@pytest.mark.asyncio
async def test_close_without_pool_is_noop():
    await RedisClient.close_async_pool()
    assert RedisClient._async_pool is None


@pytest.mark.asyncio
async def test_ping_reports_reachable():
    client = MagicMock()
    client.ping = AsyncMock(return_value=True)

    assert await RedisClient.ping(client) is True


@pytest.mark.asyncio
async def test_ping_reports_connection_errors_as_unreachable():
    client = MagicMock()
    client.ping = AsyncMock(side_effect=RedisConnectionError("connection refused"))

    assert await RedisClient.ping(client) is False
