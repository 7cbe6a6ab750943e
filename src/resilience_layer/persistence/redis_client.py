"""
Shared redis.asyncio connection pool for the persistence collaborator.

Every RedisStore of the process borrows connections from one pool created
on first use and closed on application shutdown.
"""

import logging
from typing import Optional

from redis.asyncio import ConnectionPool as AsyncConnectionPool
from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import RedisError

from resilience_layer.config import Settings

logger = logging.getLogger(__name__)

HEALTH_CHECK_INTERVAL_SECONDS = 30


class RedisClient:
    """Process-wide owner of the async connection pool."""

    _async_pool: Optional[AsyncConnectionPool] = None

    @classmethod
    def get_async_client(cls, settings: Settings) -> AsyncRedis:
        """
        Client backed by the shared pool, creating the pool on first call.

        Args:
            settings: REDIS_URL, REDIS_MAX_CONNECTIONS and REDIS_SOCKET_TIMEOUT are read
        """
        if cls._async_pool is None:
            cls._async_pool = AsyncConnectionPool.from_url(
                settings.REDIS_URL,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                decode_responses=True,  # Store values are JSON text
                socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
                socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
                retry_on_timeout=True,
                health_check_interval=HEALTH_CHECK_INTERVAL_SECONDS,
            )
            logger.info(
                "Initialized Redis connection pool (max_connections=%s)",
                settings.REDIS_MAX_CONNECTIONS,
            )

        return AsyncRedis(connection_pool=cls._async_pool)

    @staticmethod
    async def ping(client: AsyncRedis) -> bool:
        """Whether Redis answers; connection problems are reported as False."""
        try:
            return bool(await client.ping())
        except (RedisError, OSError) as e:
            logger.warning("Redis ping failed: %s", e)
            return False

    @classmethod
    async def close_async_pool(cls) -> None:
        if cls._async_pool is not None:
            await cls._async_pool.disconnect()
            cls._async_pool = None
            logger.info("Closed Redis connection pool")
