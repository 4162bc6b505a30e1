"""
Redis client with connection pooling.

Uses redis-py's asyncio client with a shared connection pool. Connection-level
retries are disabled: transient Redis failures surface to the resilience
layer, which owns retry and circuit-breaking decisions for the "redis"
dependency.
"""

from typing import Optional

import structlog
from redis.asyncio import ConnectionPool as AsyncConnectionPool
from redis.asyncio import Redis as AsyncRedis

from clinic_resilience.config import Settings
from clinic_resilience.locking.stores import RedisVersionedStore

logger = structlog.get_logger(__name__)


class RedisClient:
    """Process-wide async Redis connection pool."""

    _async_pool: Optional[AsyncConnectionPool] = None

    @classmethod
    def get_async_client(cls, settings: Settings) -> AsyncRedis:
        """
        Get asynchronous Redis client backed by the shared pool.

        Args:
            settings: Application settings

        Returns:
            AsyncRedis client instance
        """
        if cls._async_pool is None:
            cls._async_pool = AsyncConnectionPool.from_url(
                settings.REDIS_URL,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
            )
            logger.info("Initialized Redis async connection pool", url=settings.REDIS_URL)

        return AsyncRedis(connection_pool=cls._async_pool)

    @classmethod
    async def close_async_pool(cls) -> None:
        """Close async connection pool (cleanup on shutdown)."""
        if cls._async_pool is not None:
            await cls._async_pool.disconnect()
            cls._async_pool = None
            logger.info("Closed Redis async connection pool")


def get_versioned_store(settings: Settings) -> RedisVersionedStore:
    """
    Build the Redis-backed versioned store on the shared pool.

    Args:
        settings: Application settings

    Returns:
        RedisVersionedStore instance
    """
    return RedisVersionedStore(
        RedisClient.get_async_client(settings),
        key_prefix=settings.VERSIONED_KEY_PREFIX,
    )
