"""Integration test fixtures (service checks and prerequisites).

Provides fixtures for checking if external services are available.
Integration tests are skipped if required services are not running.
"""

import uuid

import pytest
import pytest_asyncio
from redis import Redis
from redis.asyncio import Redis as AsyncRedis

REDIS_URL = "redis://localhost:6379/0"


@pytest.fixture(scope="session")
def check_redis():
    """Check if Redis is available at localhost:6379.

    Skips tests if Redis is not reachable.
    """
    try:
        client = Redis.from_url(REDIS_URL)
        client.ping()
        client.close()
    except Exception as e:
        pytest.skip(f"Redis not available: {e}")


@pytest_asyncio.fixture
async def redis_client(check_redis):
    """Async Redis client; deletes every key it created under a per-test prefix."""
    client = AsyncRedis.from_url(REDIS_URL, decode_responses=True)
    prefix = f"test:versioned:{uuid.uuid4().hex[:8]}:"
    client.test_prefix = prefix
    yield client
    keys = [key async for key in client.scan_iter(match=f"{prefix}*")]
    if keys:
        await client.delete(*keys)
    await client.aclose()
