"""Unit test fixtures (mocks and stubs).

Provides mock objects for testing without external dependencies.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock


@pytest.fixture
def mock_async_redis():
    """Mock AsyncRedis client with the two Lua scripts the versioned store registers.

    register_script() returns the compare-and-set script first, then the
    create script, matching RedisVersionedStore.__init__.
    """
    mock = MagicMock()
    mock.cas_script = AsyncMock(return_value=[1, 2])
    mock.create_script = AsyncMock(return_value=0)
    mock.register_script = MagicMock(side_effect=[mock.cas_script, mock.create_script])
    mock.hgetall = AsyncMock(return_value={})
    return mock
