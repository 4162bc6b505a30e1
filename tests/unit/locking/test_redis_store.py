"""
Unit tests for RedisVersionedStore (client and Lua scripts mocked).
"""

import json

import pytest

from clinic_resilience.exceptions import EntityNotFoundError, VersionConflictError
from clinic_resilience.locking.guard import OptimisticLockGuard
from clinic_resilience.locking.stores import (
    COMPARE_AND_SET_SCRIPT,
    CREATE_SCRIPT,
    CompareAndSetResult,
    RedisVersionedStore,
)


@pytest.fixture
def store(mock_async_redis):
    return RedisVersionedStore(mock_async_redis, key_prefix="test:versioned:")


def test_scripts_registered(store, mock_async_redis):
    """Test both Lua scripts are registered once at construction."""
    registered = [c.args[0] for c in mock_async_redis.register_script.call_args_list]

    assert registered == [COMPARE_AND_SET_SCRIPT, CREATE_SCRIPT]


@pytest.mark.asyncio
async def test_compare_and_set_applied(store, mock_async_redis):
    """Test the mutation is merged over the stored document before the swap."""
    mock_async_redis.hgetall.return_value = {"version": "3", "data": '{"step": 3, "owner": "pt-2"}'}
    mock_async_redis.cas_script.return_value = [1, 4]

    result = await store.compare_and_set("protocol-1", 3, {"step": 4})

    assert result == CompareAndSetResult(applied=True, version=4)
    mock_async_redis.cas_script.assert_awaited_once_with(
        keys=["test:versioned:protocol-1"],
        args=[3, json.dumps({"step": 4, "owner": "pt-2"})],
    )


@pytest.mark.asyncio
async def test_compare_and_set_conflict_on_read(store, mock_async_redis):
    """Test a stale expected version is rejected without running the script."""
    mock_async_redis.hgetall.return_value = {"version": "5", "data": "{}"}

    result = await store.compare_and_set("protocol-1", 3, {"step": 4})

    assert result == CompareAndSetResult(applied=False, version=5)
    mock_async_redis.cas_script.assert_not_awaited()


@pytest.mark.asyncio
async def test_compare_and_set_conflict_on_swap(store, mock_async_redis):
    """Test a write landing between the read and the swap is a conflict."""
    mock_async_redis.hgetall.return_value = {"version": "3", "data": "{}"}
    mock_async_redis.cas_script.return_value = [0, 4]

    result = await store.compare_and_set("protocol-1", 3, {"step": 4})

    assert result == CompareAndSetResult(applied=False, version=4)


@pytest.mark.asyncio
async def test_compare_and_set_missing(store, mock_async_redis):
    """Test a missing key maps to version None."""
    result = await store.compare_and_set("missing", 1, {})

    assert result == CompareAndSetResult(applied=False, version=None)
    mock_async_redis.cas_script.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_new_and_existing(store, mock_async_redis):
    """Test create returns None when created and the version when it exists."""
    mock_async_redis.create_script.return_value = 0
    assert await store.create("card-1", {"number": "W123"}) is None

    mock_async_redis.create_script.return_value = 3
    assert await store.create("card-1", {"number": "W123"}) == 3

    mock_async_redis.create_script.assert_awaited_with(
        keys=["test:versioned:card-1"], args=[json.dumps({"number": "W123"})]
    )


@pytest.mark.asyncio
async def test_read(store, mock_async_redis):
    """Test read decodes the hash fields."""
    mock_async_redis.hgetall.return_value = {"version": "3", "data": '{"step": 2}'}

    record = await store.read("protocol-1")

    assert record.version == 3
    assert record.data == {"step": 2}
    mock_async_redis.hgetall.assert_awaited_once_with("test:versioned:protocol-1")


@pytest.mark.asyncio
async def test_read_missing(store, mock_async_redis):
    """Test an empty hash means no record."""
    mock_async_redis.hgetall.return_value = {}

    assert await store.read("missing") is None


# ============================================================================
# Guard over the Redis store
# ============================================================================


@pytest.mark.asyncio
async def test_guard_maps_redis_conflict(store, mock_async_redis):
    """Test the guard raises VersionConflictError with the stored version."""
    mock_async_redis.hgetall.return_value = {"version": "4", "data": "{}"}
    guard = OptimisticLockGuard(store)

    with pytest.raises(VersionConflictError) as exc_info:
        await guard.write("protocol-7", 3, {"writer": "therapist"})

    assert exc_info.value.current_version == 4


@pytest.mark.asyncio
async def test_guard_maps_redis_missing(store, mock_async_redis):
    """Test the guard raises EntityNotFoundError for a missing key."""
    guard = OptimisticLockGuard(store)

    with pytest.raises(EntityNotFoundError):
        await guard.write("missing", 1, {})
