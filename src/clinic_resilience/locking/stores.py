"""
Versioned record stores for optimistic locking.

A store performs the compare-and-set atomically: the version check and the
write happen in a single operation, so no application lock is held across
requests.

Storage Strategy (Redis):
- Record: Hash per entity, key = "{VERSIONED_KEY_PREFIX}{entity_id}"
  - field "version": integer, 1 on creation, +1 per successful write
  - field "data": JSON document; a mutation is merged key-by-key in Python
    over the document read at the expected version
- Compare-and-set and create run as Lua scripts (atomic on the server); the
  compare-and-set script only swaps in the merged document when the stored
  version still equals the expected one

The SQL equivalent of compare_and_set is
    UPDATE <table> SET ..., version = version + 1
    WHERE id = :id AND version = :expected_version
with zero affected rows meaning "conflict or missing".
"""

import copy
import json
import threading
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol

import structlog
from redis.asyncio import Redis as AsyncRedis

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class VersionedRecord:
    """A stored entity together with its version."""

    entity_id: str
    version: int
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CompareAndSetResult:
    """
    Outcome of one conditional write.

    Attributes:
        applied: True if the stored version matched and the write happened
        version: New version when applied; otherwise the stored version,
            or None when the entity does not exist
    """

    applied: bool
    version: Optional[int]


class VersionedStore(Protocol):
    """Storage backend contract used by OptimisticLockGuard."""

    name: str

    async def create(self, entity_id: str, data: Mapping[str, Any]) -> Optional[int]:
        """Create at version 1. Returns None on success, else the existing version."""
        ...

    async def read(self, entity_id: str) -> Optional[VersionedRecord]:
        ...

    async def compare_and_set(
        self, entity_id: str, expected_version: int, mutation: Mapping[str, Any]
    ) -> CompareAndSetResult:
        ...


class InMemoryVersionedStore:
    """
    Process-local store (development, tests, single-process tools).

    The internal lock only covers each individual compare-and-set; it is
    never held between a read and a later write.
    """

    name = "memory"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, VersionedRecord] = {}

    async def create(self, entity_id: str, data: Mapping[str, Any]) -> Optional[int]:
        with self._lock:
            existing = self._records.get(entity_id)
            if existing is not None:
                return existing.version
            self._records[entity_id] = VersionedRecord(entity_id, 1, copy.deepcopy(dict(data)))
            return None

    async def read(self, entity_id: str) -> Optional[VersionedRecord]:
        with self._lock:
            record = self._records.get(entity_id)
            if record is None:
                return None
            return VersionedRecord(record.entity_id, record.version, copy.deepcopy(record.data))

    async def compare_and_set(
        self, entity_id: str, expected_version: int, mutation: Mapping[str, Any]
    ) -> CompareAndSetResult:
        with self._lock:
            record = self._records.get(entity_id)
            if record is None:
                return CompareAndSetResult(applied=False, version=None)
            if record.version != expected_version:
                return CompareAndSetResult(applied=False, version=record.version)

            data = copy.deepcopy(record.data)
            data.update(copy.deepcopy(dict(mutation)))
            self._records[entity_id] = VersionedRecord(entity_id, record.version + 1, data)
            return CompareAndSetResult(applied=True, version=record.version + 1)


# KEYS[1] = record key; ARGV[1] = expected version; ARGV[2] = merged JSON document
# Returns {applied (0/1), version (-1 when missing)}
# The document is stored as given; the server never decodes it.
COMPARE_AND_SET_SCRIPT = """
local current = redis.call('HGET', KEYS[1], 'version')
if not current then
  return {0, -1}
end
current = tonumber(current)
if current ~= tonumber(ARGV[1]) then
  return {0, current}
end
redis.call('HSET', KEYS[1], 'data', ARGV[2], 'version', current + 1)
return {1, current + 1}
"""

# KEYS[1] = record key; ARGV[1] = JSON document
# Returns 0 when created, otherwise the existing version
CREATE_SCRIPT = """
local current = redis.call('HGET', KEYS[1], 'version')
if current then
  return tonumber(current)
end
redis.call('HSET', KEYS[1], 'data', ARGV[1], 'version', 1)
return 0
"""


class RedisVersionedStore:
    """
    Redis-backed versioned store.

    Uses server-side Lua scripts so the version comparison and the write are
    a single atomic step.
    """

    name = "redis"

    def __init__(self, redis_client: AsyncRedis, key_prefix: str = "clinic:versioned:"):
        """
        Initialize store.

        Args:
            redis_client: AsyncRedis client instance (decode_responses=True)
            key_prefix: Prefix for record keys
        """
        self.redis = redis_client
        self.key_prefix = key_prefix
        self._compare_and_set = redis_client.register_script(COMPARE_AND_SET_SCRIPT)
        self._create = redis_client.register_script(CREATE_SCRIPT)

    def _key(self, entity_id: str) -> str:
        return f"{self.key_prefix}{entity_id}"

    async def create(self, entity_id: str, data: Mapping[str, Any]) -> Optional[int]:
        existing = await self._create(keys=[self._key(entity_id)], args=[json.dumps(dict(data))])
        existing = int(existing)
        return existing or None

    async def read(self, entity_id: str) -> Optional[VersionedRecord]:
        fields = await self.redis.hgetall(self._key(entity_id))
        if not fields:
            logger.debug("Versioned record not found", entity_id=entity_id)
            return None
        return VersionedRecord(
            entity_id=entity_id,
            version=int(fields["version"]),
            data=json.loads(fields["data"]),
        )

    async def compare_and_set(
        self, entity_id: str, expected_version: int, mutation: Mapping[str, Any]
    ) -> CompareAndSetResult:
        record = await self.read(entity_id)
        if record is None:
            return CompareAndSetResult(applied=False, version=None)
        if record.version != expected_version:
            return CompareAndSetResult(applied=False, version=record.version)

        data = record.data
        data.update(mutation)
        # The script re-checks the version: a write landing after the read is a conflict.
        applied, version = await self._compare_and_set(
            keys=[self._key(entity_id)],
            args=[expected_version, json.dumps(data)],
        )
        version = int(version)
        return CompareAndSetResult(
            applied=bool(int(applied)),
            version=None if version < 0 else version,
        )
