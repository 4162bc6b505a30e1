"""
Optimistic lock guard for versioned entities.

Every update of a versioned record (patient protocol progress, insurance
card, outcome measure, ...) goes through write(): a single conditional write
whose predicate includes `version == expected_version`. On success the stored
version becomes expected_version + 1.

A mismatch raises VersionConflictError and is never retried: the caller's
copy is stale, and blindly retrying would overwrite the other writer's
change. The caller re-reads, reconciles and resubmits with the new version
(HTTP 409 at the API boundary).

There is no hidden deduplication: replaying an identical payload with the
new version is a new write and advances the version again.
"""

from dataclasses import dataclass
from typing import Any, Mapping

import structlog

from clinic_resilience.exceptions import EntityNotFoundError, VersionConflictError
from clinic_resilience.locking.stores import VersionedRecord, VersionedStore
from clinic_resilience.monitoring.metrics import version_conflicts_total

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class WriteResult:
    """Successful conditional write."""

    entity_id: str
    previous_version: int
    version: int


class OptimisticLockGuard:
    """
    Version-checked writes on top of a VersionedStore.

    Attributes:
        store: Backend performing the atomic compare-and-set
    """

    def __init__(self, store: VersionedStore):
        self.store = store

    async def create(self, entity_id: str, data: Mapping[str, Any]) -> VersionedRecord:
        """
        Create a record at version 1.

        Raises:
            VersionConflictError: The entity already exists (expected_version 0)
        """
        existing = await self.store.create(entity_id, data)
        if existing is not None:
            raise self._conflict(entity_id, 0, existing)
        return VersionedRecord(entity_id=entity_id, version=1, data=dict(data))

    async def read(self, entity_id: str) -> VersionedRecord:
        """
        Read the current record and version.

        Raises:
            EntityNotFoundError: No such entity
        """
        record = await self.store.read(entity_id)
        if record is None:
            raise EntityNotFoundError(entity_id)
        return record

    async def write(
        self, entity_id: str, expected_version: int, mutation: Mapping[str, Any]
    ) -> WriteResult:
        """
        Apply `mutation` if the stored version still equals `expected_version`.

        Args:
            entity_id: Entity identifier
            expected_version: Version the caller read
            mutation: Field changes to merge into the stored record

        Returns:
            WriteResult with the new version (expected_version + 1)

        Raises:
            VersionConflictError: Stored version differs (carries current_version)
            EntityNotFoundError: No such entity
        """
        if expected_version < 1:
            raise ValueError("expected_version must be >= 1")

        outcome = await self.store.compare_and_set(entity_id, expected_version, mutation)

        if outcome.applied:
            logger.debug(
                "Versioned write applied",
                entity_id=entity_id,
                store=self.store.name,
                version=outcome.version,
            )
            return WriteResult(
                entity_id=entity_id,
                previous_version=expected_version,
                version=outcome.version,
            )

        if outcome.version is None:
            raise EntityNotFoundError(entity_id)

        raise self._conflict(entity_id, expected_version, outcome.version)

    def _conflict(
        self, entity_id: str, expected_version: int, current_version: int
    ) -> VersionConflictError:
        version_conflicts_total.labels(store=self.store.name).inc()
        logger.warning(
            "Version conflict",
            entity_id=entity_id,
            store=self.store.name,
            expected_version=expected_version,
            current_version=current_version,
        )
        return VersionConflictError(entity_id, expected_version, current_version)
