"""
Optimistic concurrency control for versioned entities.

- guard.py: OptimisticLockGuard (version-checked writes, conflict signalling)
- stores.py: VersionedStore protocol, in-memory and Redis implementations
"""

from clinic_resilience.locking.guard import OptimisticLockGuard, WriteResult
from clinic_resilience.locking.stores import (
    CompareAndSetResult,
    InMemoryVersionedStore,
    RedisVersionedStore,
    VersionedRecord,
    VersionedStore,
)

__all__ = [
    "CompareAndSetResult",
    "InMemoryVersionedStore",
    "OptimisticLockGuard",
    "RedisVersionedStore",
    "VersionedRecord",
    "VersionedStore",
    "WriteResult",
]
