"""
Resilience layer for the clinic record-keeping service.

Protects every outbound dependency call (Postgres, Redis, downstream HTTP
services) and every versioned-entity write:
- Circuit breakers per dependency name (fast-fail during outages)
- Retry with exponential backoff for transient failures only
- Optimistic locking on versioned records (stale writes become conflicts)

Architecture: breaker (outer) + retry executor (inner) composed by
ResilientCaller; OptimisticLockGuard enforced at the data-write boundary.
"""

__version__ = "0.1.0"
