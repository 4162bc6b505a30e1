"""
Redis connectivity.

- redis_client.py: Shared async connection pool and the Redis-backed versioned store factory
"""

from clinic_resilience.persistence.redis_client import RedisClient, get_versioned_store

__all__ = [
    "RedisClient",
    "get_versioned_store",
]
