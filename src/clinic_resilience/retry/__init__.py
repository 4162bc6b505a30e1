"""
Retry with exponential backoff for transient dependency failures.

Main Components:
    - RetryPolicy: Immutable attempts/backoff configuration
    - compute_delay: Pure backoff function
    - is_retryable / classify: Closed catalogue of 13 transient signatures
    - RetryExecutor: Bounded retry loop (async and blocking variants)
    - RetryMetadata: Attempt history attached to RetryExhausted

Usage:
    >>> from clinic_resilience.retry import RetryExecutor, RetryPolicy
    >>> executor = RetryExecutor()
    >>> value = await executor.execute(lambda: cache.get(key), RetryPolicy(), operation_name="redis.get")
"""

from clinic_resilience.retry.backoff import RetryPolicy, compute_delay
from clinic_resilience.retry.classifier import (
    RETRYABLE_SIGNATURES,
    RetryableSignature,
    classify,
    is_retryable,
)
from clinic_resilience.retry.engine import RetryExecutor
from clinic_resilience.retry.metadata import RetryMetadata

__all__ = [
    "RETRYABLE_SIGNATURES",
    "RetryExecutor",
    "RetryMetadata",
    "RetryPolicy",
    "RetryableSignature",
    "classify",
    "compute_delay",
    "is_retryable",
]
