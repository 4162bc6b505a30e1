"""
Resilient call wrapper: circuit breaker (outer) around retry executor (inner).

The breaker decides once per logical call whether any attempt may run. Once
admitted, the retry executor may make several physical attempts, and the
breaker records only the final outcome of the whole sequence. A flapping
dependency therefore needs `failure_threshold` failed *logical* calls to trip
the breaker, not `failure_threshold` failed attempts.

Every outbound call to Postgres, Redis or a third-party HTTP service from the
service layer goes through ResilientCaller.call().

Usage:
    caller = ResilientCaller(registry, settings)
    card = await caller.call("insurance-verify", lambda: client.verify(card_number))
"""

import time
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, TypeVar

import structlog

from clinic_resilience.breaker.circuit_breaker import CircuitBreaker, Permit
from clinic_resilience.breaker.registry import BreakerRegistry
from clinic_resilience.exceptions import EntityNotFoundError, VersionConflictError
from clinic_resilience.retry.backoff import RetryPolicy
from clinic_resilience.retry.engine import RetryExecutor

if TYPE_CHECKING:
    from clinic_resilience.config import Settings

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# The dependency answered; these are caller-level outcomes, not dependency failures.
NEUTRAL_EXCEPTIONS: tuple[type[Exception], ...] = (VersionConflictError, EntityNotFoundError)


class ResilientCaller:
    """
    Single entry point for protected dependency calls.

    Attributes:
        registry: Breaker registry shared by the whole process
        settings: Source of per-dependency retry policies (optional)
        executor: Retry executor
    """

    def __init__(
        self,
        registry: BreakerRegistry,
        settings: Optional["Settings"] = None,
        executor: Optional[RetryExecutor] = None,
        neutral_exceptions: tuple[type[Exception], ...] = NEUTRAL_EXCEPTIONS,
    ):
        """
        Initialize resilient caller.

        Args:
            registry: Breaker registry (constructed once at startup)
            settings: Application settings; when None every call uses RetryPolicy()
            executor: Retry executor (a default one is created when None)
            neutral_exceptions: Errors that propagate but count as breaker successes
        """
        self.registry = registry
        self.settings = settings
        self.executor = executor or RetryExecutor()
        self.neutral_exceptions = neutral_exceptions

    def policy_for(self, dependency_name: str) -> RetryPolicy:
        if self.settings is None:
            return RetryPolicy()
        return self.settings.retry_policy(dependency_name)

    async def call(
        self,
        dependency_name: str,
        operation: Callable[[], Awaitable[T]],
        *,
        policy: Optional[RetryPolicy] = None,
        operation_name: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> T:
        """
        Call a dependency through its breaker and the retry executor.

        Args:
            dependency_name: Breaker name (postgres, redis, insurance-verify, ...)
            operation: Zero-argument coroutine function doing the I/O; must be idempotent
            policy: Retry policy override for this call
            operation_name: Name for logs/metrics (defaults to dependency_name)
            deadline: Absolute time.monotonic() reading for the whole call

        Returns:
            The operation's result

        Raises:
            CircuitOpenError: Breaker rejected the call; operation not invoked
            RetryExhausted: All attempts failed with transient errors
            Exception: First non-retryable error, unchanged
        """
        breaker = self.registry.get(dependency_name)
        permit = breaker.acquire()
        try:
            result = await self.executor.execute(
                operation,
                policy or self.policy_for(dependency_name),
                operation_name=operation_name or dependency_name,
                deadline=deadline,
            )
        except BaseException as error:
            self._report_error(breaker, permit, error)
            raise
        breaker.record_success(permit)
        return result

    def call_sync(
        self,
        dependency_name: str,
        operation: Callable[[], T],
        *,
        policy: Optional[RetryPolicy] = None,
        operation_name: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> T:
        """Blocking variant of call() for threaded callers."""
        breaker = self.registry.get(dependency_name)
        permit = breaker.acquire()
        try:
            result = self.executor.execute_sync(
                operation,
                policy or self.policy_for(dependency_name),
                operation_name=operation_name or dependency_name,
                deadline=deadline,
            )
        except BaseException as error:
            self._report_error(breaker, permit, error)
            raise
        breaker.record_success(permit)
        return result

    def _report_error(self, breaker: CircuitBreaker, permit: Permit, error: BaseException) -> None:
        if isinstance(error, self.neutral_exceptions):
            breaker.record_success(permit)
        elif isinstance(error, Exception):
            breaker.record_failure(permit)
            logger.debug(
                "Resilient call failed",
                breaker=breaker.name,
                error_type=type(error).__name__,
                consecutive_failures=breaker.consecutive_failures,
            )
        else:
            # Cancelled or interpreter exit: no outcome to report
            breaker.release(permit)


def deadline_in(seconds: float) -> float:
    """Absolute deadline `seconds` from now, in the time.monotonic() clock used by call()."""
    return time.monotonic() + seconds
