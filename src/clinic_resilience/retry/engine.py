"""
Retry executor with exponential backoff.

Runs one logical operation as a bounded sequence of physical attempts:

    1. Attempt 0 runs immediately.
    2. On failure, classify the error. Permanent -> re-raise it unchanged.
    3. Retryable and attempts remain -> sleep delay_for(attempt_index), retry.
    4. Attempts exhausted -> raise RetryExhausted carrying the last error.

Attempts are strictly sequential. The inter-attempt sleep is the only
suspension point; in async code it awaits (and is cancellable), in
execute_sync it blocks the calling thread.

Precondition (not checked): the operation must be idempotent. The executor
performs no deduplication.

Usage:
    executor = RetryExecutor()
    row = await executor.execute(lambda: fetch_patient(pid), policy, operation_name="postgres.get_patient")
"""

import asyncio
import random
import time
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

from clinic_resilience.exceptions import RetryDeadlineExceeded, RetryExhausted
from clinic_resilience.monitoring.metrics import retries_exhausted_total, retry_attempts_total
from clinic_resilience.retry.backoff import RetryPolicy
from clinic_resilience.retry.classifier import classify
from clinic_resilience.retry.metadata import RetryMetadata

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class _CallHistory:
    """Mutable attempt log for one execute() call."""

    def __init__(self, operation: str, started: float):
        self.operation = operation
        self.started = started
        self.attempts = 0
        self.delays: list[float] = []
        self.error_types: list[str] = []

    def metadata(self, now: float) -> RetryMetadata:
        return RetryMetadata(
            operation=self.operation,
            total_attempts=max(self.attempts, 1),
            delays=list(self.delays),
            error_types=list(self.error_types),
            total_latency_ms=max(int((now - self.started) * 1000), 0),
        )


class RetryExecutor:
    """
    Retry loop shared by every resilient call.

    Stateless between calls: one executor may serve all concurrent requests.

    Attributes:
        classifier: Returns the matching retryable signature name, or None if permanent
    """

    def __init__(
        self,
        classifier: Callable[[BaseException], Optional[str]] = classify,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        sync_sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize retry executor.

        Args:
            classifier: Error classifier (default: the 13-signature catalogue)
            sleep: Async sleep used between attempts
            sync_sleep: Blocking sleep used by execute_sync
            clock: Monotonic clock in seconds (also the reference for deadlines)
            rng: Random source for jitter
        """
        self.classifier = classifier
        self._sleep = sleep
        self._sync_sleep = sync_sleep
        self._clock = clock
        self._rng = rng

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: Optional[RetryPolicy] = None,
        *,
        operation_name: str = "operation",
        deadline: Optional[float] = None,
    ) -> T:
        """
        Run `operation` with retries.

        Args:
            operation: Zero-argument coroutine function performing the I/O
            policy: Retry policy (defaults: 5 attempts, 100ms base, x2, 1600ms cap)
            operation_name: Name used in logs, metrics and errors
            deadline: Absolute clock() reading after which no new attempt starts

        Returns:
            The operation's result

        Raises:
            Exception: The first non-retryable error, unchanged
            RetryExhausted: Every attempt failed with a retryable error
            RetryDeadlineExceeded: The next backoff would pass `deadline`
        """
        policy = policy or RetryPolicy()
        history = _CallHistory(operation_name, self._clock())
        last_error: Optional[Exception] = None

        for attempt_index in range(policy.max_attempts):
            history.attempts += 1
            try:
                result = await operation()
            except Exception as error:
                last_error = error
                delay = self._plan_retry(history, error, attempt_index, policy, deadline)
            else:
                return self._succeeded(history, result)

            if delay is None:
                break
            await self._sleep(delay)

        raise self._exhausted(history, last_error) from last_error

    def execute_sync(
        self,
        operation: Callable[[], T],
        policy: Optional[RetryPolicy] = None,
        *,
        operation_name: str = "operation",
        deadline: Optional[float] = None,
    ) -> T:
        """Blocking variant of execute() for threaded callers (worker jobs, scripts)."""
        policy = policy or RetryPolicy()
        history = _CallHistory(operation_name, self._clock())
        last_error: Optional[Exception] = None

        for attempt_index in range(policy.max_attempts):
            history.attempts += 1
            try:
                result = operation()
            except Exception as error:
                last_error = error
                delay = self._plan_retry(history, error, attempt_index, policy, deadline)
            else:
                return self._succeeded(history, result)

            if delay is None:
                break
            self._sync_sleep(delay)

        raise self._exhausted(history, last_error) from last_error

    def _plan_retry(
        self,
        history: _CallHistory,
        error: Exception,
        attempt_index: int,
        policy: RetryPolicy,
        deadline: Optional[float],
    ) -> Optional[float]:
        """
        Decide what follows a failed attempt.

        Returns:
            Delay in seconds before the next attempt, or None when attempts are exhausted

        Raises:
            Exception: `error` itself when it is not retryable
            RetryDeadlineExceeded: When sleeping would pass the deadline
        """
        history.error_types.append(type(error).__name__)
        signature = self.classifier(error)

        if signature is None:
            logger.info(
                "Non-retryable error, giving up",
                operation=history.operation,
                attempt=attempt_index + 1,
                error_type=type(error).__name__,
            )
            raise error

        if attempt_index + 1 >= policy.max_attempts:
            return None

        delay = policy.delay_for(attempt_index, self._rng)

        if deadline is not None and self._clock() + delay >= deadline:
            retries_exhausted_total.labels(operation=history.operation, reason="deadline").inc()
            logger.warning(
                "Deadline leaves no room for another attempt",
                operation=history.operation,
                attempt=attempt_index + 1,
                next_delay_seconds=delay,
            )
            raise RetryDeadlineExceeded(
                history.operation, error, history.metadata(self._clock())
            ) from error

        history.delays.append(delay)
        retry_attempts_total.labels(operation=history.operation, signature=signature).inc()
        logger.warning(
            "Operation failed, retrying",
            operation=history.operation,
            attempt=attempt_index + 1,
            max_attempts=policy.max_attempts,
            signature=signature,
            error=str(error),
            next_delay_seconds=delay,
        )
        return delay

    def _succeeded(self, history: _CallHistory, result: T) -> T:
        if history.attempts > 1:
            logger.info(
                "Retry succeeded",
                operation=history.operation,
                attempt=history.attempts,
            )
        return result

    def _exhausted(self, history: _CallHistory, last_error: Exception) -> RetryExhausted:
        metadata = history.metadata(self._clock())
        retries_exhausted_total.labels(operation=history.operation, reason="attempts").inc()
        logger.error(
            "Retries exhausted",
            operation=history.operation,
            total_attempts=metadata.total_attempts,
            total_latency_ms=metadata.total_latency_ms,
            error_types=metadata.error_types,
            final_error_type=type(last_error).__name__,
        )
        return RetryExhausted(history.operation, last_error, metadata)
