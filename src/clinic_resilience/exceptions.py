"""
Exception hierarchy for the resilience layer.

Every error produced by the layer itself (as opposed to errors raised by the
wrapped operations) derives from ResilienceError, so the HTTP boundary can
map them with a single registration and the retry classifier can refuse to
retry them.

Mapping at the API boundary:
    CircuitOpenError      -> 503 Service Unavailable (+ Retry-After)
    RetryExhausted        -> same response as the last underlying error
    VersionConflictError  -> 409 Conflict (body carries current_version)
    EntityNotFoundError   -> 404 Not Found
"""

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from clinic_resilience.breaker.state import BreakerEvent, CircuitState
    from clinic_resilience.retry.metadata import RetryMetadata


class ResilienceError(Exception):
    """
    Base exception for all resilience-layer errors.

    Carries a human-readable message plus a details dict that is safe to
    log and to return in API error bodies.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class CircuitOpenError(ResilienceError):
    """
    Raised when a circuit breaker short-circuits a call.

    The protected operation was never invoked. Terminal for this call; the
    caller may try again once `retry_after` seconds have passed.

    Attributes:
        breaker_name: Dependency name the breaker guards
        retry_after: Seconds until the breaker will admit a probe (0 when
            a probe is already in flight)
    """

    def __init__(self, breaker_name: str, retry_after: float):
        self.breaker_name = breaker_name
        self.retry_after = max(retry_after, 0.0)
        super().__init__(
            f"Circuit breaker '{breaker_name}' is open",
            {"breaker": breaker_name, "retry_after_seconds": round(self.retry_after, 3)},
        )


class RetryExhausted(ResilienceError):
    """
    Raised when every attempt of a retryable operation failed.

    Distinct from a first-attempt failure so logging and alerting can tell
    "flapping dependency" apart from "permanent error". Callers should
    branch on `last_error`, not on this wrapper.

    Attributes:
        operation: Logical operation name
        last_error: Final underlying exception
        retry_metadata: Attempts, delays and latency of the whole call
    """

    def __init__(
        self,
        operation: str,
        last_error: BaseException,
        retry_metadata: "RetryMetadata",
    ) -> None:
        self.operation = operation
        self.last_error = last_error
        self.retry_metadata = retry_metadata
        super().__init__(
            f"Retries exhausted for '{operation}' after "
            f"{retry_metadata.total_attempts} attempts. "
            f"Final error: {type(last_error).__name__}: {last_error}",
            {
                "operation": operation,
                "attempts": retry_metadata.total_attempts,
                "last_error_type": type(last_error).__name__,
            },
        )


class RetryDeadlineExceeded(RetryExhausted):
    """Raised when the caller's deadline leaves no room for the next backoff sleep."""


class VersionConflictError(ResilienceError):
    """
    Raised when a conditional write finds a different stored version.

    Another writer won the race. Never retried automatically: the caller
    must re-read, reconcile and resubmit with `current_version`.
    """

    def __init__(self, entity_id: str, expected_version: int, current_version: Optional[int]):
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.current_version = current_version
        super().__init__(
            f"Version conflict on '{entity_id}': expected version {expected_version}, "
            f"stored version is {current_version}",
            {
                "entity_id": entity_id,
                "expected_version": expected_version,
                "current_version": current_version,
            },
        )


class EntityNotFoundError(ResilienceError):
    """Raised when a versioned write or read targets an entity that does not exist."""

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"Entity '{entity_id}' not found", {"entity_id": entity_id})


class InvalidTransitionError(ResilienceError):
    """Raised by the breaker transition table for an undefined (state, event) pair."""

    def __init__(self, state: "CircuitState", event: "BreakerEvent"):
        self.state = state
        self.event = event
        super().__init__(
            f"No transition from {state.value} on {event.value}",
            {"state": state.value, "event": event.value},
        )
