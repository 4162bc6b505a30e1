"""
Per-dependency circuit breaker.

Protects a named dependency (postgres, redis, insurance-verify, ...) from
being hammered while it is failing:

- CLOSED: all calls pass; consecutive failures are counted, a success
  resets the count. Reaching the threshold opens the breaker.
- OPEN: calls are rejected with CircuitOpenError without invoking the
  operation. No timers: the cooldown is checked lazily on the next call,
  which becomes the half-open probe once the cooldown has elapsed.
- HALF_OPEN: exactly one probe in flight at a time; concurrent callers are
  rejected as if OPEN. Enough probe successes close the breaker, a probe
  failure re-opens it with a fresh opened_at.

The breaker never retries. All counters and the state are updated in one
critical section guarded by a threading.Lock, so a breaker can be shared by
threads and by coroutines on any event loop.

Usage:
    breaker = CircuitBreaker("redis", BreakerConfig(failure_threshold=5))
    value = await breaker.call(lambda: redis.get(key))
"""

import threading
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict

from clinic_resilience.breaker.state import BreakerEvent, CircuitState, transition
from clinic_resilience.exceptions import CircuitOpenError
from clinic_resilience.monitoring.metrics import (
    circuit_breaker_rejections_total,
    circuit_breaker_state,
    circuit_breaker_transitions_total,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BreakerConfig:
    """
    Breaker tuning for one dependency.

    Attributes:
        failure_threshold: Consecutive failures that trip CLOSED -> OPEN
        cooldown_seconds: Time spent OPEN before a half-open probe is allowed
        half_open_success_threshold: Consecutive probe successes to close
    """

    failure_threshold: int = 5
    cooldown_seconds: float = 30.0
    half_open_success_threshold: int = 1

    def __post_init__(self) -> None:
        """Validate config invariants."""
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")

        if self.cooldown_seconds <= 0:
            raise ValueError("cooldown_seconds must be > 0")

        if self.half_open_success_threshold < 1:
            raise ValueError("half_open_success_threshold must be >= 1")


@dataclass(frozen=True)
class Permit:
    """
    Admission ticket returned by acquire().

    The outcome of the admitted call must be reported with the same permit,
    so a probe's result is only applied to the half-open cycle that admitted it.
    """

    probe: bool
    generation: int


class BreakerStatus(BaseModel):
    """Read-only breaker snapshot for health and observability endpoints."""

    model_config = ConfigDict(frozen=True)

    name: str
    state: CircuitState
    consecutive_failures: int
    half_open_successes: int
    opened_at: Optional[float] = None
    failure_threshold: int
    cooldown_seconds: float


class CircuitBreaker:
    """
    Circuit breaker guarding one named dependency.

    Attributes:
        name: Stable dependency identifier
        config: Thresholds and cooldown
    """

    def __init__(
        self,
        name: str,
        config: Optional[BreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize breaker in CLOSED state.

        Args:
            name: Dependency name (used in logs, metrics and errors)
            config: Breaker tuning (defaults: 5 failures, 30s cooldown, 1 probe success)
            clock: Monotonic clock in seconds (injectable for tests)
        """
        self.name = name
        self.config = config or BreakerConfig()
        self._clock = clock
        self._lock = threading.Lock()

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._half_open_successes = 0
        self._opened_at: Optional[float] = None
        self._probe_in_flight = False
        self._generation = 0

        circuit_breaker_state.labels(breaker=name).set(
            CircuitState.get_ordinal(CircuitState.CLOSED)
        )

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            return self._consecutive_failures

    def acquire(self) -> Permit:
        """
        Admit a call or reject it.

        Returns:
            Permit to report the outcome with

        Raises:
            CircuitOpenError: Breaker is OPEN within its cooldown, or a
                half-open probe is already in flight
        """
        with self._lock:
            retry_after: Optional[float] = None

            if self._state is CircuitState.OPEN:
                elapsed = self._clock() - self._opened_at
                if elapsed >= self.config.cooldown_seconds:
                    self._apply(BreakerEvent.COOLDOWN_ELAPSED)
                else:
                    retry_after = self.config.cooldown_seconds - elapsed

            if retry_after is None and self._state is CircuitState.HALF_OPEN:
                if self._probe_in_flight:
                    retry_after = 0.0
                else:
                    self._probe_in_flight = True
                    return Permit(probe=True, generation=self._generation)

            if retry_after is None:
                return Permit(probe=False, generation=self._generation)

            state = self._state

        circuit_breaker_rejections_total.labels(breaker=self.name).inc()
        logger.info(
            "Call short-circuited",
            breaker=self.name,
            state=state.value,
            retry_after_seconds=round(retry_after, 3),
        )
        raise CircuitOpenError(self.name, retry_after)

    def record_success(self, permit: Permit) -> None:
        """Report a successful call admitted with `permit`."""
        with self._lock:
            if permit.probe:
                if not self._is_current_probe(permit):
                    return
                self._probe_in_flight = False
                self._half_open_successes += 1
                if self._half_open_successes >= self.config.half_open_success_threshold:
                    self._apply(BreakerEvent.PROBE_SUCCEEDED)
            elif self._is_current_cycle(permit):
                self._consecutive_failures = 0

    def record_failure(self, permit: Permit) -> None:
        """Report a failed call admitted with `permit`."""
        with self._lock:
            if permit.probe:
                if self._is_current_probe(permit):
                    self._apply(BreakerEvent.PROBE_FAILED)
            elif self._is_current_cycle(permit):
                self._consecutive_failures += 1
                if self._consecutive_failures >= self.config.failure_threshold:
                    self._apply(BreakerEvent.FAILURE_THRESHOLD_REACHED)

    def release(self, permit: Permit) -> None:
        """Give back a permit without an outcome (the call was cancelled)."""
        with self._lock:
            if permit.probe and self._is_current_probe(permit):
                self._probe_in_flight = False

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run `operation` through the breaker (no retries).

        Raises:
            CircuitOpenError: Call rejected, operation not invoked
            Exception: Whatever the operation raised
        """
        permit = self.acquire()
        try:
            result = await operation()
        except Exception:
            self.record_failure(permit)
            raise
        except BaseException:
            self.release(permit)
            raise
        self.record_success(permit)
        return result

    def status(self) -> BreakerStatus:
        """Snapshot of the breaker for health endpoints."""
        with self._lock:
            return BreakerStatus(
                name=self.name,
                state=self._state,
                consecutive_failures=self._consecutive_failures,
                half_open_successes=self._half_open_successes,
                opened_at=self._opened_at,
                failure_threshold=self.config.failure_threshold,
                cooldown_seconds=self.config.cooldown_seconds,
            )

    def reset(self) -> None:
        """Administrative reset back to CLOSED with all counters cleared."""
        with self._lock:
            if self._state is CircuitState.CLOSED:
                # Not a transition: clear the count, keep in-flight permits valid.
                self._consecutive_failures = 0
                return
            self._apply(BreakerEvent.RESET)

    def _is_current_probe(self, permit: Permit) -> bool:
        return self._state is CircuitState.HALF_OPEN and permit.generation == self._generation

    def _is_current_cycle(self, permit: Permit) -> bool:
        return self._state is CircuitState.CLOSED and permit.generation == self._generation

    def _apply(self, event: BreakerEvent) -> None:
        # Caller must hold self._lock.
        previous = self._state
        self._state = transition(previous, event)
        self._generation += 1
        self._half_open_successes = 0
        self._probe_in_flight = False

        if self._state is CircuitState.OPEN:
            self._opened_at = self._clock()
        elif self._state is CircuitState.CLOSED:
            self._consecutive_failures = 0
            self._opened_at = None

        circuit_breaker_state.labels(breaker=self.name).set(
            CircuitState.get_ordinal(self._state)
        )
        circuit_breaker_transitions_total.labels(
            breaker=self.name, from_state=previous.value, to_state=self._state.value
        ).inc()

        logger.warning(
            "Circuit breaker state changed",
            breaker=self.name,
            breaker_event=event.value,
            from_state=previous.value,
            to_state=self._state.value,
            consecutive_failures=self._consecutive_failures,
        )
