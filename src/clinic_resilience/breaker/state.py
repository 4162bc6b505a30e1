"""
Circuit breaker state machine.

All enums are closed taxonomies. The transition table is the single source
of truth for which state changes exist; the breaker never assigns a state
without going through `transition()`.

    CLOSED    --FAILURE_THRESHOLD_REACHED--> OPEN
    OPEN      --COOLDOWN_ELAPSED-----------> HALF_OPEN
    HALF_OPEN --PROBE_SUCCEEDED------------> CLOSED
    HALF_OPEN --PROBE_FAILED---------------> OPEN
    any       --RESET----------------------> CLOSED
"""

from enum import Enum

from clinic_resilience.exceptions import InvalidTransitionError


class CircuitState(str, Enum):
    """Breaker state. CLOSED is the initial state."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    @classmethod
    def get_ordinal(cls, state: "CircuitState") -> int:
        """Gauge value for a state (0=closed, 1=half_open, 2=open)."""
        order = [cls.CLOSED, cls.HALF_OPEN, cls.OPEN]
        return order.index(state)


class BreakerEvent(str, Enum):
    """Events that move the breaker between states."""

    FAILURE_THRESHOLD_REACHED = "failure_threshold_reached"
    COOLDOWN_ELAPSED = "cooldown_elapsed"
    PROBE_SUCCEEDED = "probe_succeeded"  # half-open success threshold met
    PROBE_FAILED = "probe_failed"
    RESET = "reset"


_TRANSITIONS: dict[tuple[CircuitState, BreakerEvent], CircuitState] = {
    (CircuitState.CLOSED, BreakerEvent.FAILURE_THRESHOLD_REACHED): CircuitState.OPEN,
    (CircuitState.OPEN, BreakerEvent.COOLDOWN_ELAPSED): CircuitState.HALF_OPEN,
    (CircuitState.HALF_OPEN, BreakerEvent.PROBE_SUCCEEDED): CircuitState.CLOSED,
    (CircuitState.HALF_OPEN, BreakerEvent.PROBE_FAILED): CircuitState.OPEN,
    (CircuitState.CLOSED, BreakerEvent.RESET): CircuitState.CLOSED,
    (CircuitState.OPEN, BreakerEvent.RESET): CircuitState.CLOSED,
    (CircuitState.HALF_OPEN, BreakerEvent.RESET): CircuitState.CLOSED,
}


def transition(state: CircuitState, event: BreakerEvent) -> CircuitState:
    """
    Next state for (state, event).

    Raises:
        InvalidTransitionError: If the pair is not in the transition table
    """
    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransitionError(state, event) from None
