"""
Circuit breakers for outbound dependencies.

- state.py: CircuitState / BreakerEvent enums and the transition table
- circuit_breaker.py: CircuitBreaker, BreakerConfig, BreakerStatus
- registry.py: BreakerRegistry (dependency name -> breaker)
"""

from clinic_resilience.breaker.circuit_breaker import (
    BreakerConfig,
    BreakerStatus,
    CircuitBreaker,
    Permit,
)
from clinic_resilience.breaker.registry import BreakerRegistry
from clinic_resilience.breaker.state import BreakerEvent, CircuitState, transition

__all__ = [
    "BreakerConfig",
    "BreakerEvent",
    "BreakerRegistry",
    "BreakerStatus",
    "CircuitBreaker",
    "CircuitState",
    "Permit",
    "transition",
]
