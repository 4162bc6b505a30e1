"""
Process-wide breaker registry (dependency name -> CircuitBreaker).

Constructed once at application startup and handed to every call site, so
tests can build isolated registries. Breakers are created lazily on first use
of a dependency name and live until the process exits.
"""

import threading
import time
from typing import TYPE_CHECKING, Callable, Optional

import structlog

from clinic_resilience.breaker.circuit_breaker import (
    BreakerConfig,
    BreakerStatus,
    CircuitBreaker,
)

if TYPE_CHECKING:
    from clinic_resilience.config import Settings

logger = structlog.get_logger(__name__)


class BreakerRegistry:
    """
    Lazily-populated map of circuit breakers keyed by dependency name.

    Attributes:
        settings: Source of per-dependency breaker configuration (optional)
    """

    def __init__(
        self,
        settings: Optional["Settings"] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize an empty registry.

        Args:
            settings: Application settings; when None every breaker uses BreakerConfig()
            clock: Clock shared by every breaker created here
        """
        self.settings = settings
        self._clock = clock
        self._lock = threading.Lock()
        self._breakers: dict[str, CircuitBreaker] = {}

    def get(self, name: str) -> CircuitBreaker:
        """Return the breaker for `name`, creating it on first use."""
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                config = (
                    self.settings.breaker_config(name) if self.settings else BreakerConfig()
                )
                breaker = CircuitBreaker(name, config, clock=self._clock)
                self._breakers[name] = breaker
                logger.info(
                    "Circuit breaker created",
                    breaker=name,
                    failure_threshold=config.failure_threshold,
                    cooldown_seconds=config.cooldown_seconds,
                    half_open_success_threshold=config.half_open_success_threshold,
                )
            return breaker

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._breakers)

    def statuses(self) -> list[BreakerStatus]:
        """Snapshots of every known breaker, sorted by name."""
        with self._lock:
            breakers = [self._breakers[name] for name in sorted(self._breakers)]
        return [breaker.status() for breaker in breakers]

    def reset(self, name: str) -> bool:
        """
        Reset one breaker to CLOSED.

        Returns:
            True if the breaker existed
        """
        with self._lock:
            breaker = self._breakers.get(name)
        if breaker is None:
            return False
        breaker.reset()
        return True

    def reset_all(self) -> None:
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()
