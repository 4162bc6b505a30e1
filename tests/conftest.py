"""Shared test fixtures and configuration for all tests.

This conftest.py provides common fixtures used across unit and integration tests:
a controllable clock, a recording sleeper and test settings.
"""

import pytest

from clinic_resilience.config import Settings


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records delays and optionally advances a FakeClock."""

    def __init__(self, clock: FakeClock | None = None):
        self.calls: list[float] = []
        self.clock = clock

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def clocked_sleep(fake_clock) -> RecordingSleep:
    """Recording sleep that advances fake_clock by each delay."""
    return RecordingSleep(fake_clock)


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with the documented defaults and metrics disabled.

    Override specific settings in individual tests as needed:
        def test_something(test_settings):
            test_settings.BREAKER_FAILURE_THRESHOLD = 3
    """
    return Settings(
        # === Application ===
        APP_NAME="Clinic Resilience Layer (Test)",
        APP_VERSION="0.1.0",
        ENVIRONMENT="development",
        LOG_LEVEL="DEBUG",

        # === Breaker / Retry defaults ===
        BREAKER_FAILURE_THRESHOLD=5,
        BREAKER_COOLDOWN_SECONDS=30.0,
        BREAKER_HALF_OPEN_SUCCESSES=1,
        RETRY_MAX_ATTEMPTS=5,
        RETRY_BASE_DELAY_MS=100.0,
        RETRY_MULTIPLIER=2.0,
        RETRY_MAX_DELAY_MS=1600.0,
        RETRY_JITTER_FRACTION=0.0,
        DEPENDENCY_OVERRIDES={},

        # === Redis ===
        REDIS_URL="redis://localhost:6379/0",
        REDIS_MAX_CONNECTIONS=10,

        PROMETHEUS_ENABLED=False,  # Disable metrics endpoint in tests
    )
