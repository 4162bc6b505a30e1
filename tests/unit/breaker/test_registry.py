"""
Unit tests for BreakerRegistry.
"""

import threading

from clinic_resilience.breaker.circuit_breaker import BreakerConfig
from clinic_resilience.breaker.registry import BreakerRegistry
from clinic_resilience.breaker.state import CircuitState
from clinic_resilience.config import DependencyOverrides


def test_get_creates_breaker_lazily():
    """Test breakers appear on first use and are reused afterwards."""
    registry = BreakerRegistry()

    assert registry.names() == []

    first = registry.get("postgres")
    second = registry.get("postgres")

    assert first is second
    assert registry.names() == ["postgres"]
    assert first.config == BreakerConfig()


def test_breakers_are_independent():
    """Test tripping one dependency leaves the others closed."""
    registry = BreakerRegistry()
    redis = registry.get("redis")
    registry.get("postgres")

    for _ in range(5):
        redis.record_failure(redis.acquire())

    states = {s.name: s.state for s in registry.statuses()}
    assert states == {"postgres": CircuitState.CLOSED, "redis": CircuitState.OPEN}


def test_config_comes_from_settings(test_settings):
    """Test per-dependency overrides are applied when the breaker is created."""
    test_settings.DEPENDENCY_OVERRIDES = {
        "insurance-verify": DependencyOverrides(failure_threshold=2, cooldown_seconds=60)
    }
    registry = BreakerRegistry(test_settings)

    verify = registry.get("insurance-verify")
    postgres = registry.get("postgres")

    assert verify.config.failure_threshold == 2
    assert verify.config.cooldown_seconds == 60
    assert postgres.config.failure_threshold == 5
    assert postgres.config.cooldown_seconds == 30.0


def test_registry_clock_is_shared(fake_clock):
    """Test breakers use the registry's clock for cooldowns."""
    registry = BreakerRegistry(clock=fake_clock)
    breaker = registry.get("redis")

    for _ in range(5):
        breaker.record_failure(breaker.acquire())
    fake_clock.advance(30)

    assert breaker.acquire().probe is True


def test_reset_single_and_unknown():
    """Test reset() closes a known breaker and reports unknown names."""
    registry = BreakerRegistry()
    breaker = registry.get("redis")
    for _ in range(5):
        breaker.record_failure(breaker.acquire())

    assert registry.reset("redis") is True
    assert breaker.state is CircuitState.CLOSED
    assert registry.reset("unknown") is False
    assert registry.names() == ["redis"]


def test_reset_all():
    """Test reset_all() closes every breaker."""
    registry = BreakerRegistry()
    for name in ("redis", "postgres"):
        breaker = registry.get(name)
        for _ in range(5):
            breaker.record_failure(breaker.acquire())

    registry.reset_all()

    assert all(s.state is CircuitState.CLOSED for s in registry.statuses())


def test_concurrent_get_returns_single_instance():
    """Test racing first use of a name creates exactly one breaker."""
    registry = BreakerRegistry()
    barrier = threading.Barrier(16)
    seen = []

    def get():
        barrier.wait()
        seen.append(registry.get("postgres"))

    threads = [threading.Thread(target=get) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len({id(breaker) for breaker in seen}) == 1
