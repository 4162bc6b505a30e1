"""
Unit tests for Settings and per-dependency overrides.
"""

import pytest
from pydantic import ValidationError

from clinic_resilience.config import DependencyOverrides, Settings


def test_defaults_produce_documented_policies(test_settings):
    """Test global defaults: 5 failures / 30s and 5 attempts at 100ms x2 up to 1600ms."""
    breaker = test_settings.breaker_config("postgres")
    policy = test_settings.retry_policy("postgres")

    assert breaker.failure_threshold == 5
    assert breaker.cooldown_seconds == 30.0
    assert breaker.half_open_success_threshold == 1
    assert policy.max_attempts == 5
    assert policy.base_delay == pytest.approx(0.1)
    assert policy.multiplier == 2.0
    assert policy.max_delay == pytest.approx(1.6)
    assert policy.jitter_fraction == 0.0


def test_overrides_merge_over_defaults(test_settings):
    """Test only the overridden fields change for that dependency."""
    test_settings.DEPENDENCY_OVERRIDES = {
        "insurance-verify": DependencyOverrides(
            cooldown_seconds=60, max_attempts=3, base_delay_ms=250
        )
    }

    breaker = test_settings.breaker_config("insurance-verify")
    policy = test_settings.retry_policy("insurance-verify")

    assert breaker.cooldown_seconds == 60
    assert breaker.failure_threshold == 5
    assert policy.max_attempts == 3
    assert policy.base_delay == pytest.approx(0.25)
    assert policy.max_delay == pytest.approx(1.6)


def test_zero_delay_override_is_respected(test_settings):
    """Test an explicit 0ms override is not replaced by the default."""
    test_settings.DEPENDENCY_OVERRIDES = {
        "redis": DependencyOverrides(base_delay_ms=0, jitter_fraction=0.0)
    }

    assert test_settings.retry_policy("redis").base_delay == 0.0


def test_overrides_from_environment(monkeypatch):
    """Test DEPENDENCY_OVERRIDES is parsed from a JSON environment variable."""
    monkeypatch.setenv(
        "DEPENDENCY_OVERRIDES",
        '{"insurance-verify": {"failure_threshold": 3, "max_delay_ms": 5000}}',
    )
    monkeypatch.setenv("BREAKER_COOLDOWN_SECONDS", "45")

    settings = Settings()

    assert settings.breaker_config("insurance-verify").failure_threshold == 3
    assert settings.breaker_config("insurance-verify").cooldown_seconds == 45
    assert settings.retry_policy("insurance-verify").max_delay == pytest.approx(5.0)
    assert settings.breaker_config("postgres").failure_threshold == 5


@pytest.mark.parametrize(
    "kwargs",
    [
        {"failure_threshold": 0},
        {"cooldown_seconds": 0},
        {"max_attempts": 0},
        {"multiplier": 0.5},
        {"jitter_fraction": 2.0},
    ],
)
def test_invalid_overrides_rejected(kwargs):
    """Test override values are validated by pydantic."""
    with pytest.raises(ValidationError):
        DependencyOverrides(**kwargs)
