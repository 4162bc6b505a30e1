"""
Unit tests for RetryPolicy and compute_delay.
"""

import random

import pytest

from clinic_resilience.retry.backoff import RetryPolicy, compute_delay


# ============================================================================
# Default schedule
# ============================================================================


def test_default_policy_values():
    """Test defaults: 5 attempts, 100ms base, x2, 1600ms cap, no jitter."""
    policy = RetryPolicy()

    assert policy.max_attempts == 5
    assert policy.base_delay == pytest.approx(0.1)
    assert policy.multiplier == 2.0
    assert policy.max_delay == pytest.approx(1.6)
    assert policy.jitter_fraction == 0.0


def test_default_schedule_doubles_up_to_cap():
    """Test attempt indices 0..4 give 100/200/400/800/1600ms."""
    policy = RetryPolicy()

    delays = [compute_delay(policy, i) for i in range(5)]

    assert delays == pytest.approx([0.1, 0.2, 0.4, 0.8, 1.6])


def test_delay_is_capped_at_max_delay():
    """Test large attempt indices never exceed max_delay."""
    policy = RetryPolicy()

    assert compute_delay(policy, 5) == pytest.approx(1.6)
    assert compute_delay(policy, 40) == pytest.approx(1.6)


def test_delay_for_delegates_to_compute_delay():
    """Test RetryPolicy.delay_for matches compute_delay."""
    policy = RetryPolicy(base_delay=0.05, multiplier=3.0, max_delay=1.0)

    assert policy.delay_for(2) == pytest.approx(compute_delay(policy, 2))
    assert policy.delay_for(2) == pytest.approx(0.45)


def test_negative_attempt_index_rejected():
    """Test negative attempt index raises ValueError."""
    with pytest.raises(ValueError):
        compute_delay(RetryPolicy(), -1)


# ============================================================================
# Jitter
# ============================================================================


def test_jitter_stays_within_band():
    """Test jittered delays stay within +/- jitter_fraction of the nominal delay."""
    policy = RetryPolicy(jitter_fraction=0.25)
    rng = random.Random(42)

    for _ in range(200):
        delay = compute_delay(policy, 2, rng)
        assert 0.3 - 1e-9 <= delay <= 0.5 + 1e-9


def test_jitter_is_reproducible_with_seeded_rng():
    """Test the same seed produces the same delays."""
    policy = RetryPolicy(jitter_fraction=0.5)

    first = [compute_delay(policy, i, random.Random(7)) for i in range(5)]
    second = [compute_delay(policy, i, random.Random(7)) for i in range(5)]

    assert first == second


def test_zero_jitter_ignores_rng():
    """Test no jitter means the rng is never consulted."""

    class ExplodingRandom(random.Random):
        def uniform(self, a, b):
            raise AssertionError("rng should not be used")

    assert compute_delay(RetryPolicy(), 1, ExplodingRandom()) == pytest.approx(0.2)


# ============================================================================
# Validation
# ============================================================================


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_attempts": 0},
        {"base_delay": -0.1},
        {"multiplier": 0.5},
        {"max_delay": -1.0},
        {"jitter_fraction": 1.5},
        {"jitter_fraction": -0.1},
    ],
)
def test_invalid_policy_rejected(kwargs):
    """Test out-of-range policy values raise ValueError."""
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)
