"""
Exponential backoff policy.

Pure computation of the delay before retry attempt n:

    delay = min(base_delay * multiplier ** attempt_index, max_delay)

optionally perturbed by +/- jitter_fraction * delay drawn uniformly.
With the defaults this yields 0.1, 0.2, 0.4, 0.8, 1.6 seconds.
"""

import random
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RetryPolicy:
    """
    Immutable retry configuration, safe to share across concurrent calls.

    Attributes:
        max_attempts: Total attempts including the first (5 = 1 try + 4 retries)
        base_delay: Delay before the first retry, in seconds
        multiplier: Exponential growth factor between retries
        max_delay: Cap on a single delay, in seconds
        jitter_fraction: Relative +/- perturbation (0 = deterministic)
    """

    max_attempts: int = 5
    base_delay: float = 0.1
    multiplier: float = 2.0
    max_delay: float = 1.6
    jitter_fraction: float = 0.0

    def __post_init__(self) -> None:
        """Validate policy invariants."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")

        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")

        if not 0.0 <= self.jitter_fraction <= 1.0:
            raise ValueError("jitter_fraction must be within [0, 1]")

    def delay_for(self, attempt_index: int, rng: Optional[random.Random] = None) -> float:
        """Delay in seconds before retry `attempt_index` (0 = first retry)."""
        return compute_delay(self, attempt_index, rng)


def compute_delay(
    policy: RetryPolicy, attempt_index: int, rng: Optional[random.Random] = None
) -> float:
    """
    Compute the backoff delay for a retry.

    Args:
        policy: Retry policy
        attempt_index: 0 for the first retry, 1 for the second, ...
        rng: Random source for jitter (module-level random when None)

    Returns:
        Delay in seconds, never negative
    """
    if attempt_index < 0:
        raise ValueError("attempt_index must be >= 0")

    delay = min(policy.base_delay * policy.multiplier ** attempt_index, policy.max_delay)

    if policy.jitter_fraction > 0 and delay > 0:
        spread = policy.jitter_fraction * delay
        delay += (rng or random).uniform(-spread, spread)

    return max(delay, 0.0)
