"""
Retry metadata tracking.

This module defines the RetryMetadata dataclass that captures the attempt
history of one logical call for logs, metrics and the RetryExhausted error.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RetryMetadata:
    """
    Attempt history of one logical call.

    Attributes:
        operation: Logical operation name (e.g. "postgres.update_protocol")
        total_attempts: Number of physical attempts made
        delays: Backoff sleeps taken between attempts, in seconds
        error_types: Exception class names, one per failed attempt
        total_latency_ms: Time from first attempt to final outcome (ms)
    """

    operation: str
    total_attempts: int
    delays: list[float] = field(default_factory=list)
    error_types: list[str] = field(default_factory=list)
    total_latency_ms: int = 0

    def __post_init__(self) -> None:
        """Validate metadata invariants."""
        if self.total_attempts < 1:
            raise ValueError("total_attempts must be >= 1")

        if len(self.delays) >= self.total_attempts:
            raise ValueError("there is at most one delay between consecutive attempts")

        if self.total_latency_ms < 0:
            raise ValueError("total_latency_ms must be >= 0")
