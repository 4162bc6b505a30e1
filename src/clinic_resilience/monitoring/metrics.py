"""Custom Prometheus metrics for the resilience layer.

These metrics are exposed at /metrics endpoint and should be scraped by Prometheus.
Alert rules should be configured for:
- circuit_breaker_state (any breaker open for longer than one cooldown)
- retries_exhausted_total (dependency flapping beyond the retry budget)
- version_conflicts_total (sudden rise indicates concurrent-edit hot spots)
"""

from prometheus_client import Counter, Gauge

# === Circuit Breaker Metrics ===

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Current circuit breaker state (0=closed, 1=half_open, 2=open)",
    ["breaker"],
)
"""
Current state per breaker.

Labels:
- breaker: dependency name (postgres, redis, insurance-verify, ...)

Alert thresholds:
- WARN: value == 2 for any breaker
- CRITICAL: value == 2 for postgres for more than 2 minutes
"""

circuit_breaker_transitions_total = Counter(
    "circuit_breaker_transitions_total",
    "Total circuit breaker state transitions",
    ["breaker", "from_state", "to_state"],
)

circuit_breaker_rejections_total = Counter(
    "circuit_breaker_rejections_total",
    "Total calls short-circuited by an open breaker",
    ["breaker"],
)

# === Retry Metrics ===

retry_attempts_total = Counter(
    "retry_attempts_total",
    "Total retry attempts by operation and matched error signature",
    ["operation", "signature"],
)
"""
Retry attempts (excluding the first attempt of each call).

Labels:
- operation: logical operation name
- signature: retryable signature that triggered the retry (connection_reset, io_timeout, ...)

Alert thresholds:
- WARN: retry rate > 10% of calls for an operation
"""

retries_exhausted_total = Counter(
    "retries_exhausted_total",
    "Total calls that failed after exhausting every retry attempt",
    ["operation", "reason"],
)

# === Optimistic Locking Metrics ===

version_conflicts_total = Counter(
    "version_conflicts_total",
    "Total optimistic-lock version conflicts by store",
    ["store"],
)
