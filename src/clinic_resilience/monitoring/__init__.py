"""Monitoring and metrics instrumentation for the resilience layer.

Exports custom Prometheus metrics for operational monitoring and alerting.
"""

from clinic_resilience.monitoring.metrics import (
    circuit_breaker_rejections_total,
    circuit_breaker_state,
    circuit_breaker_transitions_total,
    retries_exhausted_total,
    retry_attempts_total,
    version_conflicts_total,
)

__all__ = [
    "circuit_breaker_state",
    "circuit_breaker_transitions_total",
    "circuit_breaker_rejections_total",
    "retry_attempts_total",
    "retries_exhausted_total",
    "version_conflicts_total",
]
