"""
API response models for the health endpoints.
"""

from pydantic import BaseModel, Field

from clinic_resilience.breaker.circuit_breaker import BreakerStatus


class HealthResponse(BaseModel):
    """Overall service health derived from breaker states."""

    status: str = Field(..., description="ok | degraded")
    version: str
    open_breakers: list[str] = Field(default_factory=list)
    half_open_breakers: list[str] = Field(default_factory=list)


class BreakersResponse(BaseModel):
    """Read-only snapshot of every known breaker."""

    breakers: list[BreakerStatus]
