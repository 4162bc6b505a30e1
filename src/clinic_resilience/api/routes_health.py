"""
Read-only health endpoints backed by the breaker registry.

Informational only: nothing here changes breaker state. Administrative
resets go through BreakerRegistry.reset() from operator tooling.
"""

from fastapi import APIRouter, Depends, status

from clinic_resilience.api.dependencies import get_breaker_registry, get_settings
from clinic_resilience.api.models import BreakersResponse, HealthResponse
from clinic_resilience.breaker.registry import BreakerRegistry
from clinic_resilience.breaker.state import CircuitState
from clinic_resilience.config import Settings

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Service health",
    description="Reports `degraded` while any dependency breaker is open or half-open.",
)
async def health(
    registry: BreakerRegistry = Depends(get_breaker_registry),
    settings: Settings = Depends(get_settings),
) -> HealthResponse:
    statuses = registry.statuses()
    open_breakers = [s.name for s in statuses if s.state is CircuitState.OPEN]
    half_open_breakers = [s.name for s in statuses if s.state is CircuitState.HALF_OPEN]
    return HealthResponse(
        status="degraded" if open_breakers or half_open_breakers else "ok",
        version=settings.APP_VERSION,
        open_breakers=open_breakers,
        half_open_breakers=half_open_breakers,
    )


@router.get(
    "/health/breakers",
    response_model=BreakersResponse,
    status_code=status.HTTP_200_OK,
    summary="Circuit breaker status",
)
async def breakers(
    registry: BreakerRegistry = Depends(get_breaker_registry),
) -> BreakersResponse:
    """Name, state and counters of every breaker created so far."""
    return BreakersResponse(breakers=registry.statuses())
