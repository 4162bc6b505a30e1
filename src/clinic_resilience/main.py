"""
FastAPI application entry point.

create_app() wires one BreakerRegistry, ResilientCaller and versioned store
per application instance, so tests can build isolated apps.
"""

from typing import Optional

import structlog
from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from clinic_resilience.api.error_handlers import EXCEPTION_HANDLERS
from clinic_resilience.api.routes_health import router as health_router
from clinic_resilience.breaker.registry import BreakerRegistry
from clinic_resilience.config import Settings, settings as default_settings
from clinic_resilience.locking.stores import VersionedStore
from clinic_resilience.logging_config import configure_logging
from clinic_resilience.persistence.redis_client import RedisClient, get_versioned_store
from clinic_resilience.resilient import ResilientCaller

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    versioned_store: Optional[VersionedStore] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Application settings (module-level settings when None)
        versioned_store: Store for optimistic locking (Redis-backed when None)

    Returns:
        Configured FastAPI app
    """
    settings = settings or default_settings

    app = FastAPI(
        title=settings.APP_NAME,
        description="Circuit breakers, retries and optimistic locking for clinic services",
        version=settings.APP_VERSION,
    )

    registry = BreakerRegistry(settings)
    app.state.settings = settings
    app.state.breaker_registry = registry
    app.state.resilient_caller = ResilientCaller(registry, settings)
    app.state.versioned_store = versioned_store or get_versioned_store(settings)

    for exc_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exc_class, handler)

    app.include_router(health_router, tags=["health"])

    @app.on_event("startup")
    async def startup():
        """Application startup."""
        logger.info(
            "Application startup",
            version=settings.APP_VERSION,
            environment=settings.ENVIRONMENT,
            failure_threshold=settings.BREAKER_FAILURE_THRESHOLD,
            cooldown_seconds=settings.BREAKER_COOLDOWN_SECONDS,
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            overrides=sorted(settings.DEPENDENCY_OVERRIDES),
        )

    @app.on_event("shutdown")
    async def shutdown():
        """Application shutdown - release the Redis pool."""
        await RedisClient.close_async_pool()
        logger.info("Application shutdown complete")

    if settings.PROMETHEUS_ENABLED:
        Instrumentator().instrument(app).expose(app)

    return app


if __name__ == "__main__":
    import uvicorn

    configure_logging(default_settings.LOG_LEVEL, default_settings.ENVIRONMENT)
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
