"""
HTTP boundary for the resilience layer.

- routes_health.py: Read-only breaker status (GET /health, GET /health/breakers)
- dependencies.py: Dependency injection for registry, caller and lock guard
- models.py: Health response models
- error_handlers.py: Exception handlers (503 / 409 / 404 mappings)
"""

from clinic_resilience.api import dependencies, error_handlers, models
from clinic_resilience.api.routes_health import router as health_router

__all__ = [
    "health_router",
    "dependencies",
    "error_handlers",
    "models",
]
