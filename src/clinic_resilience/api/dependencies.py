"""
FastAPI dependency injection for the resilience layer.

The breaker registry and the resilient caller are built once per app in
create_app() and stored on app.state; handlers receive them through these
dependencies so tests can swap in isolated instances.
"""

from fastapi import Request

from clinic_resilience.breaker.registry import BreakerRegistry
from clinic_resilience.config import Settings
from clinic_resilience.locking.guard import OptimisticLockGuard
from clinic_resilience.resilient import ResilientCaller


def get_settings(request: Request) -> Settings:
    """
    Get the settings the app was created with.

    Returns:
        Settings instance
    """
    return request.app.state.settings


def get_breaker_registry(request: Request) -> BreakerRegistry:
    """
    Get the process-wide breaker registry.

    Returns:
        BreakerRegistry instance
    """
    return request.app.state.breaker_registry


def get_resilient_caller(request: Request) -> ResilientCaller:
    """
    Get the resilient caller bound to the app's registry.

    Returns:
        ResilientCaller instance
    """
    return request.app.state.resilient_caller


def get_lock_guard(request: Request) -> OptimisticLockGuard:
    """
    Get an optimistic lock guard on the app's versioned store.

    Note: the guard is NOT cached because it is lightweight and stateless;
    the store (and its Redis pool) is shared.

    Returns:
        OptimisticLockGuard instance
    """
    return OptimisticLockGuard(request.app.state.versioned_store)
