"""
FastAPI exception handlers for the resilience layer's error types.

Maps resilience exceptions to HTTP responses:
- CircuitOpenError      -> 503 + Retry-After ("try again later")
- RetryExhausted        -> whatever the last underlying error maps to; 503 if unmapped
- VersionConflictError  -> 409 with current_version ("refresh and retry the edit")
- EntityNotFoundError   -> 404
"""

import logging
import math
from datetime import datetime, timezone

from fastapi import Request, status
from fastapi.responses import JSONResponse

from clinic_resilience.exceptions import (
    CircuitOpenError,
    EntityNotFoundError,
    RetryExhausted,
    VersionConflictError,
)

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


async def circuit_open_handler(request: Request, exc: CircuitOpenError) -> JSONResponse:
    """
    Handle short-circuited calls.

    Maps to 503 Service Unavailable with Retry-After set to the remaining cooldown.
    """
    logger.warning(
        "Circuit open",
        extra={"breaker": exc.breaker_name, "path": request.url.path},
    )

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        headers={"Retry-After": str(max(1, math.ceil(exc.retry_after)))},
        content={
            "error": "service_unavailable",
            "message": "The service is temporarily unavailable. Please try again shortly.",
            "dependency": exc.breaker_name,
            "timestamp": _timestamp(),
        },
    )


async def retry_exhausted_handler(request: Request, exc: RetryExhausted) -> JSONResponse:
    """
    Handle exhausted retries.

    Responds exactly as the last underlying error would have on a single
    attempt, using whichever handler the app registered for it. Unmapped
    transient errors become 503 Service Unavailable.
    """
    logger.error(
        "Retries exhausted",
        extra={
            "operation": exc.operation,
            "total_attempts": exc.retry_metadata.total_attempts,
            "total_latency_ms": exc.retry_metadata.total_latency_ms,
            "last_error": str(exc.last_error),
        },
    )

    handlers = request.app.exception_handlers
    for cls in type(exc.last_error).__mro__:
        if cls in (Exception, BaseException):
            break
        handler = handlers.get(cls)
        if handler is not None:
            return await handler(request, exc.last_error)

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": "retry_exhausted",
            "message": "The service is temporarily unavailable. Please try again later.",
            "attempts": exc.retry_metadata.total_attempts,
            "timestamp": _timestamp(),
        },
    )


async def version_conflict_handler(request: Request, exc: VersionConflictError) -> JSONResponse:
    """
    Handle optimistic-lock conflicts.

    Maps to 409 Conflict. The body carries the stored version so the client
    can re-fetch, reconcile and resubmit.
    """
    logger.info(
        "Version conflict",
        extra={
            "entity_id": exc.entity_id,
            "expected_version": exc.expected_version,
            "current_version": exc.current_version,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "error": "version_conflict",
            "message": "This record was modified by another request. Please reload and try again.",
            "entity_id": exc.entity_id,
            "expected_version": exc.expected_version,
            "current_version": exc.current_version,
            "timestamp": _timestamp(),
        },
    )


async def entity_not_found_handler(request: Request, exc: EntityNotFoundError) -> JSONResponse:
    """Maps to 404 Not Found."""
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={
            "error": "not_found",
            "message": str(exc),
            "entity_id": exc.entity_id,
            "timestamp": _timestamp(),
        },
    )


# Exception handler mapping for FastAPI app.add_exception_handler()
EXCEPTION_HANDLERS = {
    CircuitOpenError: circuit_open_handler,
    RetryExhausted: retry_exhausted_handler,
    VersionConflictError: version_conflict_handler,
    EntityNotFoundError: entity_not_found_handler,
}
