"""
Shared API Middleware
=====================

Common middleware and exception handlers for the admin API.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, Type

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from caseflow.core import (
    ApplicationException,
    BackingApiException,
    DomainException,
    PermissionDeniedException,
    ResourceNotFoundException,
    StaleDataException,
    TransientFetchException,
    ValidationException,
)
from caseflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

# Most specific class first
STATUS_CODES: Dict[Type[ApplicationException], int] = {
    ValidationException: 422,
    ResourceNotFoundException: 404,
    PermissionDeniedException: 403,
    StaleDataException: 409,
    DomainException: 409,
    TransientFetchException: 503,
    BackingApiException: 502,
}


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Adds a correlation ID to every request and response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request with its status and duration."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = getattr(request.state, "correlation_id", "unknown")
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={
                    "correlation_id": correlation_id,
                    "method": request.method,
                    "path": request.url.path,
                    "error": str(e),
                    "response_time_ms": int((time.perf_counter() - start_time) * 1000)
                }
            )
            raise

        logger.info(
            "Request completed",
            extra={
                "correlation_id": correlation_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "response_time_ms": int((time.perf_counter() - start_time) * 1000)
            }
        )
        response.headers["X-Response-Time"] = f"{time.perf_counter() - start_time:.3f}s"
        return response


def status_code_for(exc: ApplicationException) -> int:
    for exc_type, code in STATUS_CODES.items():
        if isinstance(exc, exc_type):
            return code
    return 500


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    """Translate the core exception taxonomy into HTTP responses."""
    correlation_id = getattr(request.state, "correlation_id", "unknown")
    status_code = status_code_for(exc)

    logger.warning(
        "Application error",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "error_type": type(exc).__name__,
            "error_message": exc.message,
            "status_code": status_code
        }
    )

    content = {
        "detail": exc.message,
        "error_type": type(exc).__name__,
        "correlation_id": correlation_id,
    }
    if isinstance(exc, ValidationException):
        content["errors"] = exc.errors
    if getattr(exc, "retryable", False):
        content["retryable"] = True
    return JSONResponse(status_code=status_code, content=content)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Consistent 500 response for anything unhandled."""
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    logger.error(
        "Unhandled exception",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc)
        }
    )

    is_dev = getattr(getattr(request.app.state, "settings", None), "environment", None) == "development"

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "correlation_id": correlation_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "debug_info": str(exc) if is_dev else None
        }
    )


def install(app: FastAPI) -> None:
    """Register the shared middleware and exception handlers on ``app``."""
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIDMiddleware)
    app.add_exception_handler(ApplicationException, application_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
