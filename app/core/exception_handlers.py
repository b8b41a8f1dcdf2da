"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return the API's response envelope
(``success``/``message``) with proper HTTP status codes and traceability.

Design:
- AppError subclasses → their declared status (400, 401, 403, 404, 429)
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing
"""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import AppError
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Each AppError subclass carries its HTTP status as a class attribute:
    - ValidationAppError → 400 Bad Request
    - AuthenticationAppError → 401 Unauthorized
    - ForbiddenAppError → 403 Forbidden
    - NotFoundAppError → 404 Not Found
    - RateLimitAppError → 429 Too Many Requests

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = exc.status_code

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        }
    )

    content = {
        "success": False,
        "message": exc.message,
        "code": exc.code,
        "request_id": get_request_id(),
    }

    # Include details only if present (optional structured context)
    if exc.details:
        content["details"] = exc.details

    headers = None
    if exc.details and "retry_after" in exc.details:
        headers = {"Retry-After": str(exc.details["retry_after"])}

    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Catches any exception not handled by specific handlers. Unless the
    serving app runs with APP_ENV=production, the exception type and text are
    echoed in ``error`` to ease debugging; production responses stay generic.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with a generic 500 error.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
        exc_info=exc,
    )

    content = {
        "success": False,
        "message": "An unexpected error occurred. Please try again later.",
        "code": "internal_server_error",
        "request_id": get_request_id(),
    }
    app_settings = getattr(request.app.state, "settings", settings)
    if not app_settings.is_production:
        content["error"] = f"{type(exc).__name__}: {exc}"

    return JSONResponse(status_code=500, content=content)


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
