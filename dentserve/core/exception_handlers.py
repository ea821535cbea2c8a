"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Every failure is rendered with the same envelope the clients already
understand::

    {"success": false, "error": "<message>", "code": "<code>",
     "request_id": "...", "timestamp": "..."}

Design:
- AppError subclasses → the status code declared on the subclass
- HTTPException / request validation → same envelope, their own status
- Unexpected Exception → classified (network → 503, auth → 401, else 500)
"""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dentserve.core.config import settings
from dentserve.core.errors import AppError
from dentserve.core.logging import get_request_id
from dentserve.utils.error_classifier import ErrorCategory, classify_error

logger = logging.getLogger(__name__)

_DEFAULT_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    413: "payload_too_large",
    429: "rate_limited",
}


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def error_body(message: str, code: str, **extra: Any) -> dict[str, Any]:
    """Build the failure envelope shared by all handlers and routes."""
    body: dict[str, Any] = {
        "success": False,
        "error": message,
        "code": code,
        "request_id": get_request_id(),
        "timestamp": _timestamp(),
    }
    body.update({k: v for k, v in extra.items() if v is not None})
    return body


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    The HTTP status comes from the error class (``status_code``), so new
    error types only need to declare it.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = exc.status_code

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )

    headers: dict[str, str] = dict(getattr(exc, "headers", None) or {})
    if exc.details and "retry_after" in exc.details:
        headers.setdefault("Retry-After", str(int(exc.details["retry_after"])))

    return JSONResponse(
        status_code=status_code,
        content=error_body(exc.message, exc.code, details=exc.details or None),
        headers=headers or None,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTPException (including unknown routes) in the shared envelope."""
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(
            status_code=404,
            content=error_body(
                "Route not found",
                "route_not_found",
                path=request.url.path,
                method=request.method,
            ),
        )

    detail = exc.detail
    message = detail if isinstance(detail, str) else "Request failed"
    code = _DEFAULT_CODES.get(exc.status_code, "http_error")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message, code),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request body/query validation failures as 400."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"

    logger.info(
        "request_validation_failed",
        extra={"request_path": request.url.path, "error_count": len(errors)},
    )
    return JSONResponse(
        status_code=400,
        content=error_body(message, "validation_error"),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Classifies the exception to choose between 503 (network), 401 (auth)
    and 500. Never leaks stack traces; the raw message is only exposed when
    debug mode is on.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with a generic error.
    """
    category = classify_error(exc)

    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "error_category": category.value,
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    if category is ErrorCategory.NETWORK:
        return JSONResponse(
            status_code=503,
            content=error_body("Service temporarily unavailable", "service_unavailable"),
        )

    if category is ErrorCategory.AUTHENTICATION:
        return JSONResponse(
            status_code=401,
            content=error_body("Authentication failed", "authentication_failed"),
        )

    message = str(exc) if settings.app.debug else "Internal server error"
    return JSONResponse(
        status_code=500,
        content=error_body(message, "internal_server_error"),
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Must be called during app initialization, before route registration.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
