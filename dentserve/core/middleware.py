"""HTTP middleware: request correlation, access logging and CORS.

The request-id middleware:
- Accepts incoming X-Request-ID header or generates a UUID
- Stores request_id in contextvars for access throughout the request lifecycle
- Injects request_id and the request duration into response headers
- Emits one access log line per request
- Clears context after request completion to prevent context leaks

Usage:
    app.middleware("http")(request_id_middleware)
    setup_cors(app)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from dentserve.core.config import settings
from dentserve.core.logging import clear_request_context, set_request_id

logger = logging.getLogger("dentserve.access")

CORS_ALLOWED_HEADERS = [
    "Content-Type",
    "Authorization",
    "X-Upload-Id",
    "X-Requested-With",
    "X-Request-ID",
    "Accept",
    "Origin",
]
CORS_EXPOSED_HEADERS = ["X-Upload-Id", "X-Request-ID"]


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a correlation id to the request, its logs and its response.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The response from the next handler with request_id and
            duration headers added.
    """
    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "http.request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "client_ip": request.client.host if request.client else None,
                "user_agent": request.headers.get("user-agent"),
            },
        )
    finally:
        clear_request_context()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


def setup_cors(app: FastAPI) -> None:
    """Allow the configured frontend origins with credentials."""
    origins = settings.app.cors_origins()
    if not origins:
        logger.warning("cors.no_origins_configured")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=CORS_ALLOWED_HEADERS,
        expose_headers=CORS_EXPOSED_HEADERS,
    )
