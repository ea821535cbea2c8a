"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build fresh instances.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from dentserve.api.deps import aclose_providers
from dentserve.api.routes import (
    admin_router,
    appointments_router,
    clinics_router,
    dashboard_router,
    email_router,
    health_router,
    notifications_router,
    recaptcha_router,
    uploads_router,
)
from dentserve.core.config import settings
from dentserve.core.exception_handlers import setup_exception_handlers
from dentserve.core.logging import configure_logging
from dentserve.core.middleware import request_id_middleware, setup_cors
from dentserve.core.openapi import apply_openapi_customizations

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info(
        "app.startup",
        extra={"env": settings.app_env, "port": settings.app.port, "storage": settings.storage.backend},
    )
    try:
        yield
    finally:
        await aclose_providers()
        logger.info("app.shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="DentServe API",
        description=(
            "Backend for the DentServe dental-clinic booking platform: image "
            "uploads with cancellation, reCAPTCHA verification, transactional "
            "email, and role-gated access to the booking, analytics, "
            "notification and admin procedures of the database platform."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)
    setup_cors(app)

    setup_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(uploads_router)
    app.include_router(recaptcha_router)
    app.include_router(email_router)
    app.include_router(dashboard_router)
    app.include_router(appointments_router)
    app.include_router(clinics_router)
    app.include_router(notifications_router)
    app.include_router(admin_router)

    apply_openapi_customizations(app)

    return app
