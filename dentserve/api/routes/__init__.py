from __future__ import annotations

from dentserve.api.routes.admin import router as admin_router
from dentserve.api.routes.appointments import router as appointments_router
from dentserve.api.routes.clinics import router as clinics_router
from dentserve.api.routes.dashboard import router as dashboard_router
from dentserve.api.routes.email import router as email_router
from dentserve.api.routes.health import router as health_router
from dentserve.api.routes.notifications import router as notifications_router
from dentserve.api.routes.recaptcha import router as recaptcha_router
from dentserve.api.routes.uploads import router as uploads_router

__all__ = [
    "admin_router",
    "appointments_router",
    "clinics_router",
    "dashboard_router",
    "email_router",
    "health_router",
    "notifications_router",
    "recaptcha_router",
    "uploads_router",
]
