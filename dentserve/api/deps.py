"""FastAPI dependency providers.

Adapters are process-wide singletons created on first use and closed by
the application lifespan. Services are cheap wrappers built per request
around those adapters plus the shared in-memory state (dashboard cache,
action throttle, upload registry). Tests swap any of them through
``app.dependency_overrides``.
"""

from __future__ import annotations

import logging

from fastapi import Depends

from dentserve.adapters.database import AbstractDatabaseClient, create_database_client
from dentserve.adapters.email import AbstractEmailSender, ResendEmailSender
from dentserve.adapters.storage import AbstractImageStorage, create_image_storage
from dentserve.core.config import settings
from dentserve.services.admin_service import AdminService
from dentserve.services.analytics_service import AnalyticsService
from dentserve.services.appointment_service import AppointmentService
from dentserve.services.clinic_service import ClinicService
from dentserve.services.dashboard_service import DashboardService
from dentserve.services.email_service import EmailService
from dentserve.services.notification_service import NotificationService
from dentserve.services.recaptcha_service import RecaptchaService
from dentserve.services.upload_service import MB, ImageUploadService, UploadRegistry
from dentserve.utils.action_throttle import ActionThrottle
from dentserve.utils.simple_cache import SimpleTTLCache

logger = logging.getLogger(__name__)

_db: AbstractDatabaseClient | None = None
_storage: AbstractImageStorage | None = None
_email_sender: AbstractEmailSender | None = None
_recaptcha: RecaptchaService | None = None

action_throttle = ActionThrottle()
dashboard_cache = SimpleTTLCache(ttl_seconds=settings.app.dashboard_cache_ttl_seconds, max_entries=4096)
upload_registry = UploadRegistry()


def get_database_client() -> AbstractDatabaseClient:
    global _db
    if _db is None:
        _db = create_database_client()
    return _db


def get_image_storage() -> AbstractImageStorage:
    global _storage
    if _storage is None:
        _storage = create_image_storage()
    return _storage


def get_email_sender() -> AbstractEmailSender | None:
    """Resend sender, or None when no API key is configured."""
    global _email_sender
    if _email_sender is None and settings.email.resend_api_key:
        _email_sender = ResendEmailSender(
            settings.email.resend_api_key,
            base_url=settings.email.api_base_url,
            timeout_seconds=settings.email.timeout_seconds,
        )
    return _email_sender


def get_recaptcha_service() -> RecaptchaService:
    global _recaptcha
    if _recaptcha is None:
        _recaptcha = RecaptchaService(
            settings.recaptcha.secret_key,
            verify_url=settings.recaptcha.verify_url,
            timeout_seconds=settings.recaptcha.timeout_seconds,
        )
    return _recaptcha


def get_dashboard_service(db: AbstractDatabaseClient = Depends(get_database_client)) -> DashboardService:
    return DashboardService(
        db,
        cache=dashboard_cache,
        throttle=action_throttle,
        refresh_cooldown=settings.app.dashboard_refresh_cooldown_seconds,
    )


def get_appointment_service(
    db: AbstractDatabaseClient = Depends(get_database_client),
) -> AppointmentService:
    return AppointmentService(
        db,
        throttle=action_throttle,
        submit_guard_seconds=settings.app.submit_guard_seconds,
    )


def get_clinic_service(db: AbstractDatabaseClient = Depends(get_database_client)) -> ClinicService:
    return ClinicService(db)


def get_analytics_service(db: AbstractDatabaseClient = Depends(get_database_client)) -> AnalyticsService:
    return AnalyticsService(db)


def get_notification_service(
    db: AbstractDatabaseClient = Depends(get_database_client),
) -> NotificationService:
    return NotificationService(db)


def get_admin_service(db: AbstractDatabaseClient = Depends(get_database_client)) -> AdminService:
    return AdminService(db)


def get_upload_service(
    db: AbstractDatabaseClient = Depends(get_database_client),
    storage: AbstractImageStorage = Depends(get_image_storage),
) -> ImageUploadService:
    return ImageUploadService(
        db,
        storage,
        upload_registry,
        max_upload_bytes=settings.app.max_upload_size_mb * MB,
    )


def get_email_service(
    sender: AbstractEmailSender | None = Depends(get_email_sender),
) -> EmailService:
    return EmailService(
        sender,
        from_address=settings.email.from_address,
        frontend_url=settings.app.frontend_url,
    )


async def aclose_providers() -> None:
    """Close every adapter created so far and forget it."""
    global _db, _storage, _email_sender, _recaptcha

    for name, resource in (
        ("database", _db),
        ("storage", _storage),
        ("email", _email_sender),
        ("recaptcha", _recaptcha),
    ):
        if resource is not None:
            await resource.aclose()
            logger.info("provider.closed", extra={"provider": name})

    _db = _storage = _email_sender = _recaptcha = None
