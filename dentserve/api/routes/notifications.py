from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from dentserve.api.deps import get_notification_service
from dentserve.core.auth import require_roles
from dentserve.schemas.auth import CurrentUser
from dentserve.schemas.requests import MarkNotificationsReadRequest
from dentserve.services.notification_service import NotificationService

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("")
async def list_notifications(
    unread_only: bool = False,
    types: list[str] | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(require_roles()),
    service: NotificationService = Depends(get_notification_service),
) -> dict:
    result = await service.get_notifications(
        user, unread_only=unread_only, notification_types=types, limit=limit, offset=offset
    )
    return result.to_response()


@router.post("/mark-read")
async def mark_notifications_read(
    body: MarkNotificationsReadRequest,
    user: CurrentUser = Depends(require_roles()),
    service: NotificationService = Depends(get_notification_service),
) -> dict:
    """Mark the listed notifications read, or all of them when no ids are given."""
    result = await service.mark_read(user, body.notification_ids)
    return result.to_response()
