from __future__ import annotations

from dentserve.adapters.database.base import AbstractDatabaseClient
from dentserve.schemas.auth import CurrentUser
from dentserve.services.rpc import RpcResult, call_rpc


class NotificationService:
    """In-app notifications for the current user."""

    def __init__(self, db: AbstractDatabaseClient) -> None:
        self._db = db

    async def get_notifications(
        self,
        user: CurrentUser,
        *,
        unread_only: bool = False,
        notification_types: list[str] | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> RpcResult:
        return await call_rpc(
            self._db,
            "get_user_notifications",
            {
                # None lets the procedure use the caller's own id
                "p_user_id": None,
                "p_read_status": False if unread_only else None,
                "p_notification_types": notification_types or None,
                "p_limit": limit,
                "p_offset": offset,
                "p_include_related_data": True,
            },
            access_token=user.access_token,
            default_error="Failed to load notifications",
        )

    async def mark_read(self, user: CurrentUser, notification_ids: list[str] | None = None) -> RpcResult:
        """Mark the given notifications read; None marks all of them."""
        return await call_rpc(
            self._db,
            "mark_notifications_read",
            {"p_notification_ids": None if notification_ids is None else notification_ids},
            access_token=user.access_token,
            default_error="Failed to mark notifications as read",
        )
