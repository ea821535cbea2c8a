"""Admin-only operations: rate-limit records, partnership requests and
password resets on behalf of users.

Callers are expected to have passed an admin role guard; the service does
not re-check roles.
"""

from __future__ import annotations

import logging
from typing import Any

from dentserve.adapters.database.base import AbstractDatabaseClient
from dentserve.core.errors import NotFoundAppError, ValidationAppError
from dentserve.schemas.auth import CurrentUser
from dentserve.services.rpc import RpcResult, call_rpc

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
PARTNERSHIP_ACTIONS = ("approve", "reject")


class AdminService:
    def __init__(self, db: AbstractDatabaseClient) -> None:
        self._db = db

    # Rate-limit records

    async def list_rate_limits(
        self,
        user: CurrentUser,
        *,
        action_type: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> RpcResult:
        filters = {"action_type": action_type} if action_type else None
        result = await self._db.select(
            "rate_limits",
            filters=filters,
            order="last_attempt",
            descending=True,
            limit=limit,
            offset=offset,
            count=True,
            access_token=user.access_token,
        )
        return RpcResult(success=True, data=result.rows, total=result.count)

    async def check_rate_limit(
        self,
        user: CurrentUser,
        identifier: str,
        action_type: str,
        *,
        max_attempts: int = 5,
        window_minutes: int = 60,
    ) -> RpcResult:
        if not identifier or not action_type:
            raise ValidationAppError(
                code="missing_field",
                message="Identifier and action type are required",
            )
        return await call_rpc(
            self._db,
            "check_rate_limit",
            {
                "p_user_identifier": identifier,
                "p_action_type": action_type,
                "p_max_attempts": max_attempts,
                "p_time_window_minutes": window_minutes,
                "p_success": False,
            },
            access_token=user.access_token,
            default_error="Failed to check rate limit",
        )

    async def clear_rate_limit(
        self, user: CurrentUser, identifier: str, action_type: str | None = None
    ) -> RpcResult:
        if not identifier:
            raise ValidationAppError(code="missing_field", message="Identifier is required")

        filters: dict[str, Any] = {"user_identifier": identifier}
        if action_type:
            filters["action_type"] = action_type
        deleted = await self._db.delete("rate_limits", filters=filters, access_token=user.access_token)
        logger.info(
            "admin.rate_limit_cleared",
            extra={"admin_id": user.user_id, "action_type": action_type, "deleted": len(deleted)},
        )
        return RpcResult(success=True, data={"deleted": len(deleted)}, message="Rate limit cleared")

    # Partnership requests

    async def list_partnership_requests(
        self,
        user: CurrentUser,
        *,
        status: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> RpcResult:
        return await call_rpc(
            self._db,
            "get_partnership_requests",
            {"p_status": status, "p_limit": limit, "p_offset": offset},
            access_token=user.access_token,
            default_error="Failed to load partnership requests",
        )

    async def approve_partnership_request(
        self, user: CurrentUser, request_id: str, notes: str | None = None
    ) -> RpcResult:
        return await self.manage_partnership_request(user, request_id, "approve", notes)

    async def reject_partnership_request(
        self, user: CurrentUser, request_id: str, notes: str | None = None
    ) -> RpcResult:
        if not request_id:
            raise ValidationAppError(code="missing_request_id", message="Request ID is required")
        return await call_rpc(
            self._db,
            "reject_partnership_request",
            {"p_request_id": request_id, "p_admin_notes": notes},
            access_token=user.access_token,
            default_error="Failed to reject request",
        )

    async def manage_partnership_request(
        self,
        user: CurrentUser,
        request_id: str,
        action: str,
        notes: str | None = None,
        clinic_data: dict[str, Any] | None = None,
    ) -> RpcResult:
        if not request_id:
            raise ValidationAppError(code="missing_request_id", message="Request ID is required")
        if action not in PARTNERSHIP_ACTIONS:
            raise ValidationAppError(
                code="invalid_action",
                message="Action must be 'approve' or 'reject'",
            )

        result = await call_rpc(
            self._db,
            "manage_partnership_request",
            {
                "p_request_id": request_id,
                "p_action": action,
                "p_admin_notes": notes,
                "p_clinic_data": clinic_data,
            },
            access_token=user.access_token,
            default_error=f"Failed to {action} request",
        )
        if result.success:
            logger.info(
                "admin.partnership_processed",
                extra={"admin_id": user.user_id, "request_id": request_id, "action": action},
            )
        return result

    # Passwords

    async def change_user_password(
        self, user: CurrentUser, target_user_id: str, new_password: str | None
    ) -> dict[str, Any]:
        """Set a new password for ``target_user_id`` through the auth admin API.

        Raises:
            ValidationAppError: If the password is shorter than 8 characters.
            NotFoundAppError: If the target user does not exist.
        """
        if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationAppError(
                code="weak_password",
                message=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            )

        found = await self._db.select(
            "users",
            filters={"id": target_user_id},
            columns="auth_user_id,email",
            limit=1,
        )
        if not found.rows:
            raise NotFoundAppError(code="user_not_found", message="User not found")
        target = found.rows[0]

        await self._db.admin_update_user(target["auth_user_id"], {"password": new_password})

        audit = await call_rpc(
            self._db,
            "admin_change_user_password",
            {"p_user_id": target_user_id, "p_new_password": "***"},
        )
        if not audit.success:
            logger.warning(
                "admin.password_audit_failed",
                extra={"admin_id": user.user_id, "target_user_id": target_user_id, "error": audit.error},
            )

        logger.info(
            "admin.password_changed",
            extra={"admin_id": user.user_id, "target_user_id": target_user_id},
        )
        return {
            "success": True,
            "message": "Password changed successfully",
            "userEmail": target.get("email"),
        }
