from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from dentserve.api.deps import get_admin_service
from dentserve.core.auth import require_roles
from dentserve.schemas.auth import CurrentUser
from dentserve.schemas.requests import (
    ChangePasswordRequest,
    ManagePartnershipRequest,
    PartnershipDecisionRequest,
    RateLimitCheckRequest,
)
from dentserve.services.admin_service import AdminService

router = APIRouter(prefix="/api/admin", tags=["Admin"])

require_admin = require_roles("admin")


@router.post("/change-user-password")
async def change_user_password(
    body: ChangePasswordRequest,
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
) -> dict:
    return await service.change_user_password(admin, body.user_id, body.new_password)


@router.get("/partnerships")
async def list_partnership_requests(
    status: str | None = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
) -> dict:
    result = await service.list_partnership_requests(admin, status=status, limit=limit, offset=offset)
    return result.to_response()


@router.post("/partnerships/{request_id}/approve")
async def approve_partnership_request(
    request_id: str,
    body: PartnershipDecisionRequest,
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
) -> dict:
    result = await service.approve_partnership_request(admin, request_id, body.admin_notes)
    return result.to_response()


@router.post("/partnerships/{request_id}/reject")
async def reject_partnership_request(
    request_id: str,
    body: PartnershipDecisionRequest,
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
) -> dict:
    result = await service.reject_partnership_request(admin, request_id, body.admin_notes)
    return result.to_response()


@router.post("/partnerships/{request_id}/manage")
async def manage_partnership_request(
    request_id: str,
    body: ManagePartnershipRequest,
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
) -> dict:
    result = await service.manage_partnership_request(
        admin, request_id, body.action, body.admin_notes, body.clinic_data
    )
    return result.to_response()


@router.get("/rate-limits")
async def list_rate_limits(
    action_type: str | None = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
) -> dict:
    result = await service.list_rate_limits(admin, action_type=action_type, limit=limit, offset=offset)
    return result.to_response()


@router.post("/rate-limits/check")
async def check_rate_limit(
    body: RateLimitCheckRequest,
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
) -> dict:
    result = await service.check_rate_limit(
        admin,
        body.identifier,
        body.action_type,
        max_attempts=body.max_attempts,
        window_minutes=body.window_minutes,
    )
    return result.to_response()


@router.delete("/rate-limits/{identifier}")
async def clear_rate_limit(
    identifier: str,
    action_type: str | None = None,
    admin: CurrentUser = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
) -> dict:
    result = await service.clear_rate_limit(admin, identifier, action_type)
    return result.to_response()
