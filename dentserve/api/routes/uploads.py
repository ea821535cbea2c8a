"""Image upload endpoints with client-side cancellation.

Clients send an ``X-Upload-Id`` header (or receive a generated one in the
response) and can cancel an in-flight upload with
``DELETE /api/upload/<kind>-image/<upload_id>``.
"""

from __future__ import annotations

import uuid
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, File, Form, Header, Request, Response, UploadFile

from dentserve.api.deps import get_upload_service
from dentserve.core.auth import get_current_user
from dentserve.core.errors import ValidationAppError
from dentserve.core.rate_limit import enforce_upload_rate_limit
from dentserve.schemas.auth import CurrentUser
from dentserve.services.upload_service import ImageUploadService

router = APIRouter(prefix="/api/upload", tags=["Uploads"])

UploadIdHeader = Annotated[str | None, Header(alias="X-Upload-Id")]
ImageKindPath = Literal["profile", "clinic", "doctor"]


def _upload_id(header_value: str | None) -> str:
    return header_value or f"upload_{uuid.uuid4().hex}"


@router.post("/profile-image", dependencies=[Depends(enforce_upload_rate_limit)])
async def upload_profile_image(
    request: Request,
    response: Response,
    profileImage: UploadFile | None = File(None),
    x_upload_id: UploadIdHeader = None,
    user: CurrentUser = Depends(get_current_user),
    service: ImageUploadService = Depends(get_upload_service),
) -> dict:
    """Replace the caller's profile picture (JPEG, PNG or WebP, up to 5 MB)."""
    upload_id = _upload_id(x_upload_id)
    response.headers["X-Upload-Id"] = upload_id
    return await service.upload(
        user, "profile", profileImage, upload_id=upload_id, is_disconnected=request.is_disconnected
    )


@router.post("/clinic-image", dependencies=[Depends(enforce_upload_rate_limit)])
async def upload_clinic_image(
    request: Request,
    response: Response,
    clinicImage: UploadFile | None = File(None),
    clinicId: str | None = Form(None),
    x_upload_id: UploadIdHeader = None,
    user: CurrentUser = Depends(get_current_user),
    service: ImageUploadService = Depends(get_upload_service),
) -> dict:
    """Replace a clinic's image. Staff of that clinic or admins only."""
    upload_id = _upload_id(x_upload_id)
    response.headers["X-Upload-Id"] = upload_id
    return await service.upload(
        user,
        "clinic",
        clinicImage,
        upload_id=upload_id,
        target_id=clinicId,
        is_disconnected=request.is_disconnected,
    )


@router.post("/doctor-image", dependencies=[Depends(enforce_upload_rate_limit)])
async def upload_doctor_image(
    request: Request,
    response: Response,
    doctorImage: UploadFile | None = File(None),
    doctorId: str | None = Form(None),
    x_upload_id: UploadIdHeader = None,
    user: CurrentUser = Depends(get_current_user),
    service: ImageUploadService = Depends(get_upload_service),
) -> dict:
    """Replace a doctor's image. Staff of a clinic the doctor works at, or admins."""
    upload_id = _upload_id(x_upload_id)
    response.headers["X-Upload-Id"] = upload_id
    return await service.upload(
        user,
        "doctor",
        doctorImage,
        upload_id=upload_id,
        target_id=doctorId,
        is_disconnected=request.is_disconnected,
    )


@router.delete("/{kind}-image/{upload_id}")
async def cancel_upload(
    kind: ImageKindPath,
    upload_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: ImageUploadService = Depends(get_upload_service),
) -> dict:
    return service.cancel(user, upload_id, kind)


@router.delete("")
async def cancel_upload_by_header(
    x_upload_id: UploadIdHeader = None,
    user: CurrentUser = Depends(get_current_user),
    service: ImageUploadService = Depends(get_upload_service),
) -> dict:
    if not x_upload_id:
        raise ValidationAppError(code="missing_upload_id", message="X-Upload-Id header is required")
    return service.cancel(user, x_upload_id)
