from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from dentserve.api.deps import get_recaptcha_service
from dentserve.core.rate_limit import client_ip
from dentserve.schemas.requests import RecaptchaVerifyRequest
from dentserve.services.recaptcha_service import RecaptchaService

router = APIRouter(prefix="/api/recaptcha", tags=["reCAPTCHA"])


@router.post("/verify")
async def verify_recaptcha(
    body: RecaptchaVerifyRequest,
    request: Request,
    service: RecaptchaService = Depends(get_recaptcha_service),
) -> dict:
    """Verify a reCAPTCHA v3 token and enforce the per-action minimum score."""
    return await service.verify(
        body.token,
        action=body.action,
        expected_action=body.expected_action,
        remote_ip=client_ip(request),
    )
