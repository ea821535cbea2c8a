from __future__ import annotations

from fastapi import APIRouter, Depends

from dentserve.api.deps import get_email_service
from dentserve.core.rate_limit import enforce_email_rate_limit
from dentserve.schemas.requests import SendEmailRequest, StaffInvitationRequest
from dentserve.services.email_service import EmailService

router = APIRouter(prefix="/api/email", tags=["Email"])


@router.post("/send-staff-invitation", dependencies=[Depends(enforce_email_rate_limit)])
async def send_staff_invitation(
    body: StaffInvitationRequest,
    service: EmailService = Depends(get_email_service),
) -> dict:
    """Email a staff invitation with a signup link carrying the invitation id and token."""
    return await service.send_staff_invitation(**body.model_dump())


@router.post("/send-email", dependencies=[Depends(enforce_email_rate_limit)])
async def send_email(
    body: SendEmailRequest,
    service: EmailService = Depends(get_email_service),
) -> dict:
    return await service.send_email(
        to=body.to,
        subject=body.subject,
        html_body=body.html,
        from_address=body.from_address,
    )


@router.get("/health")
def email_health(service: EmailService = Depends(get_email_service)) -> dict:
    return service.health()
