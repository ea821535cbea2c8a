"""Request bodies for the auxiliary, admin and notification endpoints.

Fields the handlers must reject with a specific message are optional here
and checked by the services.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HelloRequest(BaseModel):
    name: str = Field(..., min_length=1)


class RecaptchaVerifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str | None = None
    action: str | None = None
    expected_action: str | None = Field(None, alias="expectedAction")


class StaffInvitationRequest(BaseModel):
    to_email: str | None = None
    subject: str | None = None
    clinic_name: str | None = None
    position: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    invitation_id: str | None = None
    invitation_token: str | None = None


class SendEmailRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: str | list[str] | None = None
    subject: str | None = None
    html: str | None = None
    from_address: str | None = Field(None, alias="from")


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    new_password: str | None = Field(None, alias="newPassword")


class PartnershipDecisionRequest(BaseModel):
    admin_notes: str | None = None


class ManagePartnershipRequest(BaseModel):
    action: str
    admin_notes: str | None = None
    clinic_data: dict[str, Any] | None = None


class RateLimitCheckRequest(BaseModel):
    identifier: str
    action_type: str
    max_attempts: int = Field(5, ge=1)
    window_minutes: int = Field(60, ge=1)


class MarkNotificationsReadRequest(BaseModel):
    notification_ids: list[str] | None = None
