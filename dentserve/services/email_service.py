"""Transactional email: staff invitations and pass-through messages."""

from __future__ import annotations

import html
import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlencode

from dentserve.adapters.email.base import AbstractEmailSender
from dentserve.core.errors import ConfigurationAppError, UpstreamAppError, ValidationAppError

logger = logging.getLogger(__name__)

INVITATION_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Welcome to DentServe</title>
</head>
<body style="font-family: -apple-system, 'Segoe UI', Roboto, Arial, sans-serif; background-color: #f8fafc; color: #333; margin: 0; padding: 0;">
  <div style="max-width: 600px; margin: 0 auto; background-color: #ffffff; border-radius: 12px; overflow: hidden;">
    <div style="background: linear-gradient(135deg, #10b981, #059669); color: #ffffff; padding: 40px 30px; text-align: center;">
      <h1 style="margin: 0; font-size: 28px;">Welcome to DentServe</h1>
      <p style="margin: 10px 0 0 0;">You've been invited to join our dental care platform</p>
    </div>
    <div style="padding: 40px 30px;">
      <h2 style="color: #1f2937;">Hello {name}!</h2>
      <p>You have been invited to join <strong>{clinic_name}</strong> as a <strong>{position}</strong>.</p>
      <p>Click the button below to complete your registration and set up your account:</p>
      <p style="text-align: center; margin: 30px 0;">
        <a href="{link}" style="display: inline-block; background: #10b981; color: #ffffff; padding: 16px 32px; text-decoration: none; border-radius: 8px; font-weight: 600;">Complete Registration</a>
      </p>
      <p><strong>Important:</strong> This invitation expires in 7 days.</p>
      <p>If the button above doesn't work, copy and paste this link into your browser:</p>
      <p style="word-break: break-all; font-family: monospace; font-size: 14px;">{link}</p>
    </div>
    <div style="background: #f9fafb; padding: 30px; text-align: center; font-size: 14px; color: #6b7280;">
      <p>&copy; {year} DentServe. All rights reserved.</p>
      <p style="font-size: 12px; color: #9ca3af;">This email was sent to {email} because you were invited to join DentServe.</p>
    </div>
  </div>
</body>
</html>
"""


def build_invitation_link(frontend_url: str | None, invitation_id: str, invitation_token: str) -> str:
    base = (frontend_url or "").rstrip("/")
    query = urlencode({"invitation": invitation_id, "token": invitation_token})
    return f"{base}/auth/staff-signup?{query}"


def render_staff_invitation(
    *,
    to_email: str,
    clinic_name: str,
    invitation_link: str,
    position: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
) -> str:
    name = " ".join(part for part in (first_name, last_name) if part) or "there"
    return INVITATION_TEMPLATE.format(
        name=html.escape(name),
        clinic_name=html.escape(clinic_name),
        position=html.escape(position or "Staff"),
        link=html.escape(invitation_link, quote=True),
        email=html.escape(to_email),
        year=datetime.now(timezone.utc).year,
    )


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class EmailService:
    def __init__(
        self,
        sender: AbstractEmailSender | None,
        *,
        from_address: str,
        frontend_url: str | None = None,
    ) -> None:
        self._sender = sender
        self._from_address = from_address
        self._frontend_url = frontend_url

    @property
    def configured(self) -> bool:
        return self._sender is not None

    async def send_staff_invitation(
        self,
        *,
        to_email: str | None,
        subject: str | None,
        clinic_name: str | None,
        invitation_id: str | None,
        invitation_token: str | None,
        position: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> dict[str, Any]:
        if not (to_email and subject and clinic_name and invitation_id and invitation_token):
            raise ValidationAppError(
                code="missing_fields",
                message=(
                    "Missing required fields: to_email, subject, clinic_name, "
                    "invitation_id, invitation_token"
                ),
            )

        link = build_invitation_link(self._frontend_url, invitation_id, invitation_token)
        body = render_staff_invitation(
            to_email=to_email,
            clinic_name=clinic_name,
            invitation_link=link,
            position=position,
            first_name=first_name,
            last_name=last_name,
        )
        email_id = await self._send([to_email], subject, body, self._from_address)
        logger.info("email.invitation_sent", extra={"email_id": email_id, "clinic_name": clinic_name})
        return {
            "success": True,
            "data": {"email_id": email_id, "to": to_email, "subject": subject, "sent_at": _now_iso()},
        }

    async def send_email(
        self,
        *,
        to: str | list[str] | None,
        subject: str | None,
        html_body: str | None,
        from_address: str | None = None,
    ) -> dict[str, Any]:
        if not to or not subject or not html_body:
            raise ValidationAppError(
                code="missing_fields",
                message="Missing required fields: to, subject, html",
            )
        recipients = to if isinstance(to, list) else [to]
        email_id = await self._send(recipients, subject, html_body, from_address or self._from_address)
        logger.info("email.sent", extra={"email_id": email_id, "recipients": len(recipients)})
        return {
            "success": True,
            "data": {"email_id": email_id, "to": to, "subject": subject, "sent_at": _now_iso()},
        }

    def health(self) -> dict[str, Any]:
        return {
            "success": True,
            "service": "Email Service",
            "status": "OK",
            "resend_configured": self.configured,
            "timestamp": _now_iso(),
        }

    async def _send(self, to: list[str], subject: str, body: str, from_address: str) -> str:
        if self._sender is None:
            raise ConfigurationAppError(
                code="email_not_configured",
                message="Email service is not configured",
                details={"hint": "Set EMAIL_RESEND_API_KEY"},
            )
        try:
            sent = await self._sender.send(to=to, subject=subject, html=body, from_address=from_address)
        except UpstreamAppError as exc:
            upstream_status = (exc.details or {}).get("upstream_status")
            if exc.code == "email_rejected" and isinstance(upstream_status, int) and upstream_status < 500:
                raise ValidationAppError(code="email_rejected", message=exc.message) from exc
            raise
        return sent.email_id
