"""Resend email adapter using its HTTP API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from dentserve.adapters.email.base import AbstractEmailSender, SentEmail
from dentserve.core.errors import UpstreamAppError, UpstreamUnavailableError

logger = logging.getLogger(__name__)


class ResendEmailSender(AbstractEmailSender):
    """Sends email through ``POST /emails`` on the Resend API."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.resend.com",
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            transport=transport,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    async def send(
        self,
        *,
        to: list[str],
        subject: str,
        html: str,
        from_address: str,
        reply_to: str | None = None,
    ) -> SentEmail:
        payload: dict[str, Any] = {
            "from": from_address,
            "to": to,
            "subject": subject,
            "html": html,
        }
        if reply_to:
            payload["reply_to"] = reply_to

        try:
            response = await self._client.post("/emails", json=payload)
        except httpx.TransportError as exc:
            raise UpstreamUnavailableError(
                code="email_provider_unavailable",
                message="Email provider is temporarily unavailable",
            ) from exc

        try:
            body: dict[str, Any] = response.json()
        except ValueError:
            body = {}

        if response.is_error:
            message = body.get("message") or "Failed to send email"
            logger.warning(
                "email.provider_rejected",
                extra={"status": response.status_code, "provider_error": message},
            )
            raise UpstreamAppError(
                code="email_rejected",
                message=message,
                details={"upstream_status": response.status_code},
            )

        return SentEmail(email_id=str(body.get("id", "")))

    async def aclose(self) -> None:
        await self._client.aclose()
