"""Server-side reCAPTCHA v3 verification.

Checks the token against Google's siteverify endpoint, then enforces the
expected action and a per-action minimum score.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from dentserve.core.errors import AppError

logger = logging.getLogger(__name__)

SCORE_THRESHOLDS: dict[str, float] = {
    "login": 0.5,
    "patient_signup": 0.5,
    "staff_invite": 0.7,
    "admin_invite": 0.8,
    "otp_request": 0.3,
}
DEFAULT_SCORE_THRESHOLD = 0.5


class RecaptchaVerificationError(AppError):
    """Verification failure carrying its own HTTP status (400, 408 or 500)."""

    def __init__(
        self,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        status_code: int = 400,
    ) -> None:
        super().__init__(code=code, message=message, details=details)
        self.status_code = status_code


def min_score_for(action: str | None) -> float:
    return SCORE_THRESHOLDS.get(action or "", DEFAULT_SCORE_THRESHOLD)


class RecaptchaService:
    def __init__(
        self,
        secret_key: str | None,
        *,
        verify_url: str = "https://www.google.com/recaptcha/api/siteverify",
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._secret_key = secret_key
        self._verify_url = verify_url
        self._client = httpx.AsyncClient(timeout=timeout_seconds, transport=transport)

    async def verify(
        self,
        token: str | None,
        *,
        action: str | None = None,
        expected_action: str | None = None,
        remote_ip: str | None = None,
    ) -> dict[str, Any]:
        """Verify ``token`` and return the success payload.

        Raises:
            RecaptchaVerificationError: With one of the codes MISSING_TOKEN,
                CONFIGURATION_ERROR, VERIFICATION_FAILED, ACTION_MISMATCH,
                LOW_SCORE, TIMEOUT, INVALID_REQUEST or SERVICE_ERROR.
        """
        logger.info(
            "recaptcha.verify_requested",
            extra={"has_token": bool(token), "action": action, "expected_action": expected_action},
        )
        if not token:
            raise RecaptchaVerificationError("MISSING_TOKEN", "reCAPTCHA token is required")
        if not self._secret_key:
            logger.error("recaptcha.not_configured")
            raise RecaptchaVerificationError("CONFIGURATION_ERROR", "reCAPTCHA verification is not configured")

        result = await self._siteverify(token, remote_ip)

        returned_action = result.get("action")
        if not result.get("success"):
            error_codes = result.get("error-codes") or ["unknown-error"]
            logger.warning("recaptcha.verification_failed", extra={"error_codes": error_codes})
            raise RecaptchaVerificationError(
                "VERIFICATION_FAILED",
                "reCAPTCHA verification failed",
                details={"error_codes": error_codes},
            )

        action_to_check = expected_action or action
        if action_to_check and returned_action != action_to_check:
            logger.warning(
                "recaptcha.action_mismatch",
                extra={"expected": action_to_check, "received": returned_action},
            )
            raise RecaptchaVerificationError(
                "ACTION_MISMATCH",
                "reCAPTCHA action mismatch",
                details={"expected": action_to_check, "received": returned_action},
            )

        score = float(result.get("score") or 0.0)
        min_score = min_score_for(returned_action)
        if score < min_score:
            logger.warning(
                "recaptcha.low_score",
                extra={"score": score, "min_required": min_score, "action": returned_action},
            )
            raise RecaptchaVerificationError(
                "LOW_SCORE",
                "reCAPTCHA score too low",
                details={
                    "score": score,
                    "minRequired": min_score,
                    "recommendation": "Please try again or use alternative verification",
                },
            )

        logger.info("recaptcha.verified", extra={"score": score, "action": returned_action})
        return {
            "success": True,
            "score": score,
            "action": returned_action,
            "hostname": result.get("hostname"),
            "timestamp": result.get("challenge_ts"),
            "message": "reCAPTCHA verification successful",
        }

    async def _siteverify(self, token: str, remote_ip: str | None) -> dict[str, Any]:
        form = {"secret": self._secret_key, "response": token}
        if remote_ip:
            form["remoteip"] = remote_ip

        try:
            response = await self._client.post(self._verify_url, data=form)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as exc:
            logger.error("recaptcha.timeout", extra={"error": str(exc)})
            raise RecaptchaVerificationError(
                "TIMEOUT", "reCAPTCHA verification timeout", status_code=408
            ) from exc
        except httpx.HTTPStatusError as exc:
            upstream_status = exc.response.status_code
            logger.error("recaptcha.upstream_error", extra={"upstream_status": upstream_status})
            if upstream_status == 400:
                raise RecaptchaVerificationError("INVALID_REQUEST", "Invalid reCAPTCHA request") from exc
            raise RecaptchaVerificationError(
                "SERVICE_ERROR", "reCAPTCHA verification service error", status_code=500
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("recaptcha.service_error", extra={"error": str(exc)})
            raise RecaptchaVerificationError(
                "SERVICE_ERROR", "reCAPTCHA verification service error", status_code=500
            ) from exc

        if not isinstance(body, dict):
            raise RecaptchaVerificationError(
                "SERVICE_ERROR", "reCAPTCHA verification service error", status_code=500
            )
        return body

    async def aclose(self) -> None:
        await self._client.aclose()
