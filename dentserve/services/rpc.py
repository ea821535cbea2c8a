"""Normalisation of stored-procedure results.

Every procedure on the platform answers with a JSON value that is usually,
but not always, an envelope of the form ``{"success": bool, "data" | "error"}``.
``call_rpc`` folds all the variants into one ``RpcResult`` so services do
not each re-implement the same checks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from dentserve.adapters.database.base import AbstractDatabaseClient
from dentserve.core.errors import AppError, ValidationAppError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RpcResult:
    success: bool
    data: Any = None
    error: str | None = None
    message: str | None = None
    reason: str | None = None
    total: int | None = None

    def unwrap(self) -> Any:
        """Return ``data`` or raise ``ValidationAppError`` for a failed call."""
        if not self.success:
            raise ValidationAppError(
                code=self.reason or "rpc_failed",
                message=self.error or "Request failed",
                details={"reason": self.reason} if self.reason else None,
            )
        return self.data

    def to_response(self) -> dict[str, Any]:
        """Client-facing envelope; a failed call raises as in ``unwrap``."""
        body: dict[str, Any] = {"success": True, "data": self.unwrap()}
        if self.message:
            body["message"] = self.message
        if self.total is not None:
            body["total"] = self.total
        return body


def normalize_rpc_payload(payload: Any, *, default_error: str) -> RpcResult:
    if not isinstance(payload, dict):
        return RpcResult(success=True, data=payload)

    if payload.get("authenticated") is False:
        return RpcResult(success=False, error="Authentication required", reason="unauthenticated")

    if "success" not in payload:
        return RpcResult(success=True, data=payload)

    if not payload["success"]:
        return RpcResult(
            success=False,
            error=payload.get("error") or payload.get("message") or default_error,
            reason=payload.get("reason"),
            data=payload.get("data"),
        )

    total = payload.get("total") if payload.get("total") is not None else payload.get("total_count")
    return RpcResult(
        success=True,
        data=payload["data"] if "data" in payload else payload,
        message=payload.get("message"),
        total=total,
    )


async def call_rpc(
    db: AbstractDatabaseClient,
    name: str,
    params: dict[str, Any] | None = None,
    *,
    access_token: str | None = None,
    default_error: str = "Request failed",
) -> RpcResult:
    """Invoke procedure ``name`` and normalise its answer.

    Client failures (network, non-2xx) become a failed result carrying the
    error text instead of propagating.
    """
    try:
        payload = await db.rpc(name, params or {}, access_token=access_token)
    except AppError as exc:
        logger.warning(
            "rpc.failed",
            extra={"rpc": name, "error_code": exc.code, "error": exc.message},
        )
        return RpcResult(success=False, error=exc.message or default_error, reason=exc.code)

    result = normalize_rpc_payload(payload, default_error=default_error)
    if not result.success:
        logger.info("rpc.rejected", extra={"rpc": name, "reason": result.reason, "error": result.error})
    return result
