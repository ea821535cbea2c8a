"""Rate limiting dependencies for FastAPI routes.

Two named budgets, each backed by its own fixed-window limiter:

- ``upload``: per authenticated user (10 uploads / 5 minutes by default)
- ``email``: per client IP (10 requests / 15 minutes by default)
"""

from __future__ import annotations

import hashlib
import logging

from fastapi import Depends, Request

from dentserve.adapters.rate_limit import AbstractRateLimiter, InMemoryFixedWindowRateLimiter
from dentserve.core.auth import get_current_user
from dentserve.core.config import settings
from dentserve.core.errors import RateLimitAppError
from dentserve.schemas.auth import CurrentUser

logger = logging.getLogger(__name__)

_MESSAGES = {
    "upload": "Too many upload attempts, please try again later.",
    "email": "Too many email requests, please try again later.",
}

_limiters: dict[str, tuple[tuple[int, int], AbstractRateLimiter]] = {}


def _limit_config(name: str) -> tuple[int, int]:
    if name == "upload":
        return settings.app.upload_rate_limit_requests, settings.app.upload_rate_limit_window_seconds
    if name == "email":
        return settings.app.email_rate_limit_requests, settings.app.email_rate_limit_window_seconds
    raise KeyError(f"Unknown rate limit: {name}")


def get_rate_limiter(name: str) -> AbstractRateLimiter:
    """Return the process-wide limiter for ``name``.

    Rebuilt when its settings change (primarily in tests).
    """
    config = _limit_config(name)
    cached = _limiters.get(name)
    if cached is None or cached[0] != config:
        limiter = InMemoryFixedWindowRateLimiter(limit=config[0], window_seconds=config[1])
        _limiters[name] = (config, limiter)
        return limiter
    return cached[1]


def reset_rate_limiters() -> None:
    _limiters.clear()


def _hash_key(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def _enforce(name: str, key: str) -> None:
    if not settings.app.rate_limit_enabled:
        return

    result = get_rate_limiter(name).consume(key)
    if result.allowed:
        return

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "limiter": name,
            "key_hash": _hash_key(key),
            "limit": result.limit,
            "retry_after_s": retry_after,
        },
    )
    raise RateLimitAppError(
        code="rate_limited",
        message=_MESSAGES[name],
        details={"retry_after": retry_after},
        headers=result.headers() if settings.app.rate_limit_include_headers else None,
    )


def client_ip(request: Request) -> str:
    """Return the caller's address.

    ``X-Forwarded-For`` is only read when the socket peer is a configured
    trusted proxy; the right-most hop not appended by a trusted proxy wins.
    """
    peer = request.client.host if request.client else "unknown"
    trusted = settings.app.trusted_proxy_hosts()
    if peer not in trusted:
        return peer

    forwarded = request.headers.get("x-forwarded-for", "")
    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in trusted:
            return hop
    return hops[0] if hops else peer


async def enforce_upload_rate_limit(user: CurrentUser = Depends(get_current_user)) -> None:
    _enforce("upload", f"user:{user.user_id}")


async def enforce_email_rate_limit(request: Request) -> None:
    _enforce("email", f"ip:{client_ip(request)}")
