"""Rate limiter interfaces.

Routes depend on this abstraction so the per-process store can later be
replaced by a shared one without touching the HTTP layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of consuming budget for one key.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Max requests per window.
        remaining: Budget left in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window ends.
        retry_after_seconds: Suggested wait when blocked, else None.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None

    def headers(self) -> dict[str, str]:
        """Standard ``X-RateLimit-*`` headers (plus ``Retry-After`` when blocked)."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }
        if self.retry_after_seconds is not None:
            headers["Retry-After"] = str(self.retry_after_seconds)
        return headers


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume budget for ``key`` and report whether it was allowed."""
        raise NotImplementedError

    @abstractmethod
    def reset(self, key: str | None = None) -> None:
        """Forget usage for one key, or for every key when None."""
        raise NotImplementedError
