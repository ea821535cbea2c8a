"""In-memory fixed-window rate limiter.

Per-process only: running several workers multiplies the effective limit.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from dentserve.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


@dataclass
class _Window:
    start: int
    count: int


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Allows ``limit`` units per key in each ``window_seconds`` bucket.

    Windows are aligned to the epoch (``now // window``), so all keys roll
    over at the same instant. Keys whose window has passed are pruned
    whenever a new window starts.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._windows: dict[str, _Window] = {}
        self._current_start: int | None = None

    def _window_start(self, now: float) -> int:
        return int(now // self.window_seconds) * self.window_seconds

    def _prune_locked(self, window_start: int) -> None:
        if self._current_start == window_start:
            return
        self._current_start = window_start
        stale = [key for key, window in self._windows.items() if window.start != window_start]
        for key in stale:
            del self._windows[key]

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume ``cost`` units for ``key``.

        Blocked attempts do not consume budget.

        Raises:
            ValueError: If key is empty or cost is below 1.
        """
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()
        window_start = self._window_start(now)
        reset_at = window_start + self.window_seconds

        with self._lock:
            self._prune_locked(window_start)
            window = self._windows.setdefault(key, _Window(start=window_start, count=0))

            if window.count + cost <= self.limit:
                window.count += cost
                return RateLimitResult(
                    allowed=True,
                    limit=self.limit,
                    remaining=self.limit - window.count,
                    reset_at=reset_at,
                    retry_after_seconds=None,
                )

            return RateLimitResult(
                allowed=False,
                limit=self.limit,
                remaining=max(0, self.limit - window.count),
                reset_at=reset_at,
                retry_after_seconds=max(0, int(math.ceil(reset_at - now))),
            )

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)
