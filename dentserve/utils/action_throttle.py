"""Cooldowns and duplicate-submission guards for user actions.

``ActionThrottle`` keeps two independent maps: the expiry of the current
cooldown per action id and a set of pending form ids with an expiry
(duplicate-submit guard). Lapsed entries are purged whenever a new one is
recorded. ``throttle`` and ``debounce`` wrap callables.
"""

from __future__ import annotations

import asyncio
import functools
import threading
import time
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")


class ActionThrottle:
    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        # action id -> (accepted at, cooldown expiry)
        self._last_run: dict[str, tuple[float, float]] = {}
        self._pending: dict[str, float] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_run) + len(self._pending)

    def _purge_expired(self, now: float) -> None:
        for action_id in [k for k, (_, expires_at) in self._last_run.items() if now >= expires_at]:
            del self._last_run[action_id]
        for form_id in [k for k, expires_at in self._pending.items() if now >= expires_at]:
            del self._pending[form_id]

    def can_execute(self, action_id: str, cooldown: float = 1.0) -> bool:
        """Accept the action unless it was accepted less than ``cooldown`` ago.

        Rejected calls leave the recorded time untouched.
        """
        now = self._clock()
        with self._lock:
            entry = self._last_run.get(action_id)
            if entry is not None and now - entry[0] < cooldown:
                return False
            self._purge_expired(now)
            self._last_run[action_id] = (now, now + cooldown)
            return True

    def remaining(self, action_id: str, cooldown: float = 1.0) -> float:
        """Seconds until ``action_id`` may run again (0.0 when it may run now)."""
        with self._lock:
            entry = self._last_run.get(action_id)
        if entry is None:
            return 0.0
        return max(0.0, cooldown - (self._clock() - entry[0]))

    def prevent_duplicate_submit(self, form_id: str, ttl: float = 5.0) -> bool:
        """Mark ``form_id`` as pending. False if it already is.

        The mark lapses on its own after ``ttl`` seconds so a caller that
        never reaches ``complete_action`` cannot lock the form forever.
        """
        now = self._clock()
        with self._lock:
            expires_at = self._pending.get(form_id)
            if expires_at is not None and now < expires_at:
                return False
            self._purge_expired(now)
            self._pending[form_id] = now + ttl
            return True

    def is_pending(self, form_id: str) -> bool:
        with self._lock:
            expires_at = self._pending.get(form_id)
        return expires_at is not None and self._clock() < expires_at

    def complete_action(self, action_id: str) -> None:
        with self._lock:
            self._pending.pop(action_id, None)

    def reset(self) -> None:
        with self._lock:
            self._last_run.clear()
            self._pending.clear()


def throttle(
    fn: Callable[..., T],
    delay: float,
    *,
    clock: Callable[[], float] = time.monotonic,
) -> Callable[..., T | None]:
    """Leading-edge throttle: the first call runs, calls inside ``delay`` are dropped.

    Dropped calls return None.
    """
    last_call: float | None = None
    lock = threading.Lock()

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> T | None:
        nonlocal last_call
        now = clock()
        with lock:
            if last_call is not None and now - last_call < delay:
                return None
            last_call = now
        return fn(*args, **kwargs)

    return wrapper


class Debounced:
    """Trailing-edge debounce for coroutine functions.

    Each call restarts the timer; only the last call within ``delay``
    seconds actually runs. Must be used from inside a running event loop.
    """

    def __init__(self, fn: Callable[..., Awaitable[Any]], delay: float) -> None:
        self._fn = fn
        self._delay = delay
        self._task: asyncio.Task[Any] | None = None
        functools.update_wrapper(self, fn)

    def __call__(self, *args: Any, **kwargs: Any) -> asyncio.Task[Any]:
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(args, kwargs))
        return self._task

    async def _run(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        await asyncio.sleep(self._delay)
        return await self._fn(*args, **kwargs)

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


def debounce(fn: Callable[..., Awaitable[Any]], delay: float) -> Debounced:
    return Debounced(fn, delay)
