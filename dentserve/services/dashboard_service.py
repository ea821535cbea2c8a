"""Role-shaped dashboard data with a short-lived per-user cache."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any

from dentserve.adapters.database.base import AbstractDatabaseClient
from dentserve.schemas.auth import CurrentUser
from dentserve.services.rpc import call_rpc
from dentserve.utils.action_throttle import ActionThrottle
from dentserve.utils.simple_cache import SimpleTTLCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardResult:
    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None
    from_cache: bool = False
    refresh_available_in: float | None = None


def shape_dashboard(role: str, data: dict[str, Any]) -> dict[str, Any]:
    if role == "patient":
        return {
            "type": "patient",
            "profile_completion": data.get("profile_completion"),
            "upcoming_appointments": data.get("upcoming_appointments") or [],
            "recent_appointments": data.get("recent_appointments") or [],
            "quick_stats": data.get("quick_stats") or {},
            "notifications": data.get("notifications") or [],
        }
    if role == "staff":
        return {
            "type": "staff",
            "clinic_info": data.get("clinic_info"),
            "todays_appointments": data.get("todays_appointments") or [],
            "pending_feedback": data.get("pending_feedback") or 0,
            "growth_analytics": data.get("growth_analytics"),
        }
    if role == "admin":
        return {
            "type": "admin",
            "system_overview": data.get("system_overview"),
            "growth_analytics": data.get("growth_analytics"),
            "performance_metrics": data.get("performance_metrics"),
        }
    return dict(data)


class DashboardService:
    """Fetches ``get_dashboard_data`` and caches the shaped result per user and role.

    Only ``refresh_dashboard`` invalidates an entry; it is limited to one
    refresh per ``refresh_cooldown`` seconds per user.
    """

    def __init__(
        self,
        db: AbstractDatabaseClient,
        *,
        cache: SimpleTTLCache,
        throttle: ActionThrottle,
        refresh_cooldown: float = 30.0,
    ) -> None:
        self._db = db
        self._cache = cache
        self._throttle = throttle
        self._refresh_cooldown = refresh_cooldown

    @staticmethod
    def cache_key(user: CurrentUser) -> str:
        return f"{user.user_id}:{user.role}"

    async def get_dashboard(self, user: CurrentUser, *, force_refresh: bool = False) -> DashboardResult:
        key = self.cache_key(user)
        if not force_refresh:
            cached = self._cache.get(key)
            if cached is not None:
                return DashboardResult(success=True, data=cached, from_cache=True)

        result = await call_rpc(
            self._db,
            "get_dashboard_data",
            {"p_user_id": user.user_id},
            access_token=user.access_token,
            default_error="Failed to load dashboard data",
        )
        if not result.success:
            return DashboardResult(success=False, error=result.error)

        payload = result.data if isinstance(result.data, dict) else {}
        shaped = shape_dashboard(user.role, payload)
        self._cache.set(key, shaped)
        return DashboardResult(success=True, data=shaped)

    async def refresh_dashboard(self, user: CurrentUser) -> DashboardResult:
        key = self.cache_key(user)
        action_id = f"dashboard-refresh:{key}"
        if not self._throttle.can_execute(action_id, self._refresh_cooldown):
            wait = round(self._throttle.remaining(action_id, self._refresh_cooldown), 1)
            cached = self._cache.get(key)
            logger.info(
                "dashboard.refresh_throttled",
                extra={"user_id": user.user_id, "cached": cached is not None, "retry_after_s": wait},
            )
            if cached is not None:
                return DashboardResult(success=True, data=cached, from_cache=True, refresh_available_in=wait)
            return replace(await self.get_dashboard(user), refresh_available_in=wait)

        self._cache.invalidate(key)
        return await self.get_dashboard(user, force_refresh=True)
