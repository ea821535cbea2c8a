from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from dentserve.api.deps import get_analytics_service, get_dashboard_service
from dentserve.core.auth import require_roles
from dentserve.core.errors import ValidationAppError
from dentserve.schemas.auth import CurrentUser
from dentserve.services.analytics_service import AnalyticsService
from dentserve.services.dashboard_service import DashboardResult, DashboardService

router = APIRouter(prefix="/api", tags=["Dashboard"])


def _dashboard_response(result: DashboardResult) -> dict:
    if not result.success:
        raise ValidationAppError(
            code="dashboard_unavailable",
            message=result.error or "Failed to load dashboard data",
        )
    response = {"success": True, "data": result.data, "from_cache": result.from_cache}
    if result.refresh_available_in is not None:
        response["refresh_available_in"] = result.refresh_available_in
    return response


@router.get("/dashboard")
async def get_dashboard(
    refresh: bool = Query(False, description="Bypass the cache"),
    user: CurrentUser = Depends(require_roles()),
    service: DashboardService = Depends(get_dashboard_service),
) -> dict:
    """Role-shaped dashboard for the caller (cached for a few minutes)."""
    if refresh:
        return _dashboard_response(await service.refresh_dashboard(user))
    return _dashboard_response(await service.get_dashboard(user))


@router.post("/dashboard/refresh")
async def refresh_dashboard(
    user: CurrentUser = Depends(require_roles()),
    service: DashboardService = Depends(get_dashboard_service),
) -> dict:
    return _dashboard_response(await service.refresh_dashboard(user))


@router.get("/analytics/clinic-growth")
async def clinic_growth(
    clinic_id: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    include_comparisons: bool = True,
    include_patient_insights: bool = True,
    user: CurrentUser = Depends(require_roles("staff", "admin")),
    service: AnalyticsService = Depends(get_analytics_service),
) -> dict:
    result = await service.get_clinic_growth(
        user,
        clinic_id=clinic_id,
        date_from=date_from,
        date_to=date_to,
        include_comparisons=include_comparisons,
        include_patient_insights=include_patient_insights,
    )
    return result.to_response()


@router.get("/analytics/system")
async def system_analytics(
    date_from: str | None = None,
    date_to: str | None = None,
    include_trends: bool = True,
    include_performance: bool = True,
    user: CurrentUser = Depends(require_roles("admin")),
    service: AnalyticsService = Depends(get_analytics_service),
) -> dict:
    result = await service.get_system_analytics(
        user,
        date_from=date_from,
        date_to=date_to,
        include_trends=include_trends,
        include_performance=include_performance,
    )
    return result.to_response()
