"""Clinic growth and system-wide analytics."""

from __future__ import annotations

from dentserve.adapters.database.base import AbstractDatabaseClient
from dentserve.core.errors import AuthorizationAppError, ValidationAppError
from dentserve.schemas.auth import CurrentUser
from dentserve.services.rpc import RpcResult, call_rpc
from dentserve.services.staff_lookup import get_staff_clinic_id


class AnalyticsService:
    def __init__(self, db: AbstractDatabaseClient) -> None:
        self._db = db

    async def get_clinic_growth(
        self,
        user: CurrentUser,
        *,
        clinic_id: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        include_comparisons: bool = True,
        include_patient_insights: bool = True,
    ) -> RpcResult:
        """Growth analytics for one clinic.

        Staff may only read their own clinic (resolved from their staff
        profile when ``clinic_id`` is omitted); admins must name the clinic.
        """
        if user.role == "staff":
            own_clinic = await get_staff_clinic_id(self._db, user)
            if own_clinic is None:
                raise AuthorizationAppError(
                    code="no_clinic_assigned",
                    message="No clinic is associated with this staff account",
                )
            if clinic_id and clinic_id != own_clinic:
                raise AuthorizationAppError(
                    code="clinic_access_denied",
                    message="Access denied: you can only view your own clinic",
                )
            target_clinic = own_clinic
        elif user.role == "admin":
            if not clinic_id:
                raise ValidationAppError(code="missing_clinic_id", message="Clinic ID is required")
            target_clinic = clinic_id
        else:
            raise AuthorizationAppError(
                code="insufficient_role",
                message="Access denied: staff or admin required",
            )

        return await call_rpc(
            self._db,
            "get_clinic_growth_analytics",
            {
                "p_clinic_id": target_clinic,
                "p_date_from": date_from,
                "p_date_to": date_to,
                "p_include_comparisons": include_comparisons,
                "p_include_patient_insights": include_patient_insights,
            },
            access_token=user.access_token,
            default_error="Failed to load clinic analytics",
        )

    async def get_system_analytics(
        self,
        user: CurrentUser,
        *,
        date_from: str | None = None,
        date_to: str | None = None,
        include_trends: bool = True,
        include_performance: bool = True,
    ) -> RpcResult:
        if user.role != "admin":
            raise AuthorizationAppError(code="insufficient_role", message="Access denied: admin required")

        return await call_rpc(
            self._db,
            "get_admin_system_analytics",
            {
                "p_date_from": date_from,
                "p_date_to": date_to,
                "p_include_trends": include_trends,
                "p_include_performance": include_performance,
            },
            access_token=user.access_token,
            default_error="Failed to load system analytics",
        )
