"""Appointment booking, cancellation and listing.

Conflict detection, pricing and the cancellation window are enforced by the
stored procedures; this service validates input, guards against double
submission and normalises results.
"""

from __future__ import annotations

import datetime
import logging
from typing import Any, Callable

from dentserve.adapters.database.base import AbstractDatabaseClient
from dentserve.core.errors import AuthorizationAppError, ValidationAppError
from dentserve.schemas.appointments import (
    BookAppointmentRequest,
    BookingOutcome,
    CancellationEligibility,
)
from dentserve.schemas.auth import CurrentUser
from dentserve.services.rpc import RpcResult, call_rpc
from dentserve.utils.action_throttle import ActionThrottle

logger = logging.getLogger(__name__)

MAX_SERVICES_PER_BOOKING = 3
CONFLICT_REASONS = frozenset({"same_day_conflict", "daily_limit_exceeded"})


class AppointmentService:
    def __init__(
        self,
        db: AbstractDatabaseClient,
        *,
        throttle: ActionThrottle,
        submit_guard_seconds: float = 5.0,
        today: Callable[[], datetime.date] = datetime.date.today,
    ) -> None:
        self._db = db
        self._throttle = throttle
        self._submit_guard_seconds = submit_guard_seconds
        self._today = today

    async def book_appointment(
        self, user: CurrentUser, request: BookAppointmentRequest
    ) -> BookingOutcome:
        """Book an appointment for a patient.

        Raises:
            AuthorizationAppError: If the caller is not a patient.
            ValidationAppError: On missing fields, a malformed or past date,
                too many services or a submission already in flight for
                this user.
        """
        if user.role != "patient":
            raise AuthorizationAppError(
                code="patients_only",
                message="Only patients can book appointments",
            )

        required = (
            ("clinic", request.clinic_id),
            ("doctor", request.doctor_id),
            ("date", request.date),
            ("time", request.time),
        )
        for name, value in required:
            if not value:
                raise ValidationAppError(code="missing_field", message=f"Please select {name}")

        try:
            appointment_date = datetime.date.fromisoformat(request.date)
        except ValueError:
            raise ValidationAppError(
                code="invalid_date",
                message="Appointment date must be YYYY-MM-DD",
            ) from None
        if appointment_date < self._today():
            raise ValidationAppError(code="past_date", message="Cannot book appointments in the past")

        if len(request.service_ids) > MAX_SERVICES_PER_BOOKING:
            raise ValidationAppError(
                code="too_many_services",
                message=f"Maximum {MAX_SERVICES_PER_BOOKING} services can be selected",
            )

        guard_id = f"book-appointment:{user.user_id}"
        if not self._throttle.prevent_duplicate_submit(guard_id, self._submit_guard_seconds):
            raise ValidationAppError(
                code="duplicate_submission",
                message="Booking already in progress",
            )

        try:
            result = await call_rpc(
                self._db,
                "book_appointment",
                {
                    "p_clinic_id": request.clinic_id,
                    "p_doctor_id": request.doctor_id,
                    "p_appointment_date": request.date,
                    "p_appointment_time": request.time,
                    "p_service_ids": request.service_ids or None,
                    "p_symptoms": request.symptoms or None,
                    "p_treatment_plan_id": request.treatment_plan_id or None,
                    "p_skip_consultation": request.skip_consultation,
                },
                access_token=user.access_token,
                default_error="Booking failed",
            )
        finally:
            self._throttle.complete_action(guard_id)

        if not result.success:
            conflict = None
            if result.reason in CONFLICT_REASONS and isinstance(result.data, dict):
                conflict = result.data.get("existing_appointment")
            logger.info(
                "appointment.booking_rejected",
                extra={"user_id": user.user_id, "reason": result.reason},
            )
            return BookingOutcome(
                success=False,
                error=result.error,
                reason=result.reason,
                conflict=conflict,
            )

        logger.info(
            "appointment.booked",
            extra={"user_id": user.user_id, "clinic_id": request.clinic_id},
        )
        appointment = result.data if isinstance(result.data, dict) else {"data": result.data}
        return BookingOutcome(success=True, appointment=appointment, message=result.message)

    async def check_ongoing_treatments(
        self, user: CurrentUser, clinic_id: str | None = None
    ) -> dict[str, Any]:
        """Active treatment plans the patient may link a new booking to.

        A failed lookup is logged and reported as ``success: false`` with no
        treatments so the booking flow can continue without linking.
        """
        if user.role != "patient":
            raise AuthorizationAppError(
                code="patients_only",
                message="Only patients have treatment plans to link",
            )
        result = await call_rpc(
            self._db,
            "get_patient_ongoing_treatments_for_booking",
            {"p_patient_id": user.user_id, "p_clinic_id": clinic_id},
            access_token=user.access_token,
            default_error="Failed to load ongoing treatments",
        )
        if not result.success:
            logger.warning(
                "appointment.ongoing_treatments_failed",
                extra={"user_id": user.user_id, "error": result.error},
            )
            return {"success": False, "treatments": [], "has_ongoing": False}

        data = result.data if isinstance(result.data, dict) else {}
        treatments = data.get("treatments") or []
        return {"success": True, "treatments": treatments, "has_ongoing": bool(treatments)}

    async def check_cancellation_eligibility(
        self, user: CurrentUser, appointment_id: str | None
    ) -> CancellationEligibility:
        if not appointment_id:
            return CancellationEligibility(can_cancel=False, reason="Invalid appointment ID")

        result = await call_rpc(
            self._db,
            "can_cancel_appointment",
            {"p_appointment_id": appointment_id},
            access_token=user.access_token,
        )
        if not result.success:
            return CancellationEligibility(
                can_cancel=False, reason="Unable to check cancellation policy"
            )

        can_cancel = bool(result.data)
        return CancellationEligibility(
            can_cancel=can_cancel,
            reason="Can be cancelled" if can_cancel else "Outside cancellation window",
        )

    async def cancel_appointment(
        self,
        user: CurrentUser,
        appointment_id: str | None,
        reason: str | None,
        cancelled_by: str | None = None,
    ) -> RpcResult:
        if not appointment_id:
            raise ValidationAppError(code="missing_appointment_id", message="Appointment ID is required")
        if not reason or not reason.strip():
            raise ValidationAppError(
                code="missing_cancellation_reason",
                message="Cancellation reason is required",
            )

        if user.role == "patient":
            eligibility = await self.check_cancellation_eligibility(user, appointment_id)
            if not eligibility.can_cancel:
                raise ValidationAppError(
                    code="cancellation_not_allowed",
                    message=f"Cannot cancel appointment: {eligibility.reason}",
                )

        result = await call_rpc(
            self._db,
            "cancel_appointment",
            {
                "p_appointment_id": appointment_id,
                "p_cancellation_reason": reason.strip(),
                "p_cancelled_by": cancelled_by,
            },
            access_token=user.access_token,
            default_error="Failed to cancel appointment",
        )
        if result.success:
            logger.info(
                "appointment.cancelled",
                extra={"user_id": user.user_id, "appointment_id": appointment_id},
            )
        return result

    async def get_appointments(
        self,
        user: CurrentUser,
        *,
        status: list[str] | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> RpcResult:
        return await call_rpc(
            self._db,
            "get_appointments_by_role",
            {
                "p_status": status or None,
                "p_date_from": date_from,
                "p_date_to": date_to,
                "p_limit": limit,
                "p_offset": offset,
            },
            access_token=user.access_token,
            default_error="Failed to load appointments",
        )

    async def get_available_time_slots(
        self,
        user: CurrentUser,
        doctor_id: str,
        date: str,
        service_ids: list[str] | None = None,
    ) -> RpcResult:
        if not doctor_id or not date:
            raise ValidationAppError(
                code="missing_field",
                message="Doctor and date are required",
            )
        params: dict[str, Any] = {
            "p_doctor_id": doctor_id,
            "p_appointment_date": date,
            "p_service_ids": service_ids or None,
        }
        return await call_rpc(
            self._db,
            "get_available_time_slots",
            params,
            access_token=user.access_token,
            default_error="Failed to load available time slots",
        )
