from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from dentserve.api.deps import get_appointment_service
from dentserve.core.auth import require_roles
from dentserve.schemas.appointments import (
    BookAppointmentRequest,
    BookingOutcome,
    CancelAppointmentRequest,
    CancellationEligibility,
)
from dentserve.schemas.auth import CurrentUser
from dentserve.services.appointment_service import AppointmentService

router = APIRouter(prefix="/api/appointments", tags=["Appointments"])


@router.post("", response_model=BookingOutcome, response_model_exclude_none=True)
async def book_appointment(
    body: BookAppointmentRequest,
    user: CurrentUser = Depends(require_roles("patient")),
    service: AppointmentService = Depends(get_appointment_service),
) -> BookingOutcome:
    """Book an appointment.

    A rejection by the booking procedure (conflict, limits) is returned as
    ``success: false`` with its ``reason`` rather than as an HTTP error, so
    the client can show the conflicting appointment.
    """
    return await service.book_appointment(user, body)


@router.get("")
async def list_appointments(
    status: list[str] | None = Query(None),
    date_from: str | None = None,
    date_to: str | None = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(require_roles()),
    service: AppointmentService = Depends(get_appointment_service),
) -> dict:
    result = await service.get_appointments(
        user, status=status, date_from=date_from, date_to=date_to, limit=limit, offset=offset
    )
    return result.to_response()


@router.get("/time-slots")
async def available_time_slots(
    doctor_id: str,
    date: str,
    service_ids: list[str] | None = Query(None),
    user: CurrentUser = Depends(require_roles()),
    service: AppointmentService = Depends(get_appointment_service),
) -> dict:
    result = await service.get_available_time_slots(user, doctor_id, date, service_ids)
    return result.to_response()


@router.get("/ongoing-treatments")
async def ongoing_treatments(
    clinic_id: str | None = None,
    user: CurrentUser = Depends(require_roles("patient")),
    service: AppointmentService = Depends(get_appointment_service),
) -> dict:
    return await service.check_ongoing_treatments(user, clinic_id)


@router.get("/{appointment_id}/cancellation-eligibility", response_model=CancellationEligibility)
async def cancellation_eligibility(
    appointment_id: str,
    user: CurrentUser = Depends(require_roles()),
    service: AppointmentService = Depends(get_appointment_service),
) -> CancellationEligibility:
    return await service.check_cancellation_eligibility(user, appointment_id)


@router.post("/{appointment_id}/cancel")
async def cancel_appointment(
    appointment_id: str,
    body: CancelAppointmentRequest,
    user: CurrentUser = Depends(require_roles()),
    service: AppointmentService = Depends(get_appointment_service),
) -> dict:
    result = await service.cancel_appointment(user, appointment_id, body.reason, body.cancelled_by)
    return result.to_response()
