from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class BookAppointmentRequest(BaseModel):
    """Booking form payload. Required fields are checked by the service so the
    caller gets the ``Please select <field>`` message instead of a schema error."""

    clinic_id: str | None = None
    doctor_id: str | None = None
    date: str | None = Field(None, description="Appointment date (YYYY-MM-DD)")
    time: str | None = Field(None, description="Appointment time (HH:MM)")
    service_ids: list[str] = Field(default_factory=list)
    symptoms: str | None = None
    treatment_plan_id: str | None = None
    skip_consultation: bool = False


class CancelAppointmentRequest(BaseModel):
    reason: str | None = None
    cancelled_by: str | None = None


class CancellationEligibility(BaseModel):
    can_cancel: bool
    reason: str


class BookingOutcome(BaseModel):
    success: bool
    appointment: dict[str, Any] | None = None
    message: str | None = None
    error: str | None = None
    reason: str | None = None
    conflict: dict[str, Any] | None = None
