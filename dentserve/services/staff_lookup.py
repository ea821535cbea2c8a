"""Lookups that tie staff members to their clinic."""

from __future__ import annotations

from dentserve.adapters.database.base import AbstractDatabaseClient
from dentserve.schemas.auth import CurrentUser


async def get_staff_clinic_id(db: AbstractDatabaseClient, user: CurrentUser) -> str | None:
    """Clinic the staff member belongs to, or None if they have no staff profile."""
    result = await db.select(
        "staff_profiles",
        filters={"user_profile_id": user.user_profile_id},
        columns="clinic_id",
        limit=1,
    )
    if not result.rows:
        return None
    clinic_id = result.rows[0].get("clinic_id")
    return str(clinic_id) if clinic_id else None


async def doctor_works_at_clinic(db: AbstractDatabaseClient, doctor_id: str, clinic_id: str) -> bool:
    result = await db.select(
        "doctor_clinics",
        filters={"doctor_id": doctor_id, "clinic_id": clinic_id},
        columns="doctor_id",
        limit=1,
    )
    return bool(result.rows)
