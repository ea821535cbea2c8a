"""Clinic discovery, clinic details and the patient's saved location.

Distance search runs in the ``find_nearest_clinics`` and
``search_clinics_by_location_and_services`` procedures; free-text search,
extra filtering and sorting are applied here to the rows they return.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from dentserve.adapters.database.base import AbstractDatabaseClient
from dentserve.core.errors import AuthorizationAppError, NotFoundAppError, ValidationAppError
from dentserve.schemas.auth import CurrentUser
from dentserve.services.rpc import RpcResult, call_rpc

logger = logging.getLogger(__name__)

DEFAULT_MAX_DISTANCE_KM = 50.0
MAX_DISTANCE_RANGE = (1.0, 100.0)
RATING_RANGE = (0.0, 5.0)

_WKT_POINT = re.compile(r"POINT\s*\(\s*([+-]?\d+\.?\d*)\s+([+-]?\d+\.?\d*)\s*\)", re.IGNORECASE)

CLINIC_DETAIL_COLUMNS = (
    "*,clinic_badge_awards(id,is_current,award_date,"
    "clinic_badges(id,badge_name,badge_description,badge_icon_url,badge_color))"
)
CLINIC_DOCTOR_COLUMNS = (
    "is_active,schedule,doctors!inner(id,first_name,last_name,specialization,experience_years,"
    "consultation_fee,rating,total_reviews,is_available,image_url,bio)"
)
BOOKING_DOCTOR_COLUMNS = (
    "doctors!inner(id,specialization,education,consultation_fee,certifications,awards,"
    "experience_years,is_available,rating,first_name,last_name,image_url)"
)


def _clamp(value: float, bounds: tuple[float, float]) -> float:
    return min(max(value, bounds[0]), bounds[1])


def format_location(latitude: float | None, longitude: float | None) -> str | None:
    """WKT point for the geography parameters (longitude first)."""
    if latitude is None or longitude is None:
        return None
    return f"POINT({longitude} {latitude})"


def extract_coordinates(location: Any) -> tuple[float | None, float | None]:
    """Return ``(latitude, longitude)`` from a WKT string, GeoJSON or x/y object."""
    if isinstance(location, str):
        match = _WKT_POINT.search(location)
        if match:
            return float(match.group(2)), float(match.group(1))
        return None, None
    if isinstance(location, dict):
        coordinates = location.get("coordinates")
        if isinstance(coordinates, (list, tuple)) and len(coordinates) >= 2:
            return coordinates[1], coordinates[0]
        if "x" in location and "y" in location:
            return location["y"], location["x"]
    return None, None


def shape_clinic(clinic: dict[str, Any]) -> dict[str, Any]:
    latitude, longitude = extract_coordinates(clinic.get("location"))
    return {
        "id": clinic.get("id"),
        "name": clinic.get("name"),
        "address": clinic.get("address"),
        "city": clinic.get("city"),
        "phone": clinic.get("phone"),
        "email": clinic.get("email"),
        "website_url": clinic.get("website_url"),
        "image_url": clinic.get("image_url"),
        "rating": clinic.get("rating") or 0,
        "total_reviews": clinic.get("total_reviews") or 0,
        "distance_km": clinic.get("distance_km"),
        "services_offered": clinic.get("services_offered") or [],
        "operating_hours": clinic.get("operating_hours") or {},
        "badges": clinic.get("badges") or [],
        "stats": clinic.get("stats") or {},
        "available_doctors": clinic.get("available_doctors"),
        "created_at": clinic.get("created_at"),
        "latitude": latitude,
        "longitude": longitude,
    }


def matches_query(clinic: dict[str, Any], query: str) -> bool:
    needle = query.strip().lower()
    if not needle:
        return True
    parts = [clinic.get("name"), clinic.get("address"), clinic.get("city"), *clinic["services_offered"]]
    return needle in " ".join(str(part) for part in parts if part).lower()


def has_services(clinic: dict[str, Any], services: list[str]) -> bool:
    offered = [s.lower() for s in clinic["services_offered"]]
    return all(any(wanted.lower() in s for s in offered) for wanted in services)


def _name_key(clinic: dict[str, Any]) -> str:
    return (clinic.get("name") or "").lower()


def sort_clinics(clinics: list[dict[str, Any]], sort_by: str, *, has_location: bool) -> list[dict[str, Any]]:
    """Order clinics; distance falls back to name when no location is known."""
    if sort_by == "distance" and has_location:
        return sorted(clinics, key=lambda c: c["distance_km"] if c.get("distance_km") is not None else 999)
    if sort_by == "rating":
        return sorted(clinics, key=lambda c: c.get("rating") or 0, reverse=True)
    if sort_by == "availability":
        return sorted(clinics, key=lambda c: c.get("available_doctors") or 0, reverse=True)
    return sorted(clinics, key=_name_key)


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _doctor_name(doctor: dict[str, Any]) -> tuple[str, str]:
    return doctor.get("first_name") or "", doctor.get("last_name") or ""


class ClinicService:
    def __init__(self, db: AbstractDatabaseClient) -> None:
        self._db = db

    async def discover_clinics(
        self,
        user: CurrentUser,
        *,
        latitude: float | None = None,
        longitude: float | None = None,
        max_distance: float = DEFAULT_MAX_DISTANCE_KM,
        limit: int = 50,
        services: list[str] | None = None,
        min_rating: float | None = None,
        query: str | None = None,
        sort_by: str = "distance",
    ) -> dict[str, Any]:
        """Nearest active clinics, optionally narrowed by a free-text query.

        Without coordinates the procedure returns clinics without distances
        and the result is ordered by name.
        """
        max_distance = _clamp(max_distance, MAX_DISTANCE_RANGE)
        if min_rating is not None:
            min_rating = _clamp(min_rating, RATING_RANGE)

        result = await call_rpc(
            self._db,
            "find_nearest_clinics",
            {
                "user_location": format_location(latitude, longitude),
                "max_distance_km": max_distance,
                "limit_count": limit,
                "services_filter": services or None,
                "min_rating": min_rating or None,
            },
            access_token=user.access_token,
            default_error="Failed to discover clinics",
        )
        data = _as_dict(result.unwrap())
        clinics = [shape_clinic(c) for c in data.get("clinics") or []]

        has_location = latitude is not None and longitude is not None
        if services:
            clinics = [c for c in clinics if has_services(c, services)]
        if query:
            clinics = [c for c in clinics if matches_query(c, query)]
        clinics = sort_clinics(clinics, sort_by, has_location=has_location)

        return {
            "success": True,
            "clinics": clinics,
            "count": len(clinics),
            "metadata": data.get("search_metadata") or {},
            "available_services": sorted({s for c in clinics for s in c["services_offered"]}),
        }

    async def advanced_search(
        self,
        user: CurrentUser,
        *,
        latitude: float | None,
        longitude: float | None,
        max_distance: float = 25,
        required_services: list[str] | None = None,
        min_rating: float | None = None,
        sort_by: str = "distance",
        limit: int = 15,
    ) -> dict[str, Any]:
        result = await call_rpc(
            self._db,
            "search_clinics_by_location_and_services",
            {
                "search_lat": latitude,
                "search_lng": longitude,
                "max_distance_km": _clamp(max_distance, MAX_DISTANCE_RANGE),
                "required_services": required_services or None,
                "min_rating": min_rating,
                "sort_by": sort_by,
                "limit_count": limit,
            },
            access_token=user.access_token,
            default_error="Advanced search failed",
        )
        data = _as_dict(result.unwrap())
        return {
            "success": True,
            "clinics": data.get("clinics") or [],
            "metadata": data.get("search_metadata") or {},
        }

    async def get_clinic_details(self, user: CurrentUser, clinic_id: str) -> dict[str, Any]:
        """Clinic row with its current badges, active services and available doctors.

        Raises:
            NotFoundAppError: If the clinic does not exist or is inactive.
        """
        found = await self._db.select(
            "clinics",
            filters={"id": clinic_id, "is_active": True},
            columns=CLINIC_DETAIL_COLUMNS,
            limit=1,
            access_token=user.access_token,
        )
        if not found.rows:
            raise NotFoundAppError(
                code="clinic_not_found",
                message="Clinic not found",
                details={"clinic_id": clinic_id},
            )
        clinic = dict(found.rows[0])

        services = await self._active_services(user, clinic_id)
        links = await self._db.select(
            "doctor_clinics",
            filters={"clinic_id": clinic_id, "is_active": True, "doctors.is_available": True},
            columns=CLINIC_DOCTOR_COLUMNS,
            access_token=user.access_token,
        )
        doctors = []
        for link in links.rows:
            doctor = link.get("doctors") or {}
            first, last = _doctor_name(doctor)
            doctors.append(
                {
                    **doctor,
                    "schedule": link.get("schedule"),
                    "clinic_active": link.get("is_active"),
                    "display_name": f"Dr. {first} {last}".strip(),
                }
            )

        awards = clinic.pop("clinic_badge_awards", None) or []
        latitude, longitude = extract_coordinates(clinic.get("location"))
        clinic.update(
            latitude=latitude,
            longitude=longitude,
            badges=[
                {
                    "id": award["clinic_badges"].get("id"),
                    "name": award["clinic_badges"].get("badge_name"),
                    "description": award["clinic_badges"].get("badge_description"),
                    "icon_url": award["clinic_badges"].get("badge_icon_url"),
                    "color": award["clinic_badges"].get("badge_color"),
                    "award_date": award.get("award_date"),
                }
                for award in awards
                if award.get("is_current") and award.get("clinic_badges")
            ],
            doctors=doctors,
            services=services,
            total_doctors=len(doctors),
            available_doctors=sum(1 for d in doctors if d.get("is_available")),
        )
        return {"success": True, "clinic": clinic, "doctors": doctors, "services": services}

    async def get_available_doctors(self, user: CurrentUser, clinic_id: str | None) -> dict[str, Any]:
        """Doctors a patient can book at ``clinic_id``."""
        if not clinic_id:
            raise ValidationAppError(code="missing_clinic_id", message="Clinic ID required")

        links = await self._db.select(
            "doctor_clinics",
            filters={"clinic_id": clinic_id, "is_active": True, "doctors.is_available": True},
            columns=BOOKING_DOCTOR_COLUMNS,
            access_token=user.access_token,
        )
        doctors = []
        for link in links.rows:
            doctor = link.get("doctors")
            if not doctor:
                continue
            first, last = _doctor_name(doctor)
            doctors.append(
                {
                    "id": doctor.get("id"),
                    "specialization": doctor.get("specialization"),
                    "consultation_fee": doctor.get("consultation_fee"),
                    "certifications": doctor.get("certifications"),
                    "awards": doctor.get("awards"),
                    "experience_years": doctor.get("experience_years"),
                    "rating": doctor.get("rating"),
                    "name": f"Dr. {first} {last}".strip(),
                    "display_name": f"{first} {last}".strip() or doctor.get("specialization") or "Unknown",
                    "first_name": first,
                    "last_name": last,
                    "image_url": doctor.get("image_url"),
                }
            )
        return {"success": True, "doctors": doctors, "count": len(doctors)}

    async def get_services(self, user: CurrentUser, clinic_id: str | None) -> dict[str, Any]:
        if not clinic_id:
            raise ValidationAppError(code="missing_clinic_id", message="Clinic ID required")
        services = await self._active_services(user, clinic_id)
        return {"success": True, "services": services, "count": len(services)}

    async def _active_services(self, user: CurrentUser, clinic_id: str) -> list[dict[str, Any]]:
        result = await self._db.select(
            "services",
            filters={"clinic_id": clinic_id, "is_active": True},
            order="priority",
            descending=True,
            access_token=user.access_token,
        )
        return result.rows

    async def update_location(
        self, user: CurrentUser, latitude: float | None, longitude: float | None
    ) -> RpcResult:
        """Save the patient's coordinates.

        Raises:
            AuthorizationAppError: If the caller is not a patient.
            ValidationAppError: On missing or out-of-range coordinates.
        """
        if user.role != "patient":
            raise AuthorizationAppError(
                code="patients_only",
                message="Only patients can update location",
            )
        if latitude is None or longitude is None:
            raise ValidationAppError(code="invalid_coordinates", message="Invalid coordinates provided")
        if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
            raise ValidationAppError(
                code="coordinates_out_of_range",
                message="Coordinates out of valid range",
            )

        result = await call_rpc(
            self._db,
            "update_user_location",
            {"latitude": latitude, "longitude": longitude},
            access_token=user.access_token,
            default_error="Failed to update location",
        )
        if result.success:
            logger.info("location.updated", extra={"user_id": user.user_id})
        return result

    async def get_location(self, user: CurrentUser) -> dict[str, Any]:
        """The caller's saved location; ``has_location`` is False when none is stored."""
        result = await call_rpc(
            self._db,
            "get_user_location",
            access_token=user.access_token,
            default_error="Failed to get user location",
        )
        data = _as_dict(result.unwrap())
        latitude, longitude = data.get("latitude"), data.get("longitude")
        if not data.get("has_location") or not isinstance(latitude, (int, float)) or not isinstance(
            longitude, (int, float)
        ):
            return {"success": True, "has_location": False, "location": None}
        return {
            "success": True,
            "has_location": True,
            "location": {
                "latitude": latitude,
                "longitude": longitude,
                "source": data.get("location_type") or "database",
                "accuracy_note": data.get("accuracy_note"),
            },
        }
