from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from dentserve.api.deps import get_clinic_service
from dentserve.core.auth import require_roles
from dentserve.schemas.auth import CurrentUser
from dentserve.schemas.clinics import AdvancedClinicSearchRequest, ClinicSort, UpdateLocationRequest
from dentserve.services.clinic_service import DEFAULT_MAX_DISTANCE_KM, ClinicService

router = APIRouter(prefix="/api", tags=["Clinics"])


@router.get("/clinics/nearest")
async def nearest_clinics(
    lat: float | None = Query(None, ge=-90, le=90),
    lng: float | None = Query(None, ge=-180, le=180),
    max_distance: float = DEFAULT_MAX_DISTANCE_KM,
    limit: int = Query(50, ge=1, le=100),
    services: list[str] | None = Query(None),
    min_rating: float | None = None,
    sort_by: ClinicSort = "distance",
    user: CurrentUser = Depends(require_roles()),
    service: ClinicService = Depends(get_clinic_service),
) -> dict:
    """Active clinics ordered by distance from ``lat``/``lng`` when given."""
    return await service.discover_clinics(
        user,
        latitude=lat,
        longitude=lng,
        max_distance=max_distance,
        limit=limit,
        services=services,
        min_rating=min_rating,
        sort_by=sort_by,
    )


@router.get("/clinics/search")
async def search_clinics(
    q: str = "",
    lat: float | None = Query(None, ge=-90, le=90),
    lng: float | None = Query(None, ge=-180, le=180),
    sort_by: ClinicSort = "distance",
    user: CurrentUser = Depends(require_roles()),
    service: ClinicService = Depends(get_clinic_service),
) -> dict:
    return await service.discover_clinics(user, latitude=lat, longitude=lng, query=q, sort_by=sort_by)


@router.post("/clinics/search/advanced")
async def advanced_clinic_search(
    body: AdvancedClinicSearchRequest,
    user: CurrentUser = Depends(require_roles()),
    service: ClinicService = Depends(get_clinic_service),
) -> dict:
    return await service.advanced_search(
        user,
        latitude=body.latitude,
        longitude=body.longitude,
        max_distance=body.max_distance,
        required_services=body.required_services,
        min_rating=body.min_rating,
        sort_by=body.sort_by,
        limit=body.limit,
    )


@router.get("/clinics/{clinic_id}")
async def clinic_details(
    clinic_id: str,
    user: CurrentUser = Depends(require_roles()),
    service: ClinicService = Depends(get_clinic_service),
) -> dict:
    return await service.get_clinic_details(user, clinic_id)


@router.get("/clinics/{clinic_id}/doctors")
async def clinic_doctors(
    clinic_id: str,
    user: CurrentUser = Depends(require_roles()),
    service: ClinicService = Depends(get_clinic_service),
) -> dict:
    return await service.get_available_doctors(user, clinic_id)


@router.get("/clinics/{clinic_id}/services")
async def clinic_services(
    clinic_id: str,
    user: CurrentUser = Depends(require_roles()),
    service: ClinicService = Depends(get_clinic_service),
) -> dict:
    return await service.get_services(user, clinic_id)


@router.get("/location")
async def get_location(
    user: CurrentUser = Depends(require_roles()),
    service: ClinicService = Depends(get_clinic_service),
) -> dict:
    return await service.get_location(user)


@router.put("/location")
async def update_location(
    body: UpdateLocationRequest,
    user: CurrentUser = Depends(require_roles("patient")),
    service: ClinicService = Depends(get_clinic_service),
) -> dict:
    result = await service.update_location(user, body.latitude, body.longitude)
    return result.to_response()
