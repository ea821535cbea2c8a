from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ClinicSort = Literal["distance", "rating", "name", "availability"]


class AdvancedClinicSearchRequest(BaseModel):
    """Body for the location-and-services clinic search."""

    model_config = ConfigDict(populate_by_name=True)

    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    max_distance: float = Field(25, alias="maxDistance")
    required_services: list[str] = Field(default_factory=list, alias="requiredServices")
    min_rating: float | None = Field(None, alias="minRating")
    sort_by: ClinicSort = Field("distance", alias="sortBy")
    limit: int = Field(15, ge=1, le=100)


class UpdateLocationRequest(BaseModel):
    # Range checks live in the service so the caller gets its message.
    latitude: float | None = None
    longitude: float | None = None
