"""Tests for clinic discovery, clinic details and patient location."""

import pytest

from dentserve.adapters.database.base import SelectResult
from dentserve.core.errors import AuthorizationAppError, NotFoundAppError, ValidationAppError
from dentserve.services.clinic_service import (
    ClinicService,
    extract_coordinates,
    format_location,
    sort_clinics,
)


@pytest.fixture
def service(fake_db) -> ClinicService:
    return ClinicService(fake_db)


def _clinic(clinic_id: str, name: str, **overrides) -> dict:
    values = {
        "id": clinic_id,
        "name": name,
        "address": "1 Main St",
        "city": "Cebu",
        "location": "POINT(123.9 10.3)",
        "rating": 4.0,
        "distance_km": 5.0,
        "services_offered": ["Cleaning"],
    }
    values.update(overrides)
    return values


class TestCoordinates:
    def test_format_location_puts_longitude_first(self):
        assert format_location(10.3, 123.9) == "POINT(123.9 10.3)"

    def test_format_location_without_coordinates(self):
        assert format_location(None, 123.9) is None

    @pytest.mark.parametrize(
        ("location", "expected"),
        [
            ("POINT(123.9 10.3)", (10.3, 123.9)),
            ("point( -73.5 -45.25 )", (-45.25, -73.5)),
            ({"type": "Point", "coordinates": [123.9, 10.3]}, (10.3, 123.9)),
            ({"x": 123.9, "y": 10.3}, (10.3, 123.9)),
            ("not a point", (None, None)),
            (None, (None, None)),
        ],
    )
    def test_extract_coordinates(self, location, expected):
        assert extract_coordinates(location) == expected


class TestSorting:
    def test_distance_sort_puts_unknown_last(self):
        clinics = [
            {"name": "B", "distance_km": None},
            {"name": "A", "distance_km": 7.0},
            {"name": "C", "distance_km": 2.0},
        ]

        ordered = sort_clinics(clinics, "distance", has_location=True)

        assert [c["name"] for c in ordered] == ["C", "A", "B"]

    def test_distance_without_location_sorts_by_name(self):
        clinics = [{"name": "beta", "distance_km": 1.0}, {"name": "Alpha", "distance_km": 9.0}]

        ordered = sort_clinics(clinics, "distance", has_location=False)

        assert [c["name"] for c in ordered] == ["Alpha", "beta"]

    def test_rating_sort_is_descending(self):
        clinics = [{"name": "A", "rating": 3.5}, {"name": "B", "rating": 4.8}, {"name": "C", "rating": None}]

        ordered = sort_clinics(clinics, "rating", has_location=True)

        assert [c["name"] for c in ordered] == ["B", "A", "C"]


class TestDiscovery:
    @pytest.mark.asyncio
    async def test_nearest_clinics_params_and_shape(self, service, fake_db, make_user):
        user = make_user("patient")
        fake_db.rpc.return_value = {
            "success": True,
            "data": {
                "clinics": [
                    _clinic("c-2", "Far Dental", distance_km=12.0, services_offered=["Braces"]),
                    _clinic("c-1", "Near Dental", distance_km=1.5),
                ],
                "search_metadata": {"total_found": 2},
            },
        }

        result = await service.discover_clinics(user, latitude=10.3, longitude=123.9, max_distance=500)

        fake_db.rpc.assert_awaited_once_with(
            "find_nearest_clinics",
            {
                "user_location": "POINT(123.9 10.3)",
                "max_distance_km": 100.0,
                "limit_count": 50,
                "services_filter": None,
                "min_rating": None,
            },
            access_token=user.access_token,
        )
        assert [c["id"] for c in result["clinics"]] == ["c-1", "c-2"]
        assert result["count"] == 2
        assert result["metadata"] == {"total_found": 2}
        assert result["available_services"] == ["Braces", "Cleaning"]
        assert result["clinics"][0]["latitude"] == 10.3
        assert result["clinics"][0]["longitude"] == 123.9

    @pytest.mark.asyncio
    async def test_rating_and_distance_are_clamped(self, service, fake_db, make_user):
        fake_db.rpc.return_value = {"success": True, "data": {"clinics": []}}

        await service.discover_clinics(make_user(), max_distance=0.2, min_rating=9)

        params = fake_db.rpc.await_args.args[1]
        assert params["max_distance_km"] == 1.0
        assert params["min_rating"] == 5.0
        assert params["user_location"] is None

    @pytest.mark.asyncio
    async def test_query_and_service_filters(self, service, fake_db, make_user):
        fake_db.rpc.return_value = {
            "success": True,
            "data": {
                "clinics": [
                    _clinic("c-1", "Smile Center", services_offered=["Orthodontics", "Cleaning"]),
                    _clinic("c-2", "Smile Studio", services_offered=["Cleaning"]),
                    _clinic("c-3", "Tooth Works", services_offered=["Orthodontics"]),
                ]
            },
        }

        result = await service.discover_clinics(make_user(), query="smile", services=["ortho"])

        assert [c["id"] for c in result["clinics"]] == ["c-1"]

    @pytest.mark.asyncio
    async def test_failed_procedure_raises(self, service, fake_db, make_user):
        fake_db.rpc.return_value = {"success": False, "error": "Location service unavailable"}

        with pytest.raises(ValidationAppError) as exc_info:
            await service.discover_clinics(make_user(), latitude=10.3, longitude=123.9)

        assert exc_info.value.message == "Location service unavailable"

    @pytest.mark.asyncio
    async def test_advanced_search_params(self, service, fake_db, make_user):
        user = make_user()
        fake_db.rpc.return_value = {
            "success": True,
            "data": {"clinics": [{"id": "c-1"}], "search_metadata": {"sort_by": "rating"}},
        }

        result = await service.advanced_search(
            user,
            latitude=10.3,
            longitude=123.9,
            required_services=["Cleaning"],
            min_rating=4,
            sort_by="rating",
        )

        assert result == {"success": True, "clinics": [{"id": "c-1"}], "metadata": {"sort_by": "rating"}}
        assert fake_db.rpc.await_args.args == (
            "search_clinics_by_location_and_services",
            {
                "search_lat": 10.3,
                "search_lng": 123.9,
                "max_distance_km": 25,
                "required_services": ["Cleaning"],
                "min_rating": 4,
                "sort_by": "rating",
                "limit_count": 15,
            },
        )


class TestClinicDetails:
    @pytest.mark.asyncio
    async def test_missing_clinic(self, service, fake_db, make_user):
        with pytest.raises(NotFoundAppError) as exc_info:
            await service.get_clinic_details(make_user(), "c-404")

        assert exc_info.value.message == "Clinic not found"
        assert fake_db.select.await_args.kwargs["filters"] == {"id": "c-404", "is_active": True}

    @pytest.mark.asyncio
    async def test_details_with_badges_services_and_doctors(self, service, fake_db, make_user):
        fake_db.select.side_effect = [
            SelectResult(
                rows=[
                    {
                        "id": "c-1",
                        "name": "Smile Center",
                        "location": "POINT(123.9 10.3)",
                        "clinic_badge_awards": [
                            {
                                "is_current": True,
                                "award_date": "2026-01-01",
                                "clinic_badges": {"id": "b-1", "badge_name": "Top Rated"},
                            },
                            {
                                "is_current": False,
                                "award_date": "2025-01-01",
                                "clinic_badges": {"id": "b-2", "badge_name": "Old"},
                            },
                        ],
                    }
                ]
            ),
            SelectResult(rows=[{"id": "svc-1", "name": "Cleaning"}]),
            SelectResult(
                rows=[
                    {
                        "is_active": True,
                        "schedule": {"monday": "9-5"},
                        "doctors": {"id": "d-1", "first_name": "Lee", "last_name": "Park", "is_available": True},
                    }
                ]
            ),
        ]

        result = await service.get_clinic_details(make_user(), "c-1")

        clinic = result["clinic"]
        assert "clinic_badge_awards" not in clinic
        assert [b["name"] for b in clinic["badges"]] == ["Top Rated"]
        assert clinic["latitude"] == 10.3
        assert clinic["total_doctors"] == 1
        assert clinic["available_doctors"] == 1
        assert result["services"] == [{"id": "svc-1", "name": "Cleaning"}]
        assert result["doctors"][0]["display_name"] == "Dr. Lee Park"
        assert result["doctors"][0]["schedule"] == {"monday": "9-5"}

        services_call = fake_db.select.await_args_list[1]
        assert services_call.args == ("services",)
        assert services_call.kwargs["order"] == "priority"
        assert services_call.kwargs["descending"] is True
        doctors_call = fake_db.select.await_args_list[2]
        assert doctors_call.kwargs["filters"] == {
            "clinic_id": "c-1",
            "is_active": True,
            "doctors.is_available": True,
        }


class TestBookingLookups:
    @pytest.mark.asyncio
    async def test_available_doctors(self, service, fake_db, make_user):
        fake_db.select.return_value = SelectResult(
            rows=[
                {"doctors": {"id": "d-1", "first_name": "Lee", "last_name": "Park", "rating": 4.9}},
                {"doctors": None},
            ]
        )

        result = await service.get_available_doctors(make_user(), "c-1")

        assert result["count"] == 1
        doctor = result["doctors"][0]
        assert doctor["name"] == "Dr. Lee Park"
        assert doctor["display_name"] == "Lee Park"
        assert doctor["rating"] == 4.9

    @pytest.mark.asyncio
    async def test_doctor_without_name_falls_back_to_specialization(self, service, fake_db, make_user):
        fake_db.select.return_value = SelectResult(rows=[{"doctors": {"id": "d-2", "specialization": "Endodontics"}}])

        result = await service.get_available_doctors(make_user(), "c-1")

        assert result["doctors"][0]["display_name"] == "Endodontics"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["get_available_doctors", "get_services"])
    async def test_clinic_id_required(self, service, fake_db, make_user, method):
        with pytest.raises(ValidationAppError) as exc_info:
            await getattr(service, method)(make_user(), None)

        assert exc_info.value.message == "Clinic ID required"
        fake_db.select.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_services(self, service, fake_db, make_user):
        fake_db.select.return_value = SelectResult(rows=[{"id": "svc-1"}, {"id": "svc-2"}])

        result = await service.get_services(make_user(), "c-1")

        assert result == {"success": True, "services": [{"id": "svc-1"}, {"id": "svc-2"}], "count": 2}
        assert fake_db.select.await_args.kwargs["filters"] == {"clinic_id": "c-1", "is_active": True}


class TestLocation:
    @pytest.mark.asyncio
    async def test_update_location(self, service, fake_db, make_user):
        user = make_user("patient")
        fake_db.rpc.return_value = {"success": True, "message": "Location updated"}

        result = await service.update_location(user, 10.3, 123.9)

        assert result.success is True
        fake_db.rpc.assert_awaited_once_with(
            "update_user_location",
            {"latitude": 10.3, "longitude": 123.9},
            access_token=user.access_token,
        )

    @pytest.mark.asyncio
    async def test_only_patients_update_location(self, service, fake_db, make_user):
        with pytest.raises(AuthorizationAppError) as exc_info:
            await service.update_location(make_user("staff"), 10.3, 123.9)

        assert exc_info.value.message == "Only patients can update location"
        fake_db.rpc.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("latitude", "longitude", "message"),
        [
            (None, 123.9, "Invalid coordinates provided"),
            (91, 123.9, "Coordinates out of valid range"),
            (10.3, -181, "Coordinates out of valid range"),
        ],
    )
    async def test_invalid_coordinates(self, service, fake_db, make_user, latitude, longitude, message):
        with pytest.raises(ValidationAppError) as exc_info:
            await service.update_location(make_user("patient"), latitude, longitude)

        assert exc_info.value.message == message
        fake_db.rpc.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_saved_location(self, service, fake_db, make_user):
        fake_db.rpc.return_value = {
            "has_location": True,
            "latitude": 10.3,
            "longitude": 123.9,
            "location_type": "gps",
        }

        result = await service.get_location(make_user())

        assert result["has_location"] is True
        assert result["location"] == {
            "latitude": 10.3,
            "longitude": 123.9,
            "source": "gps",
            "accuracy_note": None,
        }
        assert fake_db.rpc.await_args.args == ("get_user_location", {})

    @pytest.mark.asyncio
    async def test_no_saved_location(self, service, fake_db, make_user):
        fake_db.rpc.return_value = {"has_location": False}

        result = await service.get_location(make_user())

        assert result == {"success": True, "has_location": False, "location": None}
