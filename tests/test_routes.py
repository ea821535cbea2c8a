"""HTTP-level tests for the API routes with the database and storage faked."""

import httpx
import pytest
from fastapi.testclient import TestClient

from dentserve.adapters.database.base import SelectResult
from dentserve.adapters.email import ResendEmailSender
from dentserve.api import deps
from dentserve.core.config import settings
from dentserve.services.recaptcha_service import RecaptchaService

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class TestHealth:
    def test_health(self, client: TestClient):
        data = client.get("/health").json()

        assert data["status"] == "OK"
        assert data["message"] == "Backend server is running"
        assert data["port"] == settings.app.port
        assert "timestamp" in data

    def test_hello(self, client: TestClient):
        assert client.post("/api/hello", json={"name": "Ana"}).json() == {"message": "Hello Ana"}

    def test_hello_requires_name(self, client: TestClient):
        response = client.post("/api/hello", json={"name": ""})

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"


class TestUploads:
    def test_profile_upload(self, client: TestClient, login_as, fake_db, fake_storage):
        login_as("patient")
        fake_db.update.return_value = [{"id": "profile-patient"}]

        response = client.post(
            "/api/upload/profile-image",
            files={"profileImage": ("me.png", PNG, "image/png")},
            headers={"X-Upload-Id": "up-42"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["uploadId"] == "up-42"
        assert data["user"] == {"id": "user-patient", "name": "Ana Cruz"}
        assert response.headers["X-Upload-Id"] == "up-42"
        assert len(fake_storage.objects) == 1
        assert "up-42" not in deps.upload_registry

    def test_generated_upload_id(self, client: TestClient, login_as, fake_db):
        login_as("patient")
        fake_db.update.return_value = [{"id": "profile-patient"}]

        response = client.post(
            "/api/upload/profile-image", files={"profileImage": ("me.png", PNG, "image/png")}
        )

        assert response.headers["X-Upload-Id"].startswith("upload_")
        assert response.json()["uploadId"] == response.headers["X-Upload-Id"]

    def test_missing_file(self, client: TestClient, login_as):
        login_as("patient")

        response = client.post("/api/upload/profile-image")

        assert response.status_code == 400
        assert response.json()["error"] == "No file uploaded"

    def test_invalid_type(self, client: TestClient, login_as):
        login_as("patient")

        response = client.post(
            "/api/upload/profile-image", files={"profileImage": ("a.gif", b"GIF89a", "image/gif")}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_file_type"
        assert response.headers["X-Upload-Id"].startswith("upload_")
        assert response.json()["details"]["upload_id"] == response.headers["X-Upload-Id"]

    def test_forbidden_upload_keeps_client_upload_id(self, client: TestClient, login_as):
        login_as("patient")

        response = client.post(
            "/api/upload/clinic-image",
            files={"clinicImage": ("c.png", PNG, "image/png")},
            data={"clinicId": "clinic-1"},
            headers={"X-Upload-Id": "up-77"},
        )

        assert response.status_code == 403
        assert response.headers["X-Upload-Id"] == "up-77"

    def test_clinic_upload_by_staff(self, client: TestClient, login_as, fake_db):
        login_as("staff")
        fake_db.select.return_value = SelectResult(rows=[{"clinic_id": "clinic-1"}])
        fake_db.update.return_value = [{"id": "clinic-1"}]

        response = client.post(
            "/api/upload/clinic-image",
            files={"clinicImage": ("c.png", PNG, "image/png")},
            data={"clinicId": "clinic-1"},
        )

        assert response.status_code == 200
        assert response.json()["clinicId"] == "clinic-1"

    def test_clinic_upload_requires_clinic_id(self, client: TestClient, login_as):
        login_as("admin")

        response = client.post(
            "/api/upload/clinic-image", files={"clinicImage": ("c.png", PNG, "image/png")}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Clinic ID is required"

    def test_doctor_upload_forbidden_for_other_clinic(self, client: TestClient, login_as, fake_db):
        login_as("staff")
        fake_db.select.side_effect = [
            SelectResult(rows=[{"clinic_id": "clinic-1"}]),
            SelectResult(rows=[]),
        ]

        response = client.post(
            "/api/upload/doctor-image",
            files={"doctorImage": ("d.png", PNG, "image/png")},
            data={"doctorId": "doc-9"},
        )

        assert response.status_code == 403

    def test_database_failure_returns_500_and_cleans_up(self, client: TestClient, login_as, fake_db, fake_storage):
        login_as("patient")
        fake_db.update.return_value = []

        response = client.post(
            "/api/upload/profile-image", files={"profileImage": ("me.png", PNG, "image/png")}
        )

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to update profile in database"
        assert fake_storage.objects == {}

    def test_cancel_unknown_upload(self, client: TestClient, login_as):
        login_as("patient")

        response = client.delete("/api/upload/profile-image/up-missing")

        assert response.status_code == 404
        assert response.json()["error"] == "Upload not found"

    def test_cancel_in_flight_upload(self, client: TestClient, login_as):
        user = login_as("staff")
        deps.upload_registry.register("up-7", user.user_id, "clinic")
        try:
            response = client.delete("/api/upload/clinic-image/up-7")
        finally:
            deps.upload_registry.cancel("up-7", user.user_id)

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Upload cancelled", "uploadId": "up-7"}
        assert "up-7" not in deps.upload_registry

    def test_cancel_by_header_requires_header(self, client: TestClient, login_as):
        login_as("patient")

        response = client.delete("/api/upload")

        assert response.status_code == 400
        assert response.json()["code"] == "missing_upload_id"

    def test_upload_rate_limit(self, client: TestClient, login_as, fake_db, monkeypatch):
        login_as("patient")
        fake_db.update.return_value = [{"id": "profile-patient"}]
        monkeypatch.setattr(settings.app, "upload_rate_limit_requests", 1)

        first = client.post("/api/upload/profile-image", files={"profileImage": ("a.png", PNG, "image/png")})
        second = client.post("/api/upload/profile-image", files={"profileImage": ("a.png", PNG, "image/png")})

        assert first.status_code == 200
        assert second.status_code == 429
        assert second.json()["error"] == "Too many upload attempts, please try again later."
        assert "Retry-After" in second.headers


class TestRecaptchaRoute:
    def test_verify(self, app, client: TestClient):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": True, "score": 0.9, "action": "login"})

        service = RecaptchaService("secret", transport=httpx.MockTransport(handler))
        app.dependency_overrides[deps.get_recaptcha_service] = lambda: service

        response = client.post("/api/recaptcha/verify", json={"token": "tok", "expectedAction": "login"})

        assert response.status_code == 200
        assert response.json()["score"] == 0.9

    def test_low_score_is_400(self, app, client: TestClient):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": True, "score": 0.1, "action": "login"})

        service = RecaptchaService("secret", transport=httpx.MockTransport(handler))
        app.dependency_overrides[deps.get_recaptcha_service] = lambda: service

        response = client.post("/api/recaptcha/verify", json={"token": "tok", "action": "login"})

        assert response.status_code == 400
        assert response.json()["code"] == "LOW_SCORE"
        assert response.json()["details"]["minRequired"] == 0.5

    def test_missing_token(self, client: TestClient):
        response = client.post("/api/recaptcha/verify", json={})

        assert response.status_code == 400
        assert response.json()["code"] == "MISSING_TOKEN"


class TestEmailRoutes:
    @pytest.fixture
    def sent(self, app) -> list[httpx.Request]:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"id": "email-1"})

        sender = ResendEmailSender("re_test", transport=httpx.MockTransport(handler))
        app.dependency_overrides[deps.get_email_sender] = lambda: sender
        return captured

    def test_send_staff_invitation(self, client: TestClient, sent):
        response = client.post(
            "/api/email/send-staff-invitation",
            json={
                "to_email": "new@example.com",
                "subject": "Join us",
                "clinic_name": "Smile Dental",
                "invitation_id": "inv-1",
                "invitation_token": "tok-1",
            },
        )

        assert response.status_code == 200
        assert response.json()["data"]["email_id"] == "email-1"
        assert len(sent) == 1

    def test_send_email_missing_fields(self, client: TestClient, sent):
        response = client.post("/api/email/send-email", json={"to": "a@b.c"})

        assert response.status_code == 400
        assert response.json()["error"] == "Missing required fields: to, subject, html"
        assert sent == []

    def test_email_rate_limit_per_ip(self, client: TestClient, sent, monkeypatch):
        monkeypatch.setattr(settings.app, "email_rate_limit_requests", 2)
        body = {"to": "a@b.c", "subject": "s", "html": "<p>x</p>"}

        statuses = [client.post("/api/email/send-email", json=body).status_code for _ in range(3)]

        assert statuses == [200, 200, 429]

    def test_forwarded_header_from_untrusted_peer_is_ignored(self, client: TestClient, sent, monkeypatch):
        monkeypatch.setattr(settings.app, "email_rate_limit_requests", 2)
        body = {"to": "a@b.c", "subject": "s", "html": "<p>x</p>"}

        statuses = [
            client.post(
                "/api/email/send-email", json=body, headers={"X-Forwarded-For": f"10.0.0.{i}"}
            ).status_code
            for i in range(5)
        ]

        assert statuses == [200, 200, 429, 429, 429]
        assert len(sent) == 2

    def test_forwarded_header_from_trusted_proxy(self, client: TestClient, sent, monkeypatch):
        monkeypatch.setattr(settings.app, "email_rate_limit_requests", 1)
        monkeypatch.setattr(settings.app, "trusted_proxies", "testclient")
        body = {"to": "a@b.c", "subject": "s", "html": "<p>x</p>"}

        first = client.post("/api/email/send-email", json=body, headers={"X-Forwarded-For": "203.0.113.9"})
        again = client.post("/api/email/send-email", json=body, headers={"X-Forwarded-For": "203.0.113.9"})
        other = client.post("/api/email/send-email", json=body, headers={"X-Forwarded-For": "198.51.100.4"})

        assert [first.status_code, again.status_code, other.status_code] == [200, 429, 200]

    def test_health_is_public(self, client: TestClient, sent):
        data = client.get("/api/email/health").json()

        assert data["status"] == "OK"
        assert data["resend_configured"] is True


class TestDashboardRoutes:
    def test_dashboard_is_cached(self, client: TestClient, login_as, fake_db):
        login_as("patient")
        fake_db.rpc.return_value = {"profile_completion": 70}

        first = client.get("/api/dashboard").json()
        second = client.get("/api/dashboard").json()

        assert first["from_cache"] is False
        assert second["from_cache"] is True
        assert second["data"]["profile_completion"] == 70
        assert fake_db.rpc.await_count == 1

    def test_dashboard_failure(self, client: TestClient, login_as, fake_db):
        login_as("patient")
        fake_db.rpc.return_value = {"success": False, "error": "Failed to load dashboard data"}

        response = client.get("/api/dashboard")

        assert response.status_code == 400
        assert response.json()["code"] == "dashboard_unavailable"

    def test_refresh(self, client: TestClient, login_as, fake_db):
        login_as("admin")
        fake_db.rpc.return_value = {"system_overview": {}}

        response = client.post("/api/dashboard/refresh")
        throttled = client.post("/api/dashboard/refresh")

        assert response.status_code == 200
        assert response.json()["data"]["type"] == "admin"
        assert "refresh_available_in" not in response.json()
        assert throttled.json()["from_cache"] is True
        assert 0 < throttled.json()["refresh_available_in"] <= settings.app.dashboard_refresh_cooldown_seconds

    def test_system_analytics(self, client: TestClient, login_as, fake_db):
        login_as("admin")
        fake_db.rpc.return_value = {"success": True, "data": {"total_clinics": 3}}

        response = client.get("/api/analytics/system")

        assert response.json() == {"success": True, "data": {"total_clinics": 3}}


class TestAppointmentRoutes:
    def test_book(self, client: TestClient, login_as, fake_db):
        login_as("patient")
        fake_db.rpc.return_value = {"success": True, "data": {"appointment_id": "apt-1"}}

        response = client.post(
            "/api/appointments",
            json={"clinic_id": "c1", "doctor_id": "d1", "date": "2099-11-03", "time": "09:00"},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "appointment": {"appointment_id": "apt-1"}}

    def test_book_conflict_is_reported_in_body(self, client: TestClient, login_as, fake_db):
        login_as("patient")
        fake_db.rpc.return_value = {
            "success": False,
            "error": "Already booked that day",
            "reason": "same_day_conflict",
            "data": {"existing_appointment": {"id": "apt-0"}},
        }

        response = client.post(
            "/api/appointments",
            json={"clinic_id": "c1", "doctor_id": "d1", "date": "2099-11-03", "time": "09:00"},
        )

        assert response.status_code == 200
        assert response.json()["conflict"] == {"id": "apt-0"}
        assert response.json()["success"] is False

    def test_book_missing_time(self, client: TestClient, login_as):
        login_as("patient")

        response = client.post("/api/appointments", json={"clinic_id": "c1", "doctor_id": "d1", "date": "x"})

        assert response.status_code == 400
        assert response.json()["error"] == "Please select time"

    def test_staff_cannot_book(self, client: TestClient, login_as):
        login_as("staff")

        response = client.post("/api/appointments", json={})

        assert response.status_code == 403

    def test_list_with_total(self, client: TestClient, login_as, fake_db):
        login_as("staff")
        fake_db.rpc.return_value = {"success": True, "data": [{"id": "apt-1"}], "total_count": 1}

        response = client.get("/api/appointments", params={"status": ["pending", "confirmed"], "limit": 5})

        assert response.json() == {"success": True, "data": [{"id": "apt-1"}], "total": 1}
        assert fake_db.rpc.await_args.args[1]["p_status"] == ["pending", "confirmed"]

    def test_cancellation_eligibility(self, client: TestClient, login_as, fake_db):
        login_as("patient")
        fake_db.rpc.return_value = True

        response = client.get("/api/appointments/apt-1/cancellation-eligibility")

        assert response.json() == {"can_cancel": True, "reason": "Can be cancelled"}

    def test_cancel_rejected_by_procedure(self, client: TestClient, login_as, fake_db):
        login_as("staff")
        fake_db.rpc.return_value = {"success": False, "error": "Appointment already completed", "reason": "invalid_status"}

        response = client.post("/api/appointments/apt-1/cancel", json={"reason": "duplicate"})

        assert response.status_code == 400
        assert response.json()["error"] == "Appointment already completed"
        assert response.json()["code"] == "invalid_status"

    def test_book_past_date(self, client: TestClient, login_as, fake_db):
        login_as("patient")

        response = client.post(
            "/api/appointments",
            json={"clinic_id": "c1", "doctor_id": "d1", "date": "2000-01-03", "time": "09:00"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Cannot book appointments in the past"
        fake_db.rpc.assert_not_awaited()

    def test_ongoing_treatments(self, client: TestClient, login_as, fake_db):
        login_as("patient")
        fake_db.rpc.return_value = {"success": True, "data": {"treatments": [{"id": "plan-1"}]}}

        response = client.get("/api/appointments/ongoing-treatments", params={"clinic_id": "c1"})

        assert response.json() == {"success": True, "treatments": [{"id": "plan-1"}], "has_ongoing": True}
        assert fake_db.rpc.await_args.args[1] == {"p_patient_id": "user-patient", "p_clinic_id": "c1"}

    def test_ongoing_treatments_for_staff_is_forbidden(self, client: TestClient, login_as):
        login_as("staff")

        assert client.get("/api/appointments/ongoing-treatments").status_code == 403


class TestClinicRoutes:
    def test_nearest(self, client: TestClient, login_as, fake_db):
        login_as("patient")
        fake_db.rpc.return_value = {
            "success": True,
            "data": {"clinics": [{"id": "c1", "name": "Smile", "distance_km": 2.0, "location": "POINT(123.9 10.3)"}]},
        }

        response = client.get("/api/clinics/nearest", params={"lat": 10.3, "lng": 123.9, "max_distance": 10})

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["clinics"][0]["latitude"] == 10.3
        assert fake_db.rpc.await_args.args[1]["user_location"] == "POINT(123.9 10.3)"
        assert fake_db.rpc.await_args.args[1]["max_distance_km"] == 10

    def test_nearest_rejects_bad_latitude(self, client: TestClient, login_as, fake_db):
        login_as("patient")

        response = client.get("/api/clinics/nearest", params={"lat": 123, "lng": 10})

        assert response.status_code == 400
        fake_db.rpc.assert_not_awaited()

    def test_search_by_text(self, client: TestClient, login_as, fake_db):
        login_as("patient")
        fake_db.rpc.return_value = {
            "success": True,
            "data": {"clinics": [{"id": "c1", "name": "Smile Center"}, {"id": "c2", "name": "Tooth Works"}]},
        }

        response = client.get("/api/clinics/search", params={"q": "tooth"})

        assert [c["id"] for c in response.json()["clinics"]] == ["c2"]

    def test_advanced_search(self, client: TestClient, login_as, fake_db):
        login_as("patient")
        fake_db.rpc.return_value = {"success": True, "data": {"clinics": []}}

        response = client.post(
            "/api/clinics/search/advanced",
            json={"latitude": 10.3, "longitude": 123.9, "requiredServices": ["Cleaning"], "sortBy": "rating"},
        )

        assert response.status_code == 200
        params = fake_db.rpc.await_args.args[1]
        assert params["required_services"] == ["Cleaning"]
        assert params["sort_by"] == "rating"

    def test_clinic_not_found(self, client: TestClient, login_as):
        login_as("patient")

        response = client.get("/api/clinics/c-missing")

        assert response.status_code == 404
        assert response.json()["error"] == "Clinic not found"

    def test_clinic_services(self, client: TestClient, login_as, fake_db):
        login_as("patient")
        fake_db.select.return_value = SelectResult(rows=[{"id": "svc-1"}])

        response = client.get("/api/clinics/c1/services")

        assert response.json() == {"success": True, "services": [{"id": "svc-1"}], "count": 1}

    def test_clinic_doctors(self, client: TestClient, login_as, fake_db):
        login_as("patient")
        fake_db.select.return_value = SelectResult(rows=[{"doctors": {"id": "d1", "first_name": "Lee"}}])

        response = client.get("/api/clinics/c1/doctors")

        assert response.json()["doctors"][0]["name"] == "Dr. Lee"

    def test_update_location(self, client: TestClient, login_as, fake_db):
        login_as("patient")
        fake_db.rpc.return_value = {"success": True, "message": "Location updated"}

        response = client.put("/api/location", json={"latitude": 10.3, "longitude": 123.9})

        assert response.status_code == 200
        assert response.json()["message"] == "Location updated"

    def test_update_location_out_of_range(self, client: TestClient, login_as, fake_db):
        login_as("patient")

        response = client.put("/api/location", json={"latitude": 95, "longitude": 123.9})

        assert response.status_code == 400
        assert response.json()["error"] == "Coordinates out of valid range"
        fake_db.rpc.assert_not_awaited()

    def test_get_location(self, client: TestClient, login_as, fake_db):
        login_as("patient")
        fake_db.rpc.return_value = {"has_location": False}

        response = client.get("/api/location")

        assert response.json() == {"success": True, "has_location": False, "location": None}


class TestNotificationRoutes:
    def test_list(self, client: TestClient, login_as, fake_db):
        login_as("patient")
        fake_db.rpc.return_value = {"success": True, "data": [{"id": "n1"}], "total_count": 1}

        response = client.get("/api/notifications", params={"unread_only": "true"})

        assert response.json()["total"] == 1
        assert fake_db.rpc.await_args.args[1]["p_read_status"] is False

    def test_mark_read(self, client: TestClient, login_as, fake_db):
        login_as("patient")
        fake_db.rpc.return_value = {"success": True, "data": {"updated_count": 2}}

        response = client.post("/api/notifications/mark-read", json={"notification_ids": ["n1", "n2"]})

        assert response.json()["data"] == {"updated_count": 2}


class TestAdminRoutes:
    def test_change_password(self, client: TestClient, login_as, fake_db):
        login_as("admin")
        fake_db.select.return_value = SelectResult(rows=[{"auth_user_id": "auth-9", "email": "p@x.com"}])
        fake_db.rpc.return_value = {"success": True}

        response = client.post(
            "/api/admin/change-user-password", json={"userId": "user-9", "newPassword": "long-enough"}
        )

        assert response.status_code == 200
        assert response.json()["userEmail"] == "p@x.com"

    def test_change_password_unknown_user(self, client: TestClient, login_as):
        login_as("admin")

        response = client.post(
            "/api/admin/change-user-password", json={"userId": "ghost", "newPassword": "long-enough"}
        )

        assert response.status_code == 404

    def test_rate_limits_listing(self, client: TestClient, login_as, fake_db):
        login_as("admin")
        fake_db.select.return_value = SelectResult(rows=[], count=0)

        response = client.get("/api/admin/rate-limits")

        assert response.json() == {"success": True, "data": [], "total": 0}

    def test_clear_rate_limit(self, client: TestClient, login_as, fake_db):
        login_as("admin")
        fake_db.delete.return_value = [{"id": 1}]

        response = client.delete("/api/admin/rate-limits/a@b.c", params={"action_type": "login"})

        assert response.json() == {"success": True, "data": {"deleted": 1}, "message": "Rate limit cleared"}

    def test_manage_partnership(self, client: TestClient, login_as, fake_db):
        login_as("admin")
        fake_db.rpc.return_value = {"success": True, "data": {"clinic_id": "c9"}}

        response = client.post(
            "/api/admin/partnerships/req-1/manage",
            json={"action": "approve", "clinic_data": {"name": "Bright Smiles"}},
        )

        assert response.json()["data"] == {"clinic_id": "c9"}
        assert fake_db.rpc.await_args.args[1]["p_clinic_data"] == {"name": "Bright Smiles"}


def test_openapi_marks_public_routes(client: TestClient):
    schema = client.get("/openapi.json").json()

    assert schema["security"] == [{"BearerAuth": []}]
    assert "BearerAuth" in schema["components"]["securitySchemes"]
    assert schema["paths"]["/health"]["get"]["security"] == []
    assert schema["paths"]["/api/recaptcha/verify"]["post"]["security"] == []
    assert schema["paths"]["/api/dashboard"]["get"].get("security") != []
