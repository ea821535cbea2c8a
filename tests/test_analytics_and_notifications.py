import pytest

from dentserve.adapters.database.base import SelectResult
from dentserve.core.errors import AuthorizationAppError, ValidationAppError
from dentserve.services.analytics_service import AnalyticsService
from dentserve.services.notification_service import NotificationService


class TestClinicGrowth:
    @pytest.mark.asyncio
    async def test_staff_defaults_to_own_clinic(self, fake_db, make_user):
        fake_db.select.return_value = SelectResult(rows=[{"clinic_id": "clinic-7"}])
        fake_db.rpc.return_value = {"success": True, "data": {"total_patients": 12}}
        user = make_user("staff")

        result = await AnalyticsService(fake_db).get_clinic_growth(user, date_from="2026-01-01")

        assert result.data == {"total_patients": 12}
        fake_db.select.assert_awaited_once_with(
            "staff_profiles",
            filters={"user_profile_id": user.user_profile_id},
            columns="clinic_id",
            limit=1,
        )
        assert fake_db.rpc.await_args.args == (
            "get_clinic_growth_analytics",
            {
                "p_clinic_id": "clinic-7",
                "p_date_from": "2026-01-01",
                "p_date_to": None,
                "p_include_comparisons": True,
                "p_include_patient_insights": True,
            },
        )

    @pytest.mark.asyncio
    async def test_staff_cannot_read_other_clinic(self, fake_db, make_user):
        fake_db.select.return_value = SelectResult(rows=[{"clinic_id": "clinic-7"}])

        with pytest.raises(AuthorizationAppError) as exc_info:
            await AnalyticsService(fake_db).get_clinic_growth(make_user("staff"), clinic_id="clinic-8")

        assert exc_info.value.code == "clinic_access_denied"
        fake_db.rpc.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_staff_without_clinic_is_denied(self, fake_db, make_user):
        with pytest.raises(AuthorizationAppError) as exc_info:
            await AnalyticsService(fake_db).get_clinic_growth(make_user("staff"))

        assert exc_info.value.code == "no_clinic_assigned"

    @pytest.mark.asyncio
    async def test_admin_must_name_clinic(self, fake_db, make_user):
        with pytest.raises(ValidationAppError) as exc_info:
            await AnalyticsService(fake_db).get_clinic_growth(make_user("admin"))

        assert exc_info.value.message == "Clinic ID is required"

    @pytest.mark.asyncio
    async def test_admin_reads_any_clinic(self, fake_db, make_user):
        fake_db.rpc.return_value = {"success": True, "data": {}}

        await AnalyticsService(fake_db).get_clinic_growth(make_user("admin"), clinic_id="clinic-3")

        assert fake_db.rpc.await_args.args[1]["p_clinic_id"] == "clinic-3"
        fake_db.select.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_patient_is_denied(self, fake_db, make_user):
        with pytest.raises(AuthorizationAppError):
            await AnalyticsService(fake_db).get_clinic_growth(make_user("patient"), clinic_id="c")


@pytest.mark.asyncio
async def test_system_analytics_admin_only(fake_db, make_user):
    service = AnalyticsService(fake_db)
    fake_db.rpc.return_value = {"success": True, "data": {"total_users": 40}}

    with pytest.raises(AuthorizationAppError):
        await service.get_system_analytics(make_user("staff"))

    result = await service.get_system_analytics(make_user("admin"))
    assert result.data == {"total_users": 40}
    assert fake_db.rpc.await_args.args[0] == "get_admin_system_analytics"


class TestNotifications:
    @pytest.mark.asyncio
    async def test_unread_only_sets_read_status_false(self, fake_db, make_user):
        fake_db.rpc.return_value = {"success": True, "data": [], "total_count": 0}

        result = await NotificationService(fake_db).get_notifications(
            make_user(), unread_only=True, notification_types=["appointment_confirmed"]
        )

        assert result.total == 0
        assert fake_db.rpc.await_args.args[1] == {
            "p_user_id": None,
            "p_read_status": False,
            "p_notification_types": ["appointment_confirmed"],
            "p_limit": 20,
            "p_offset": 0,
            "p_include_related_data": True,
        }

    @pytest.mark.asyncio
    async def test_all_notifications_leave_read_status_null(self, fake_db, make_user):
        fake_db.rpc.return_value = []

        await NotificationService(fake_db).get_notifications(make_user())

        assert fake_db.rpc.await_args.args[1]["p_read_status"] is None

    @pytest.mark.asyncio
    async def test_mark_read_without_ids_marks_all(self, fake_db, make_user):
        fake_db.rpc.return_value = {"success": True, "data": {"updated_count": 3}}

        result = await NotificationService(fake_db).mark_read(make_user())

        assert result.data == {"updated_count": 3}
        assert fake_db.rpc.await_args.args == ("mark_notifications_read", {"p_notification_ids": None})

    @pytest.mark.asyncio
    async def test_mark_read_with_empty_list_keeps_it_empty(self, fake_db, make_user):
        fake_db.rpc.return_value = {"success": True, "data": {"updated_count": 0}}

        await NotificationService(fake_db).mark_read(make_user(), [])

        assert fake_db.rpc.await_args.args == ("mark_notifications_read", {"p_notification_ids": []})
