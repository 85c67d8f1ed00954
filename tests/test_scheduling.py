from datetime import date, datetime

import pydantic
import pytest
from freezegun import freeze_time

from carebook.domain.scheduling.actions import ScheduleActions
from carebook.domain.scheduling.schemas import ScheduleDay, ScheduleUpdate
from carebook.models import BookingStatus, ProviderSchedule

from .conftest import NOW


@pytest.fixture
def schedule_actions(db, disabled_cache):
    return ScheduleActions(db, disabled_cache)


def week(db, provider_id):
    rows = (
        db.query(ProviderSchedule)
        .filter(ProviderSchedule.provider_id == provider_id)
        .order_by(ProviderSchedule.day_of_week)
        .all()
    )
    return [(r.day_of_week, r.open_time, r.close_time, r.is_closed) for r in rows]


@freeze_time(NOW)
class TestAvailability:
    def test_default_slots_for_open_days(self, schedule_actions, world):
        result = schedule_actions.get_availability(world["provider"].id, days=7)

        assert result.success
        days = result.data["days"]
        assert [d["dayName"] for d in days] == ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
        assert [d["isOpen"] for d in days] == [True] * 5 + [False, False]
        assert len(days[0]["slots"]) == 16
        assert days[0]["slots"][0] == "2026-03-02T09:00:00"
        assert days[0]["slots"][-1] == "2026-03-02T16:30:00"
        assert result.data["slotMinutes"] == 30
        assert len(result.data["slots"]) == 16 * 5

    def test_existing_bookings_remove_slots(self, schedule_actions, world, make_booking):
        make_booking(
            world["provider"], world["parent"], datetime(2026, 3, 2, 9, 0), BookingStatus.CONFIRMED,
            duration_minutes=60,
        )
        make_booking(
            world["provider"], world["parent"], datetime(2026, 3, 2, 11, 0), BookingStatus.CANCELLED
        )

        slots = schedule_actions.get_availability(world["provider"].id, days=1).data["slots"]

        assert "2026-03-02T09:00:00" not in slots
        assert "2026-03-02T09:30:00" not in slots
        assert "2026-03-02T10:00:00" in slots
        assert "2026-03-02T11:00:00" in slots
        assert len(slots) == 14

    def test_service_duration_sets_slot_size(self, schedule_actions, world):
        result = schedule_actions.get_availability(
            world["provider"].id, service_id=world["consult"].id, days=1
        )
        assert result.data["slotMinutes"] == 60
        assert len(result.data["slots"]) == 8

    def test_slots_before_now_are_hidden(self, schedule_actions, world):
        with freeze_time(datetime(2026, 3, 2, 12, 10)):
            slots = schedule_actions.get_availability(world["provider"].id, days=1).data["slots"]
        assert slots[0] == "2026-03-02T12:30:00"

    def test_explicit_start_date(self, schedule_actions, world):
        result = schedule_actions.get_availability(
            world["provider"].id, start_date=date(2026, 3, 7), days=2
        )
        assert result.data["slots"] == []

    @pytest.mark.parametrize("days", [0, 61])
    def test_window_bounds(self, schedule_actions, world, days):
        result = schedule_actions.get_availability(world["provider"].id, days=days)
        assert result.code == "validation_error"

    def test_unapproved_provider(self, schedule_actions, world):
        result = schedule_actions.get_availability(world["pending_provider"].id)
        assert result.code == "validation_error"

    def test_foreign_service_is_rejected(self, schedule_actions, world):
        result = schedule_actions.get_availability(
            world["other_provider"].id, service_id=world["consult"].id
        )
        assert result.code == "validation_error"


class TestScheduleUpdate:
    def test_owner_replaces_days(self, schedule_actions, world, db):
        update = ScheduleUpdate(
            days=[
                ScheduleDay(dayOfWeek=0, openTime="08:00", closeTime="12:00"),
                ScheduleDay(dayOfWeek=5, openTime="10:00", closeTime="14:00"),
                ScheduleDay(dayOfWeek=6, isClosed=True),
            ]
        )

        result = schedule_actions.update_my_schedule(world["owner"], update)

        assert result.success, result.error
        assert week(db, world["provider"].id) == [
            (0, "08:00", "12:00", False),
            (1, "09:00", "17:00", False),
            (2, "09:00", "17:00", False),
            (3, "09:00", "17:00", False),
            (4, "09:00", "17:00", False),
            (5, "10:00", "14:00", False),
            (6, "09:00", "17:00", True),
        ]
        assert [d["dayOfWeek"] for d in result.data] == list(range(7))

    def test_failed_commit_leaves_schedule_untouched(self, schedule_actions, world, db, monkeypatch):
        before = week(db, world["provider"].id)
        update = ScheduleUpdate(
            days=[
                ScheduleDay(dayOfWeek=0, openTime="07:00", closeTime="11:00"),
                ScheduleDay(dayOfWeek=6, openTime="10:00", closeTime="12:00"),
            ]
        )

        def failing_commit():
            raise RuntimeError("connection lost")

        with monkeypatch.context() as m:
            m.setattr(db, "commit", failing_commit)
            result = schedule_actions.update_my_schedule(world["owner"], update)

        assert result.code == "internal_error"
        assert week(db, world["provider"].id) == before

    def test_plain_staff_cannot_edit_hours(self, schedule_actions, world):
        update = ScheduleUpdate(days=[ScheduleDay(dayOfWeek=0)])
        result = schedule_actions.update_my_schedule(world["clinic_staff"], update)
        assert result.code == "unauthorized"

    def test_requester_cannot_read_schedule(self, schedule_actions, world):
        assert schedule_actions.get_my_schedule(world["parent"]).code == "unauthorized"

    def test_staff_reads_own_schedule(self, schedule_actions, world):
        result = schedule_actions.get_my_schedule(world["clinic_staff"])
        assert len(result.data) == 6
        assert result.data[5] == {
            "dayOfWeek": 5,
            "openTime": "09:00",
            "closeTime": "17:00",
            "isClosed": True,
        }

    @pytest.mark.parametrize(
        "day",
        [
            {"dayOfWeek": 7},
            {"dayOfWeek": 0, "openTime": "9:00"},
            {"dayOfWeek": 0, "openTime": "24:00"},
            {"dayOfWeek": 0, "openTime": "17:00", "closeTime": "09:00"},
            {"dayOfWeek": 0, "openTime": "09:00", "closeTime": "09:00"},
        ],
    )
    def test_invalid_rows_are_rejected(self, day):
        with pytest.raises(pydantic.ValidationError):
            ScheduleDay(**day)

    def test_closed_day_ignores_inverted_hours(self):
        assert ScheduleDay(dayOfWeek=0, openTime="17:00", closeTime="09:00", isClosed=True)

    def test_duplicate_weekdays_are_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            ScheduleUpdate(days=[ScheduleDay(dayOfWeek=1), ScheduleDay(dayOfWeek=1)])
