from datetime import datetime, timedelta

import pytest
from freezegun import freeze_time

from carebook.domain.bookings.rules import (
    add_months,
    can_cancel_booking,
    default_recurrence_end_date,
    generate_recurring_dates,
    generate_series_id,
    is_valid_booking_time,
)
from carebook.models import Recurrence

from .conftest import NOW


@freeze_time(NOW)
class TestIsValidBookingTime:
    def test_more_than_a_day_ahead_is_valid(self):
        assert is_valid_booking_time(NOW + timedelta(hours=24, seconds=1))
        assert is_valid_booking_time(NOW + timedelta(days=30))

    def test_exactly_24_hours_is_not_valid(self):
        assert not is_valid_booking_time(NOW + timedelta(hours=24))

    def test_within_a_day_or_past_is_not_valid(self):
        assert not is_valid_booking_time(NOW + timedelta(hours=23, minutes=59))
        assert not is_valid_booking_time(NOW)
        assert not is_valid_booking_time(NOW - timedelta(days=1))

    def test_reads_the_clock_at_call_time(self):
        target = NOW + timedelta(hours=25)
        assert is_valid_booking_time(target)
        with freeze_time(NOW + timedelta(hours=2)):
            assert not is_valid_booking_time(target)


@freeze_time(NOW)
class TestCanCancelBooking:
    def test_unscheduled_booking_can_always_be_cancelled(self):
        check = can_cancel_booking(None)
        assert check.can_cancel is True
        assert check.to_dict() == {"canCancel": True}

    def test_two_days_ahead_can_be_cancelled(self):
        assert can_cancel_booking(NOW + timedelta(hours=48)).to_dict() == {"canCancel": True}

    def test_exactly_24_hours_ahead_can_be_cancelled(self):
        assert can_cancel_booking(NOW + timedelta(hours=24)).can_cancel is True

    def test_twelve_hours_ahead_reports_hours_remaining(self):
        assert can_cancel_booking(NOW + timedelta(hours=12)).to_dict() == {
            "canCancel": False,
            "hoursRemaining": 12,
        }

    def test_hours_remaining_rounds_up(self):
        check = can_cancel_booking(NOW + timedelta(hours=23, minutes=30))
        assert check.can_cancel is False
        assert check.hours_remaining == 24

    def test_past_booking_reports_non_positive_hours(self):
        check = can_cancel_booking(NOW - timedelta(hours=3))
        assert check.can_cancel is False
        assert check.hours_remaining == -3


class TestRecurrence:
    def test_none_yields_only_the_start(self):
        start = datetime(2026, 3, 4, 10, 0)
        assert generate_recurring_dates(Recurrence.NONE, start, start) == [start]

    def test_weekly_until_end_date(self):
        start = datetime(2026, 3, 4, 10, 0)
        dates = generate_recurring_dates(Recurrence.WEEKLY, start, datetime(2026, 3, 25, 10, 0))
        assert dates == [start + timedelta(weeks=n) for n in range(4)]

    def test_biweekly(self):
        start = datetime(2026, 3, 4, 10, 0)
        dates = generate_recurring_dates(Recurrence.BIWEEKLY, start, datetime(2026, 4, 30))
        assert dates == [start + timedelta(weeks=2 * n) for n in range(5)]

    def test_monthly_clamps_to_month_end_without_drifting(self):
        start = datetime(2026, 1, 31, 9, 0)
        dates = generate_recurring_dates(Recurrence.MONTHLY, start, datetime(2026, 4, 30, 23, 59))
        assert [d.date().isoformat() for d in dates] == [
            "2026-01-31",
            "2026-02-28",
            "2026-03-31",
            "2026-04-30",
        ]

    def test_occurrences_are_capped(self):
        start = datetime(2026, 3, 4, 10, 0)
        dates = generate_recurring_dates(Recurrence.WEEKLY, start, datetime(2027, 3, 4))
        assert len(dates) == 12

    def test_unknown_pattern_is_rejected(self):
        with pytest.raises(ValueError):
            generate_recurring_dates("DAILY", NOW, NOW + timedelta(days=10))

    def test_default_end_date_is_three_months_out(self):
        assert default_recurrence_end_date(datetime(2026, 11, 30, 9, 0)) == datetime(
            2027, 2, 28, 9, 0
        )

    def test_add_months_across_year_boundary(self):
        assert add_months(datetime(2026, 12, 15), 1) == datetime(2027, 1, 15)

    def test_series_ids_are_unique(self):
        first, second = generate_series_id(), generate_series_id()
        assert first.startswith("series_")
        assert first != second
