"""
Availability calculator.

Derives bookable slot start times from a provider's weekly schedule minus
its existing bookings. Availability is computed at read time; nothing is
reserved, and booking creation re-checks overlap when it writes.

All datetimes are naive and interpreted in the server's canonical timezone.
Provider-local timezones are not converted.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Protocol

from ...config import DEFAULT_SLOT_MINUTES
from ...models import BookingStatus
from ...shared.validators import parse_time_string

DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


class ScheduleRow(Protocol):
    day_of_week: int
    open_time: str
    close_time: str
    is_closed: bool


class BookingRow(Protocol):
    scheduled_at: Optional[datetime]
    duration_minutes: Optional[int]
    status: str


@dataclass
class DayAvailability:
    date: date
    day_of_week: int
    day_name: str
    is_open: bool
    slots: list[datetime] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "dayOfWeek": self.day_of_week,
            "dayName": self.day_name,
            "isOpen": self.is_open,
            "slots": [slot.isoformat() for slot in self.slots],
        }


def _busy_intervals(bookings: Iterable[BookingRow]) -> list[tuple[datetime, datetime]]:
    intervals = []
    for booking in bookings:
        if booking.scheduled_at is None or booking.status == BookingStatus.CANCELLED:
            continue
        length = timedelta(minutes=booking.duration_minutes or DEFAULT_SLOT_MINUTES)
        intervals.append((booking.scheduled_at, booking.scheduled_at + length))
    return intervals


def overlaps(start: datetime, end: datetime, intervals: Iterable[tuple[datetime, datetime]]) -> bool:
    return any(start < busy_end and end > busy_start for busy_start, busy_end in intervals)


def day_window(day: date, schedule: Optional[ScheduleRow]) -> Optional[tuple[datetime, datetime]]:
    """Opening and closing datetimes for a day, or None when closed"""
    if schedule is None or schedule.is_closed:
        return None

    opens = datetime.combine(day, parse_time_string(schedule.open_time))
    closes = datetime.combine(day, parse_time_string(schedule.close_time))
    if closes <= opens:
        return None
    return opens, closes


def is_within_operating_hours(
    start: datetime, duration_minutes: int, schedules: Iterable[ScheduleRow]
) -> bool:
    """True when [start, start + duration) fits inside that weekday's open hours"""
    by_day = {row.day_of_week: row for row in schedules}
    window = day_window(start.date(), by_day.get(start.weekday()))
    if window is None:
        return False

    opens, closes = window
    return opens <= start and start + timedelta(minutes=duration_minutes) <= closes


def compute_availability(
    schedules: Iterable[ScheduleRow],
    bookings: Iterable[BookingRow],
    start_date: date,
    days: int,
    slot_minutes: int,
    now: datetime,
) -> list[DayAvailability]:
    """
    Enumerate open slots day by day.

    A weekday without a schedule row is closed. Slots must end by closing
    time, must not overlap any non-cancelled booking, and must not start
    before `now`.
    """
    if slot_minutes <= 0:
        raise ValueError("slot_minutes must be positive")

    by_day = {row.day_of_week: row for row in schedules}
    busy = _busy_intervals(bookings)
    step = timedelta(minutes=slot_minutes)

    result = []
    for offset in range(days):
        day = start_date + timedelta(days=offset)
        weekday = day.weekday()
        window = day_window(day, by_day.get(weekday))

        availability = DayAvailability(
            date=day,
            day_of_week=weekday,
            day_name=DAY_NAMES[weekday],
            is_open=window is not None,
        )

        if window is not None:
            opens, closes = window
            slot_start = opens
            while slot_start + step <= closes:
                slot_end = slot_start + step
                if slot_start >= now and not overlaps(slot_start, slot_end, busy):
                    availability.slots.append(slot_start)
                slot_start = slot_end

        result.append(availability)

    return result


def flatten_slots(days: Iterable[DayAvailability]) -> list[datetime]:
    """Ordered slot start times across all days"""
    return [slot for day in days for slot in day.slots]
