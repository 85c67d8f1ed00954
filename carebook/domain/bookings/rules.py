"""
Booking eligibility rules and recurrence helpers.

Pure functions only: no database, cache or network access. The clock is read
at call time so callers and tests always compare against the live "now".
"""

import calendar
import math
import secrets
import string
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ...config import (
    BOOKING_MIN_HOURS_AHEAD,
    CANCELLATION_HOURS_AHEAD,
    MAX_RECURRING_OCCURRENCES,
)
from ...models import Recurrence

RECURRENCE_LABELS = {
    Recurrence.NONE: "One-time",
    Recurrence.WEEKLY: "Weekly",
    Recurrence.BIWEEKLY: "Every 2 weeks",
    Recurrence.MONTHLY: "Monthly",
}


@dataclass(frozen=True)
class CancellationCheck:
    can_cancel: bool
    hours_remaining: Optional[int] = None

    def to_dict(self) -> dict:
        result = {"canCancel": self.can_cancel}
        if self.hours_remaining is not None:
            result["hoursRemaining"] = self.hours_remaining
        return result


def is_valid_booking_time(scheduled_at: datetime) -> bool:
    """True when scheduled_at is strictly more than the minimum lead time ahead"""
    min_time = datetime.now() + timedelta(hours=BOOKING_MIN_HOURS_AHEAD)
    return scheduled_at > min_time


def can_cancel_booking(scheduled_at: Optional[datetime]) -> CancellationCheck:
    """
    Apply the cancellation cutoff policy.

    Unscheduled bookings can always be cancelled. Otherwise the booking must
    be at least CANCELLATION_HOURS_AHEAD away; when it is not, the rounded-up
    hours left (zero or negative once it has started) are reported.
    """
    if scheduled_at is None:
        return CancellationCheck(can_cancel=True)

    hours_until = (scheduled_at - datetime.now()).total_seconds() / 3600

    if hours_until < CANCELLATION_HOURS_AHEAD:
        return CancellationCheck(can_cancel=False, hours_remaining=math.ceil(hours_until))

    return CancellationCheck(can_cancel=True)


def add_months(value: datetime, months: int) -> datetime:
    """Same day-of-month `months` later, clamped to the last day of short months"""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def default_recurrence_end_date(start: datetime) -> datetime:
    """Recurring series default to three months"""
    return add_months(start, 3)


def generate_recurring_dates(pattern: str, start: datetime, end: datetime) -> list[datetime]:
    """
    Expand a recurrence pattern into booking start times, first one included.
    Capped at MAX_RECURRING_OCCURRENCES.
    """
    if pattern == Recurrence.NONE:
        return [start]

    if pattern not in Recurrence.ALL:
        raise ValueError(f"Unknown recurrence pattern: {pattern}")

    dates = []
    occurrence = 0
    current = start
    while current <= end and len(dates) < MAX_RECURRING_OCCURRENCES:
        dates.append(current)
        occurrence += 1
        if pattern == Recurrence.WEEKLY:
            current = start + timedelta(weeks=occurrence)
        elif pattern == Recurrence.BIWEEKLY:
            current = start + timedelta(weeks=2 * occurrence)
        else:
            # Offset from the start so a 31st doesn't drift to the 28th forever
            current = add_months(start, occurrence)

    return dates


def generate_series_id() -> str:
    """Identifier shared by every booking of a recurring series"""
    suffix = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(7))
    return f"series_{int(time.time() * 1000)}_{suffix}"


def recurrence_label(pattern: str) -> str:
    return RECURRENCE_LABELS.get(pattern, RECURRENCE_LABELS[Recurrence.NONE])
