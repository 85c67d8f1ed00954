"""Scheduling service - Weekly schedules and availability"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...config import AVAILABILITY_DAYS_AHEAD, AVAILABILITY_MAX_DAYS
from ...shared.errors import ValidationError
from ..bookings.repository import BookingRepository
from .availability import compute_availability, flatten_slots
from .repository import ScheduleRepository
from .schemas import ScheduleDayResponse, ScheduleUpdate

logger = logging.getLogger(__name__)


def serialize_schedule(rows) -> list[dict]:
    return [
        ScheduleDayResponse(
            dayOfWeek=row.day_of_week,
            openTime=row.open_time,
            closeTime=row.close_time,
            isClosed=row.is_closed,
        ).model_dump()
        for row in rows
    ]


class ScheduleService:
    """Service layer for schedule business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ScheduleRepository()

    def get_schedule(self, provider_id: int) -> list[dict]:
        return serialize_schedule(self.repo.get_schedule(self.db, provider_id))

    def update_schedule(self, provider_id: int, data: ScheduleUpdate) -> list[dict]:
        """Replace the given weekdays atomically"""
        logger.info(f"📅 Updating {len(data.days)} schedule rows for provider {provider_id}")
        rows = [
            {
                "day_of_week": day.dayOfWeek,
                "open_time": day.openTime,
                "close_time": day.closeTime,
                "is_closed": day.isClosed,
            }
            for day in data.days
        ]
        return serialize_schedule(self.repo.replace_schedule(self.db, provider_id, rows))

    def get_availability(
        self,
        provider_id: int,
        service_id: Optional[int] = None,
        start_date: Optional[date] = None,
        days: Optional[int] = None,
    ) -> dict:
        """
        Bookable slots for a provider over a window of days.

        Slot size is the service's duration when a service is given, the
        provider's default otherwise.
        """
        days = AVAILABILITY_DAYS_AHEAD if days is None else days
        if days < 1 or days > AVAILABILITY_MAX_DAYS:
            raise ValidationError(f"days must be between 1 and {AVAILABILITY_MAX_DAYS}")

        provider = self.repo.get_bookable_provider(self.db, provider_id)
        if not provider:
            raise ValidationError("Provider is not accepting bookings")

        slot_minutes = provider.default_slot_minutes
        if service_id is not None:
            service = self.repo.get_service(self.db, provider_id, service_id)
            if not service:
                raise ValidationError("Service not available for this provider")
            slot_minutes = service.duration_minutes

        now = datetime.now()
        start_date = start_date or now.date()
        window_start = datetime.combine(start_date, datetime.min.time())
        window_end = window_start + timedelta(days=days)

        schedules = self.repo.get_schedule(self.db, provider_id)
        bookings = BookingRepository.bookings_between(
            self.db, provider_id, window_start, window_end
        )

        per_day = compute_availability(schedules, bookings, start_date, days, slot_minutes, now)
        return {
            "providerId": provider_id,
            "slotMinutes": slot_minutes,
            "days": [day.to_dict() for day in per_day],
            "slots": [slot.isoformat() for slot in flatten_slots(per_day)],
        }
