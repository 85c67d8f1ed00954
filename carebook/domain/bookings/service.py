"""Booking service - Business logic for the booking lifecycle

Methods raise BookingError subclasses; the action layer turns them into
results. Staff methods take the already-resolved provider id, requester
methods the requester's user id, and every read and write is scoped by it.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...config import BOOKING_MIN_HOURS_AHEAD, CANCELLATION_HOURS_AHEAD
from ...models import Booking, BookingStatus, BookingType, Dependent, Recurrence, User
from ...shared.errors import Conflict, NotFoundOrAlreadyProcessed, ValidationError
from ..scheduling.availability import is_within_operating_hours
from ..scheduling.repository import ScheduleRepository
from .repository import BookingRepository
from .rules import (
    can_cancel_booking,
    default_recurrence_end_date,
    generate_recurring_dates,
    generate_series_id,
    is_valid_booking_time,
)
from .schemas import BookingCreate

logger = logging.getLogger(__name__)

DEFAULT_DECLINE_REASON = "Declined by provider"
DEFAULT_CANCEL_REASON = "Cancelled by requester"
DEFAULT_SERIES_CANCEL_REASON = "Series cancelled"

REQUESTER_VIEWS = ("upcoming", "past")
PROVIDER_VIEWS = ("pending", "confirmed", "past")


class BookingService:
    """Service layer for booking business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()
        self.schedules = ScheduleRepository()

    # ========================================================================
    # REQUESTER OPERATIONS
    # ========================================================================

    def create_booking(self, requester: User, data: BookingCreate) -> list[Booking]:
        """
        Create a booking, or every occurrence of a recurring series.

        Each occurrence must be more than the minimum lead time ahead, inside
        the provider's operating hours (tours excepted) and free of overlap. A
        series is inserted in one transaction so it either exists whole or not
        at all.
        """
        logger.info(f"📥 Creating booking for requester {requester.id} at provider {data.providerId}")

        provider = self.schedules.get_bookable_provider(self.db, data.providerId)
        if not provider:
            raise ValidationError("Provider is not accepting bookings")

        if data.dependentId is not None:
            dependent = (
                self.db.query(Dependent)
                .filter(Dependent.id == data.dependentId, Dependent.requester_id == requester.id)
                .first()
            )
            if not dependent:
                raise ValidationError("Dependent not found")

        duration = provider.default_slot_minutes
        is_remote = False
        if data.serviceId is not None:
            service = self.schedules.get_service(self.db, provider.id, data.serviceId)
            if not service:
                raise ValidationError("Service not available for this provider")
            duration = service.duration_minutes
            is_remote = service.is_remote

        series_id = None
        recurrence_end = None
        if data.scheduledAt is None:
            occurrences = [None]
        else:
            if data.recurrence == Recurrence.NONE:
                occurrences = [data.scheduledAt]
            else:
                recurrence_end = data.recurrenceEndDate or default_recurrence_end_date(
                    data.scheduledAt
                )
                occurrences = generate_recurring_dates(
                    data.recurrence, data.scheduledAt, recurrence_end
                )
                series_id = generate_series_id()

            schedule = self.schedules.get_schedule(self.db, provider.id)
            for scheduled_at in occurrences:
                self._validate_slot(
                    provider.id, scheduled_at, duration, schedule, data.bookingType
                )

        rows = [
            {
                "provider_id": provider.id,
                "requester_id": requester.id,
                "dependent_id": data.dependentId,
                "service_id": data.serviceId,
                "booking_type": data.bookingType,
                "is_remote": is_remote,
                "scheduled_at": scheduled_at,
                "duration_minutes": duration,
                "notes": data.notes,
                "status": BookingStatus.PENDING,
                "recurrence": data.recurrence,
                "series_id": series_id,
                "recurrence_end_date": recurrence_end,
            }
            for scheduled_at in occurrences
        ]

        bookings = self.repo.create_bookings(self.db, rows)
        logger.info(
            f"✅ Created {len(bookings)} booking(s) for requester {requester.id}"
            + (f" in series {series_id}" if series_id else "")
        )
        return bookings

    def reschedule_booking(self, requester_id: int, booking_id: int, new_time: datetime) -> Booking:
        """Move an active booking. It returns to PENDING for the provider to re-confirm."""
        booking = self.repo.get_active_booking(self.db, booking_id, requester_id=requester_id)
        if not booking:
            raise NotFoundOrAlreadyProcessed()

        schedule = self.schedules.get_schedule(self.db, booking.provider_id)
        self._validate_slot(
            booking.provider_id,
            new_time,
            booking.duration_minutes,
            schedule,
            booking.booking_type,
            exclude_id=booking.id,
        )

        previous = booking.scheduled_at.isoformat() if booking.scheduled_at else "unscheduled"
        note = f"Rescheduled from {previous}"
        notes = f"{booking.notes}\n{note}" if booking.notes else note

        updated = self.repo.transition(
            self.db,
            booking.id,
            from_statuses=BookingStatus.ACTIVE,
            values={
                "scheduled_at": new_time,
                "status": BookingStatus.PENDING,
                "confirmed_at": None,
                "reminder_sent_at": None,
                "notes": notes,
            },
            requester_id=requester_id,
        )
        if not updated:
            raise NotFoundOrAlreadyProcessed()

        logger.info(f"🔄 Booking {booking.id} rescheduled to {new_time.isoformat()}")
        return self._reload(booking.id, requester_id=requester_id)

    def cancel_booking(
        self, requester_id: int, booking_id: int, reason: Optional[str] = None
    ) -> Booking:
        """Requester cancellation, allowed up to the cancellation cutoff"""
        booking = self.repo.get_active_booking(self.db, booking_id, requester_id=requester_id)
        if not booking:
            raise NotFoundOrAlreadyProcessed()

        check = can_cancel_booking(booking.scheduled_at)
        if not check.can_cancel:
            raise ValidationError(
                f"Bookings can only be cancelled {CANCELLATION_HOURS_AHEAD} hours in advance "
                f"({check.hours_remaining} hours remaining)"
            )

        self._apply(
            booking.id,
            BookingStatus.ACTIVE,
            {
                "status": BookingStatus.CANCELLED,
                "cancelled_at": datetime.now(),
                "cancel_reason": reason or DEFAULT_CANCEL_REASON,
            },
            requester_id=requester_id,
            # The cutoff was checked against this scheduled time
            extra_filters=(Booking.scheduled_at == booking.scheduled_at,),
        )
        return self._reload(booking.id, requester_id=requester_id)

    def cancel_series_as_requester(
        self, requester_id: int, series_id: str, reason: Optional[str] = None
    ) -> list[Booking]:
        """
        Cancel every future active booking of the requester's series.

        All-or-nothing: when any member is already inside the cancellation
        cutoff, nothing is cancelled.
        """
        now = datetime.now()
        members = [
            b
            for b in self.repo.list_series(
                self.db, series_id, requester_id=requester_id, statuses=BookingStatus.ACTIVE
            )
            if b.scheduled_at is None or b.scheduled_at > now
        ]
        if not members:
            raise NotFoundOrAlreadyProcessed("No upcoming bookings found in this series")

        blocked = [b for b in members if not can_cancel_booking(b.scheduled_at).can_cancel]
        if blocked:
            raise ValidationError(
                f"Some bookings in this series are within {CANCELLATION_HOURS_AHEAD} hours "
                "and cannot be cancelled"
            )

        cancelled = self._cancel_members(
            members, reason or DEFAULT_SERIES_CANCEL_REASON, requester_id=requester_id
        )
        logger.info(f"✅ Requester {requester_id} cancelled {len(cancelled)} bookings in {series_id}")
        return cancelled

    def list_requester_bookings(self, requester_id: int, view: str = "upcoming") -> list[Booking]:
        if view not in REQUESTER_VIEWS:
            raise ValidationError(f"Unknown view: {view}")
        return self.repo.list_for_requester(self.db, requester_id, view, datetime.now())

    def get_booking_for_requester(self, requester_id: int, booking_id: int) -> Booking:
        booking = self.repo.get_booking(self.db, booking_id, requester_id=requester_id)
        if not booking:
            raise NotFoundOrAlreadyProcessed("Booking not found")
        return booking

    # ========================================================================
    # PROVIDER STAFF OPERATIONS
    # ========================================================================

    def confirm_booking(self, provider_id: int, booking_id: int) -> Booking:
        self._apply(
            booking_id,
            (BookingStatus.PENDING,),
            {"status": BookingStatus.CONFIRMED, "confirmed_at": datetime.now()},
            provider_id=provider_id,
        )
        logger.info(f"✅ Booking {booking_id} confirmed by provider {provider_id}")
        return self._reload(booking_id, provider_id=provider_id)

    def decline_booking(
        self, provider_id: int, booking_id: int, reason: Optional[str] = None
    ) -> Booking:
        self._apply(
            booking_id,
            BookingStatus.ACTIVE,
            {
                "status": BookingStatus.CANCELLED,
                "cancelled_at": datetime.now(),
                "cancel_reason": reason or DEFAULT_DECLINE_REASON,
            },
            provider_id=provider_id,
        )
        logger.info(f"🚫 Booking {booking_id} declined by provider {provider_id}")
        return self._reload(booking_id, provider_id=provider_id)

    def complete_booking(self, provider_id: int, booking_id: int) -> Booking:
        self._apply(
            booking_id,
            (BookingStatus.CONFIRMED,),
            {"status": BookingStatus.COMPLETED},
            provider_id=provider_id,
        )
        return self._reload(booking_id, provider_id=provider_id)

    def mark_no_show(self, provider_id: int, booking_id: int) -> Booking:
        self._apply(
            booking_id,
            (BookingStatus.CONFIRMED,),
            {"status": BookingStatus.NO_SHOW},
            provider_id=provider_id,
        )
        return self._reload(booking_id, provider_id=provider_id)

    def attach_meeting_link(self, provider_id: int, booking_id: int, meeting_url: str) -> Booking:
        """Telehealth link for a remote booking that is still active"""
        self._apply(
            booking_id,
            BookingStatus.ACTIVE,
            {"meeting_url": meeting_url},
            provider_id=provider_id,
            extra_filters=(Booking.is_remote.is_(True),),
        )
        return self._reload(booking_id, provider_id=provider_id)

    def cancel_series(
        self, provider_id: int, series_id: str, reason: Optional[str] = None
    ) -> list[Booking]:
        """
        Cancel every non-terminal booking of the provider's series.

        Members that became terminal since they were listed are skipped,
        not treated as failures.
        """
        members = self.repo.list_series(
            self.db, series_id, provider_id=provider_id, statuses=BookingStatus.ACTIVE
        )
        if not members:
            raise NotFoundOrAlreadyProcessed("No active bookings found in this series")

        cancelled = self._cancel_members(
            members, reason or DEFAULT_SERIES_CANCEL_REASON, provider_id=provider_id
        )
        logger.info(f"✅ Provider {provider_id} cancelled {len(cancelled)} bookings in {series_id}")
        return cancelled

    def list_provider_bookings(self, provider_id: int, view: str = "pending") -> list[Booking]:
        if view not in PROVIDER_VIEWS:
            raise ValidationError(f"Unknown view: {view}")
        return self.repo.list_for_provider(self.db, provider_id, view, datetime.now())

    def get_provider_stats(self, provider_id: int) -> dict:
        return self.repo.provider_stats(self.db, provider_id, datetime.now())

    def get_series(
        self, series_id: str, provider_id: Optional[int] = None, requester_id: Optional[int] = None
    ) -> list[Booking]:
        members = self.repo.list_series(
            self.db, series_id, provider_id=provider_id, requester_id=requester_id
        )
        if not members:
            raise NotFoundOrAlreadyProcessed("Series not found")
        return members

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _validate_slot(
        self,
        provider_id: int,
        scheduled_at: datetime,
        duration: int,
        schedule,
        booking_type: str,
        exclude_id: Optional[int] = None,
    ) -> None:
        if not is_valid_booking_time(scheduled_at):
            raise ValidationError(
                f"Bookings must be made at least {BOOKING_MIN_HOURS_AHEAD} hours in advance"
            )
        # Tours are arranged outside regular hours
        if booking_type not in BookingType.SCHEDULE_LESS and not is_within_operating_hours(
            scheduled_at, duration, schedule
        ):
            raise ValidationError("Requested time is outside the provider's operating hours")
        if self.repo.has_conflict(self.db, provider_id, scheduled_at, duration, exclude_id):
            raise Conflict()

    def _apply(self, booking_id: int, from_statuses, values: dict, **scope) -> None:
        if not self.repo.transition(self.db, booking_id, from_statuses, values, **scope):
            raise NotFoundOrAlreadyProcessed()

    def _cancel_members(self, members: list[Booking], reason: str, **scope) -> list[Booking]:
        cancelled = []
        for member in members:
            applied = self.repo.transition(
                self.db,
                member.id,
                BookingStatus.ACTIVE,
                {
                    "status": BookingStatus.CANCELLED,
                    "cancelled_at": datetime.now(),
                    "cancel_reason": reason,
                },
                **scope,
            )
            if applied:
                cancelled.append(member)
            else:
                logger.info(f"⏭️ Skipping booking {member.id}: already processed")
        for member in cancelled:
            self.db.refresh(member)
        return cancelled

    def _reload(self, booking_id: int, **scope) -> Booking:
        booking = self.repo.get_booking(self.db, booking_id, **scope)
        if booking is None:
            raise NotFoundOrAlreadyProcessed()
        self.db.refresh(booking)
        return booking
