"""Booking repository - Database operations for bookings

Every query is scoped to a provider or a requester. State transitions are a
single UPDATE guarded by id, scope and current status, so two concurrent
attempts cannot both apply.
"""

from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from ...config import DEFAULT_SLOT_MINUTES
from ...models import Booking, BookingStatus

# Longest booking considered when looking back for overlaps
MAX_BOOKING_MINUTES = 24 * 60


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def _scoped(
        db: Session, provider_id: Optional[int] = None, requester_id: Optional[int] = None
    ):
        if provider_id is None and requester_id is None:
            raise ValueError("Booking queries must be scoped to a provider or a requester")

        query = db.query(Booking)
        if provider_id is not None:
            query = query.filter(Booking.provider_id == provider_id)
        if requester_id is not None:
            query = query.filter(Booking.requester_id == requester_id)
        return query

    @staticmethod
    def get_booking(
        db: Session,
        booking_id: int,
        provider_id: Optional[int] = None,
        requester_id: Optional[int] = None,
    ) -> Optional[Booking]:
        return (
            BookingRepository._scoped(db, provider_id, requester_id)
            .filter(Booking.id == booking_id)
            .first()
        )

    @staticmethod
    def get_active_booking(
        db: Session,
        booking_id: int,
        provider_id: Optional[int] = None,
        requester_id: Optional[int] = None,
    ) -> Optional[Booking]:
        """Booking that is still PENDING or CONFIRMED"""
        return (
            BookingRepository._scoped(db, provider_id, requester_id)
            .filter(Booking.id == booking_id, Booking.status.in_(BookingStatus.ACTIVE))
            .first()
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    def create_bookings(db: Session, rows: list[dict]) -> list[Booking]:
        """Insert one booking or a whole series in a single transaction"""
        bookings = [Booking(**row) for row in rows]
        try:
            db.add_all(bookings)
            db.commit()
        except Exception:
            db.rollback()
            raise

        for booking in bookings:
            db.refresh(booking)
        return bookings

    @staticmethod
    def transition(
        db: Session,
        booking_id: int,
        from_statuses: Iterable[str],
        values: dict[str, Any],
        provider_id: Optional[int] = None,
        requester_id: Optional[int] = None,
        extra_filters: Iterable[Any] = (),
    ) -> bool:
        """
        Apply `values` iff the booking is in scope and in one of `from_statuses`.

        The status check is part of the UPDATE itself. Returns False when no
        row matched (missing, out of scope, or already processed).
        """
        query = BookingRepository._scoped(db, provider_id, requester_id).filter(
            Booking.id == booking_id,
            Booking.status.in_(tuple(from_statuses)),
            *extra_filters,
        )
        try:
            updated = query.update(values, synchronize_session=False)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return updated == 1

    @staticmethod
    def mark_reminder_sent(db: Session, booking_id: int, sent_at: datetime) -> bool:
        updated = (
            db.query(Booking)
            .filter(
                Booking.id == booking_id,
                Booking.status == BookingStatus.CONFIRMED,
                Booking.reminder_sent_at.is_(None),
            )
            .update({"reminder_sent_at": sent_at}, synchronize_session=False)
        )
        db.commit()
        return updated == 1

    @staticmethod
    def release_reminder(db: Session, booking_id: int, sent_at: datetime) -> bool:
        """Undo a reminder claim whose email was never delivered"""
        updated = (
            db.query(Booking)
            .filter(Booking.id == booking_id, Booking.reminder_sent_at == sent_at)
            .update({"reminder_sent_at": None}, synchronize_session=False)
        )
        db.commit()
        return updated == 1

    @staticmethod
    def complete_if_confirmed(db: Session, booking_id: int) -> bool:
        """System transition used by the auto-completion job"""
        updated = (
            db.query(Booking)
            .filter(Booking.id == booking_id, Booking.status == BookingStatus.CONFIRMED)
            .update({"status": BookingStatus.COMPLETED}, synchronize_session=False)
        )
        db.commit()
        return updated == 1

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def list_for_requester(db: Session, requester_id: int, view: str, now: datetime) -> list[Booking]:
        query = BookingRepository._scoped(db, requester_id=requester_id)

        if view == "upcoming":
            query = query.filter(
                Booking.status.in_(BookingStatus.ACTIVE),
                or_(Booking.scheduled_at >= now, Booking.scheduled_at.is_(None)),
            ).order_by(Booking.scheduled_at.asc(), Booking.created_at.desc())
        else:
            query = query.filter(
                or_(Booking.scheduled_at < now, Booking.status.in_(BookingStatus.TERMINAL))
            ).order_by(Booking.scheduled_at.desc(), Booking.created_at.desc())

        return query.all()

    @staticmethod
    def list_for_provider(db: Session, provider_id: int, view: str, now: datetime) -> list[Booking]:
        query = BookingRepository._scoped(db, provider_id=provider_id)

        if view == "pending":
            query = query.filter(Booking.status == BookingStatus.PENDING).order_by(
                Booking.scheduled_at.asc(), Booking.created_at.desc()
            )
        elif view == "confirmed":
            query = query.filter(
                Booking.status == BookingStatus.CONFIRMED, Booking.scheduled_at >= now
            ).order_by(Booking.scheduled_at.asc(), Booking.created_at.desc())
        else:
            query = query.filter(
                or_(
                    Booking.status.in_(BookingStatus.TERMINAL),
                    and_(Booking.status == BookingStatus.CONFIRMED, Booking.scheduled_at < now),
                )
            ).order_by(Booking.scheduled_at.desc(), Booking.created_at.desc())

        return query.all()

    @staticmethod
    def provider_stats(db: Session, provider_id: int, now: datetime) -> dict:
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        end_of_day = start_of_day + timedelta(days=1)

        def count(*filters) -> int:
            return (
                db.query(func.count(Booking.id))
                .filter(Booking.provider_id == provider_id, *filters)
                .scalar()
            )

        return {
            "pending": count(Booking.status == BookingStatus.PENDING),
            "confirmed": count(
                Booking.status == BookingStatus.CONFIRMED, Booking.scheduled_at >= now
            ),
            "today": count(
                Booking.status == BookingStatus.CONFIRMED,
                Booking.scheduled_at >= start_of_day,
                Booking.scheduled_at < end_of_day,
            ),
        }

    @staticmethod
    def list_series(
        db: Session,
        series_id: str,
        provider_id: Optional[int] = None,
        requester_id: Optional[int] = None,
        statuses: Optional[Iterable[str]] = None,
    ) -> list[Booking]:
        query = BookingRepository._scoped(db, provider_id, requester_id).filter(
            Booking.series_id == series_id
        )
        if statuses is not None:
            query = query.filter(Booking.status.in_(tuple(statuses)))
        return query.order_by(Booking.scheduled_at.asc()).all()

    @staticmethod
    def bookings_between(
        db: Session, provider_id: int, start: datetime, end: datetime
    ) -> list[Booking]:
        """Non-cancelled bookings of a provider that may overlap [start, end)"""
        return (
            BookingRepository._scoped(db, provider_id=provider_id)
            .filter(
                Booking.status != BookingStatus.CANCELLED,
                Booking.scheduled_at.isnot(None),
                Booking.scheduled_at >= start - timedelta(minutes=MAX_BOOKING_MINUTES),
                Booking.scheduled_at < end,
            )
            .all()
        )

    @staticmethod
    def has_conflict(
        db: Session,
        provider_id: int,
        start: datetime,
        duration_minutes: int,
        exclude_booking_id: Optional[int] = None,
    ) -> bool:
        """Whether [start, start + duration) overlaps an active booking of the provider"""
        end = start + timedelta(minutes=duration_minutes)
        for booking in BookingRepository.bookings_between(db, provider_id, start, end):
            if booking.id == exclude_booking_id:
                continue
            if booking.status not in BookingStatus.ACTIVE:
                continue
            length = booking.duration_minutes or DEFAULT_SLOT_MINUTES
            booking_end = booking.scheduled_at + timedelta(minutes=length)
            if start < booking_end and end > booking.scheduled_at:
                return True
        return False

    @staticmethod
    def due_reminders(db: Session, now: datetime, horizon: timedelta) -> list[Booking]:
        """Confirmed bookings starting within `horizon` that have not been reminded"""
        return (
            db.query(Booking)
            .filter(
                Booking.status == BookingStatus.CONFIRMED,
                Booking.reminder_sent_at.is_(None),
                Booking.scheduled_at > now,
                Booking.scheduled_at <= now + horizon,
            )
            .all()
        )

    @staticmethod
    def overdue_confirmed(db: Session, cutoff: datetime) -> list[Booking]:
        """Confirmed bookings that ended before `cutoff`"""
        candidates = (
            db.query(Booking)
            .filter(Booking.status == BookingStatus.CONFIRMED, Booking.scheduled_at <= cutoff)
            .all()
        )
        return [
            b
            for b in candidates
            if b.scheduled_at + timedelta(minutes=b.duration_minutes or DEFAULT_SLOT_MINUTES)
            <= cutoff
        ]
