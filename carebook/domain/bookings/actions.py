"""
Booking actions - authorization-checked entry points, one per actor role.

Each action resolves the actor, runs the operation and returns an
ActionResult; nothing is raised to the caller. After a successful mutation
the affected cached views are dropped and a notification is dispatched.
Neither side effect can fail the action.
"""

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...auth import require_requester, resolve_staff_provider_id
from ...cache import (
    Cache,
    invalidate_booking_views,
    provider_bookings_key,
    provider_stats_key,
    requester_bookings_key,
)
from ...config import BOOKING_LIST_CACHE_TTL, BOOKING_STATS_CACHE_TTL
from ...models import Booking, User
from ...services.notification_service import BookingEvent, NotificationDispatcher
from ...shared.results import ActionResult, handle_action_error, success_result
from .rules import can_cancel_booking
from .schemas import BookingCreate, serialize_booking, serialize_bookings
from .service import BookingService

logger = logging.getLogger(__name__)


class BookingActions:
    def __init__(
        self, db: Session, cache_backend: Cache, notifier: Optional[NotificationDispatcher] = None
    ):
        self.db = db
        self.cache = cache_backend
        self.notifier = notifier or NotificationDispatcher()
        self.service = BookingService(db)

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    def _after_mutation(self, event: str, bookings: list[Booking]) -> None:
        """Invalidate views and notify. Failures are logged only."""
        for provider_id, requester_id in {(b.provider_id, b.requester_id) for b in bookings}:
            try:
                invalidate_booking_views(self.cache, provider_id, requester_id)
            except Exception as e:
                logger.warning(f"⚠️ Cache invalidation failed for provider {provider_id}: {e}")

        try:
            self.notifier.dispatch(event, [b.id for b in bookings])
        except Exception as e:
            logger.error(f"❌ Failed to dispatch {event} notification: {e}")

    def _mutate(self, context: str, event: str, operation: Callable[[], object]) -> ActionResult:
        try:
            outcome = operation()
        except Exception as e:
            return handle_action_error(e, context)

        bookings = outcome if isinstance(outcome, list) else [outcome]
        self._after_mutation(event, bookings)

        if isinstance(outcome, list):
            return success_result(serialize_bookings(outcome))
        return success_result(serialize_booking(outcome))

    # ------------------------------------------------------------------
    # Requester actions
    # ------------------------------------------------------------------

    def create_booking(self, user: Optional[User], data: BookingCreate) -> ActionResult:
        def operation():
            requester = require_requester(user)
            return self.service.create_booking(requester, data)

        return self._mutate("create_booking", BookingEvent.CREATED, operation)

    def reschedule_booking(self, user: Optional[User], booking_id: int, new_time) -> ActionResult:
        def operation():
            requester = require_requester(user)
            return self.service.reschedule_booking(requester.id, booking_id, new_time)

        return self._mutate("reschedule_booking", BookingEvent.RESCHEDULED, operation)

    def cancel_booking(
        self, user: Optional[User], booking_id: int, reason: Optional[str] = None
    ) -> ActionResult:
        def operation():
            requester = require_requester(user)
            return self.service.cancel_booking(requester.id, booking_id, reason)

        return self._mutate("cancel_booking", BookingEvent.CANCELLED, operation)

    def cancel_my_series(
        self, user: Optional[User], series_id: str, reason: Optional[str] = None
    ) -> ActionResult:
        def operation():
            requester = require_requester(user)
            return self.service.cancel_series_as_requester(requester.id, series_id, reason)

        result = self._mutate("cancel_my_series", BookingEvent.SERIES_CANCELLED, operation)
        if result.success:
            result.data = {"cancelledCount": len(result.data), "bookings": result.data}
        return result

    def get_my_bookings(self, user: Optional[User], view: str = "upcoming") -> ActionResult:
        try:
            requester = require_requester(user)
            data = self.cache.get_or_compute(
                requester_bookings_key(requester.id, view),
                lambda: serialize_bookings(self.service.list_requester_bookings(requester.id, view)),
                ttl=BOOKING_LIST_CACHE_TTL,
            )
            return success_result(data)
        except Exception as e:
            return handle_action_error(e, "get_my_bookings")

    def get_my_booking(self, user: Optional[User], booking_id: int) -> ActionResult:
        """Single booking with its current cancellation eligibility"""
        try:
            requester = require_requester(user)
            booking = self.service.get_booking_for_requester(requester.id, booking_id)
            data = serialize_booking(booking)
            data["cancellation"] = can_cancel_booking(booking.scheduled_at).to_dict()
            return success_result(data)
        except Exception as e:
            return handle_action_error(e, "get_my_booking")

    def get_my_series(self, user: Optional[User], series_id: str) -> ActionResult:
        try:
            requester = require_requester(user)
            return success_result(
                serialize_bookings(self.service.get_series(series_id, requester_id=requester.id))
            )
        except Exception as e:
            return handle_action_error(e, "get_my_series")

    # ------------------------------------------------------------------
    # Provider staff actions
    # ------------------------------------------------------------------

    def confirm_booking(self, user: Optional[User], booking_id: int) -> ActionResult:
        def operation():
            provider_id = resolve_staff_provider_id(self.db, user)
            return self.service.confirm_booking(provider_id, booking_id)

        return self._mutate("confirm_booking", BookingEvent.CONFIRMED, operation)

    def decline_booking(
        self, user: Optional[User], booking_id: int, reason: Optional[str] = None
    ) -> ActionResult:
        def operation():
            provider_id = resolve_staff_provider_id(self.db, user)
            return self.service.decline_booking(provider_id, booking_id, reason)

        return self._mutate("decline_booking", BookingEvent.DECLINED, operation)

    def complete_booking(self, user: Optional[User], booking_id: int) -> ActionResult:
        def operation():
            provider_id = resolve_staff_provider_id(self.db, user)
            return self.service.complete_booking(provider_id, booking_id)

        return self._mutate("complete_booking", BookingEvent.COMPLETED, operation)

    def mark_no_show(self, user: Optional[User], booking_id: int) -> ActionResult:
        def operation():
            provider_id = resolve_staff_provider_id(self.db, user)
            return self.service.mark_no_show(provider_id, booking_id)

        return self._mutate("mark_no_show", BookingEvent.NO_SHOW, operation)

    def attach_meeting_link(
        self, user: Optional[User], booking_id: int, meeting_url: str
    ) -> ActionResult:
        def operation():
            provider_id = resolve_staff_provider_id(self.db, user)
            return self.service.attach_meeting_link(provider_id, booking_id, meeting_url)

        return self._mutate("attach_meeting_link", BookingEvent.MEETING_LINK, operation)

    def cancel_series(
        self, user: Optional[User], series_id: str, reason: Optional[str] = None
    ) -> ActionResult:
        def operation():
            provider_id = resolve_staff_provider_id(self.db, user)
            return self.service.cancel_series(provider_id, series_id, reason)

        result = self._mutate("cancel_series", BookingEvent.DECLINED, operation)
        if result.success:
            result.data = {"cancelledCount": len(result.data), "bookings": result.data}
        return result

    def get_provider_bookings(self, user: Optional[User], view: str = "pending") -> ActionResult:
        try:
            provider_id = resolve_staff_provider_id(self.db, user)
            data = self.cache.get_or_compute(
                provider_bookings_key(provider_id, view),
                lambda: serialize_bookings(self.service.list_provider_bookings(provider_id, view)),
                ttl=BOOKING_LIST_CACHE_TTL,
            )
            return success_result(data)
        except Exception as e:
            return handle_action_error(e, "get_provider_bookings")

    def get_provider_stats(self, user: Optional[User]) -> ActionResult:
        try:
            provider_id = resolve_staff_provider_id(self.db, user)
            data = self.cache.get_or_compute(
                provider_stats_key(provider_id),
                lambda: self.service.get_provider_stats(provider_id),
                ttl=BOOKING_STATS_CACHE_TTL,
            )
            return success_result(data)
        except Exception as e:
            return handle_action_error(e, "get_provider_stats")

    def get_provider_series(self, user: Optional[User], series_id: str) -> ActionResult:
        try:
            provider_id = resolve_staff_provider_id(self.db, user)
            return success_result(
                serialize_bookings(self.service.get_series(series_id, provider_id=provider_id))
            )
        except Exception as e:
            return handle_action_error(e, "get_provider_series")
