"""Booking router - FastAPI endpoints for the booking lifecycle"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...cache import cache
from ...config import BOOKING_RATE_LIMIT, BOOKING_RATE_WINDOW_SECONDS
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from ...services.notification_service import NotificationDispatcher
from ...shared.results import to_response
from .actions import BookingActions
from .schemas import BookingCancel, BookingCreate, BookingReschedule, MeetingLinkUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Bookings"])

rate_limit_booking_writes = create_rate_limiter(
    limit=BOOKING_RATE_LIMIT, window_seconds=BOOKING_RATE_WINDOW_SECONDS, key_prefix="booking"
)


def get_booking_actions(
    background_tasks: BackgroundTasks, db: Session = Depends(get_db)
) -> BookingActions:
    """Dependency injection for BookingActions"""
    return BookingActions(db, cache, NotificationDispatcher(background_tasks))


# ============================================================================
# REQUESTER ENDPOINTS
# ============================================================================


@router.post("/bookings", status_code=201)
async def create_booking(
    data: BookingCreate,
    _: None = Depends(rate_limit_booking_writes),
    current_user: User = Depends(get_current_user),
    actions: BookingActions = Depends(get_booking_actions),
):
    """Request a booking, or a recurring series of bookings"""
    result = actions.create_booking(current_user, data)
    if result.success:
        result.status_code = 201
    return to_response(result)


@router.get("/bookings")
async def get_my_bookings(
    view: str = Query("upcoming"),
    current_user: User = Depends(get_current_user),
    actions: BookingActions = Depends(get_booking_actions),
):
    return to_response(actions.get_my_bookings(current_user, view))


@router.get("/bookings/series/{series_id}")
async def get_my_series(
    series_id: str,
    current_user: User = Depends(get_current_user),
    actions: BookingActions = Depends(get_booking_actions),
):
    return to_response(actions.get_my_series(current_user, series_id))


@router.post("/bookings/series/{series_id}/cancel")
async def cancel_my_series(
    series_id: str,
    data: BookingCancel,
    current_user: User = Depends(get_current_user),
    actions: BookingActions = Depends(get_booking_actions),
):
    """Cancel every upcoming booking of the series, or none"""
    return to_response(actions.cancel_my_series(current_user, series_id, data.reason))


@router.get("/bookings/{booking_id}")
async def get_my_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    actions: BookingActions = Depends(get_booking_actions),
):
    return to_response(actions.get_my_booking(current_user, booking_id))


@router.post("/bookings/{booking_id}/reschedule")
async def reschedule_booking(
    booking_id: int,
    data: BookingReschedule,
    _: None = Depends(rate_limit_booking_writes),
    current_user: User = Depends(get_current_user),
    actions: BookingActions = Depends(get_booking_actions),
):
    return to_response(actions.reschedule_booking(current_user, booking_id, data.scheduledAt))


@router.post("/bookings/{booking_id}/cancel")
async def cancel_booking(
    booking_id: int,
    data: BookingCancel,
    current_user: User = Depends(get_current_user),
    actions: BookingActions = Depends(get_booking_actions),
):
    return to_response(actions.cancel_booking(current_user, booking_id, data.reason))


# ============================================================================
# PROVIDER STAFF ENDPOINTS
# ============================================================================


@router.get("/provider/bookings")
async def get_provider_bookings(
    view: str = Query("pending"),
    current_user: User = Depends(get_current_user),
    actions: BookingActions = Depends(get_booking_actions),
):
    return to_response(actions.get_provider_bookings(current_user, view))


@router.get("/provider/bookings/stats")
async def get_provider_stats(
    current_user: User = Depends(get_current_user),
    actions: BookingActions = Depends(get_booking_actions),
):
    """Pending, upcoming confirmed and confirmed-today counts"""
    return to_response(actions.get_provider_stats(current_user))


@router.get("/provider/bookings/series/{series_id}")
async def get_provider_series(
    series_id: str,
    current_user: User = Depends(get_current_user),
    actions: BookingActions = Depends(get_booking_actions),
):
    return to_response(actions.get_provider_series(current_user, series_id))


@router.post("/provider/bookings/series/{series_id}/cancel")
async def cancel_series(
    series_id: str,
    data: BookingCancel,
    current_user: User = Depends(get_current_user),
    actions: BookingActions = Depends(get_booking_actions),
):
    return to_response(actions.cancel_series(current_user, series_id, data.reason))


@router.post("/provider/bookings/{booking_id}/confirm")
async def confirm_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    actions: BookingActions = Depends(get_booking_actions),
):
    return to_response(actions.confirm_booking(current_user, booking_id))


@router.post("/provider/bookings/{booking_id}/decline")
async def decline_booking(
    booking_id: int,
    data: BookingCancel,
    current_user: User = Depends(get_current_user),
    actions: BookingActions = Depends(get_booking_actions),
):
    return to_response(actions.decline_booking(current_user, booking_id, data.reason))


@router.post("/provider/bookings/{booking_id}/complete")
async def complete_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    actions: BookingActions = Depends(get_booking_actions),
):
    return to_response(actions.complete_booking(current_user, booking_id))


@router.post("/provider/bookings/{booking_id}/no-show")
async def mark_no_show(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    actions: BookingActions = Depends(get_booking_actions),
):
    return to_response(actions.mark_no_show(current_user, booking_id))


@router.put("/provider/bookings/{booking_id}/meeting-link")
async def attach_meeting_link(
    booking_id: int,
    data: MeetingLinkUpdate,
    current_user: User = Depends(get_current_user),
    actions: BookingActions = Depends(get_booking_actions),
):
    """Telehealth link for a remote booking"""
    return to_response(actions.attach_meeting_link(current_user, booking_id, data.meetingUrl))
