"""
Booking notification dispatch.

Notifications are queued to the ARQ worker after the HTTP response is sent.
Dispatch is fire-and-forget: a failure to queue is logged and never undoes
the booking change that triggered it.
"""

import logging
from typing import Optional

from arq import create_pool
from fastapi import BackgroundTasks

logger = logging.getLogger(__name__)


class BookingEvent:
    CREATED = "booking_created"
    RESCHEDULED = "booking_rescheduled"
    CONFIRMED = "booking_confirmed"
    DECLINED = "booking_declined"
    CANCELLED = "booking_cancelled"
    COMPLETED = "booking_completed"
    NO_SHOW = "booking_no_show"
    MEETING_LINK = "meeting_link_added"
    SERIES_CANCELLED = "series_cancelled"

    # Events raised by the requester; the provider is told about them
    FROM_REQUESTER = (CREATED, RESCHEDULED, CANCELLED, SERIES_CANCELLED)


async def enqueue_booking_notification(event: str, booking_ids: list[int]) -> Optional[str]:
    """Queue the worker job that emails the other party of a booking"""
    from ..worker import get_redis_settings

    try:
        pool = await create_pool(get_redis_settings())
    except Exception as e:
        logger.warning(f"⚠️ Failed to queue {event} notification: {e}")
        return None

    try:
        job = await pool.enqueue_job("send_booking_notification_task", event, booking_ids)
        logger.info(f"📋 Notification job queued: {event} for bookings {booking_ids}")
        return job.job_id if job else None
    except Exception as e:
        logger.warning(f"⚠️ Failed to queue {event} notification: {e}")
        return None
    finally:
        await pool.aclose()


class NotificationDispatcher:
    """Hands booking events to FastAPI background tasks, or drops them when none are bound"""

    def __init__(self, background_tasks: Optional[BackgroundTasks] = None):
        self.background_tasks = background_tasks

    def dispatch(self, event: str, booking_ids: list[int]) -> None:
        if not booking_ids:
            return
        if self.background_tasks is None:
            logger.debug(f"No background task runner bound, skipping {event} notification")
            return
        self.background_tasks.add_task(enqueue_booking_notification, event, list(booking_ids))
