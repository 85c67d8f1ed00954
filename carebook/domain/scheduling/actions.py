"""Schedule actions - authorization-checked entry points for schedules and availability"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...auth import resolve_staff_provider_id
from ...cache import Cache, availability_key
from ...models import User
from ...shared.results import ActionResult, handle_action_error, success_result
from .schemas import ScheduleUpdate
from .service import ScheduleService

logger = logging.getLogger(__name__)

# Staff roles allowed to change opening hours
SCHEDULE_EDITOR_ROLES = ("owner", "manager")

AVAILABILITY_CACHE_TTL = 60


class ScheduleActions:
    def __init__(self, db: Session, cache_backend: Cache):
        self.db = db
        self.cache = cache_backend
        self.service = ScheduleService(db)

    def get_my_schedule(self, user: Optional[User]) -> ActionResult:
        try:
            provider_id = resolve_staff_provider_id(self.db, user)
            return success_result(self.service.get_schedule(provider_id))
        except Exception as e:
            return handle_action_error(e, "get_my_schedule")

    def update_my_schedule(self, user: Optional[User], data: ScheduleUpdate) -> ActionResult:
        try:
            provider_id = resolve_staff_provider_id(self.db, user, SCHEDULE_EDITOR_ROLES)
            schedule = self.service.update_schedule(provider_id, data)
        except Exception as e:
            return handle_action_error(e, "update_my_schedule")

        self.cache.delete_pattern(f"availability:{provider_id}:*")
        logger.info(f"✅ Schedule updated for provider {provider_id}")
        return success_result(schedule)

    def get_availability(
        self,
        provider_id: int,
        service_id: Optional[int] = None,
        start_date: Optional[date] = None,
        days: Optional[int] = None,
    ) -> ActionResult:
        """Public read, cached briefly per window"""
        try:
            key = availability_key(
                provider_id, (start_date or date.today()).isoformat(), days or 0, service_id
            )
            data = self.cache.get_or_compute(
                key,
                lambda: self.service.get_availability(provider_id, service_id, start_date, days),
                ttl=AVAILABILITY_CACHE_TTL,
            )
            return success_result(data)
        except Exception as e:
            return handle_action_error(e, "get_availability")
