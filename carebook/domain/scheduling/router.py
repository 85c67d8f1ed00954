"""Scheduling router - FastAPI endpoints for schedules and availability"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...cache import cache
from ...database import get_db
from ...models import User
from ...shared.results import to_response
from .actions import ScheduleActions
from .schemas import ScheduleUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Scheduling"])


def get_schedule_actions(db: Session = Depends(get_db)) -> ScheduleActions:
    """Dependency injection for ScheduleActions"""
    return ScheduleActions(db, cache)


@router.get("/provider/schedule")
async def get_my_schedule(
    current_user: User = Depends(get_current_user),
    actions: ScheduleActions = Depends(get_schedule_actions),
):
    """Weekly operating hours of the caller's provider"""
    return to_response(actions.get_my_schedule(current_user))


@router.put("/provider/schedule")
async def update_my_schedule(
    data: ScheduleUpdate,
    current_user: User = Depends(get_current_user),
    actions: ScheduleActions = Depends(get_schedule_actions),
):
    """Replace weekday rows in a single transaction (owners and managers only)"""
    return to_response(actions.update_my_schedule(current_user, data))


@router.get("/providers/{provider_id}/availability")
async def get_availability(
    provider_id: int,
    service_id: Optional[int] = Query(None, alias="serviceId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    days: Optional[int] = Query(None),
    actions: ScheduleActions = Depends(get_schedule_actions),
):
    """Bookable slot start times for the next `days` days"""
    return to_response(actions.get_availability(provider_id, service_id, start_date, days))
