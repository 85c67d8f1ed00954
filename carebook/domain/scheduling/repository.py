"""Scheduling repository - Database operations for provider schedules"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Provider, ProviderSchedule, ProviderStatus, Service

logger = logging.getLogger(__name__)


class ScheduleRepository:
    """Repository for schedule database operations"""

    @staticmethod
    def get_schedule(db: Session, provider_id: int) -> list[ProviderSchedule]:
        """Weekly schedule rows of a provider ordered Monday first"""
        return (
            db.query(ProviderSchedule)
            .filter(ProviderSchedule.provider_id == provider_id)
            .order_by(ProviderSchedule.day_of_week)
            .all()
        )

    @staticmethod
    def replace_schedule(db: Session, provider_id: int, rows: list[dict]) -> list[ProviderSchedule]:
        """
        Upsert every weekday row in one transaction.

        Either all rows are written or none: any failure rolls back before
        the commit, so readers never see a partially updated week.
        """
        existing = {
            row.day_of_week: row
            for row in db.query(ProviderSchedule)
            .filter(ProviderSchedule.provider_id == provider_id)
            .all()
        }

        try:
            for data in rows:
                row = existing.get(data["day_of_week"])
                if row is None:
                    row = ProviderSchedule(provider_id=provider_id, day_of_week=data["day_of_week"])
                    db.add(row)
                row.open_time = data["open_time"]
                row.close_time = data["close_time"]
                row.is_closed = data["is_closed"]
            db.commit()
        except Exception:
            db.rollback()
            logger.error(f"❌ Schedule update rolled back for provider {provider_id}")
            raise

        return ScheduleRepository.get_schedule(db, provider_id)

    @staticmethod
    def get_bookable_provider(db: Session, provider_id: int) -> Optional[Provider]:
        """Approved provider that has not been soft-deleted"""
        return (
            db.query(Provider)
            .filter(
                Provider.id == provider_id,
                Provider.status == ProviderStatus.APPROVED,
                Provider.deleted_at.is_(None),
            )
            .first()
        )

    @staticmethod
    def get_service(db: Session, provider_id: int, service_id: int) -> Optional[Service]:
        """Active service offered by the given provider"""
        return (
            db.query(Service)
            .filter(
                Service.id == service_id,
                Service.provider_id == provider_id,
                Service.is_active.is_(True),
            )
            .first()
        )
