"""Data access and aggregation for sync events."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import utcnow
from models.sync_event import SyncEvent


logger = logging.getLogger(__name__)


def success_rate(successful: int, total: int) -> float:
    """Percentage of successful syncs, rounded to 2 decimals; 0 when total is 0."""
    if total <= 0:
        return 0
    return round(successful / total * 100, 2)


def _aggregate_columns():
    """Aggregates shared by the per-device and bulk rollups."""
    return [
        func.count(SyncEvent.id).label("total_syncs"),
        func.coalesce(func.sum(SyncEvent.total_files_synced), 0).label("total_files_synced"),
        func.coalesce(func.sum(SyncEvent.total_errors), 0).label("total_errors"),
        func.max(SyncEvent.timestamp).label("last_sync"),
        func.min(SyncEvent.timestamp).label("first_sync"),
        func.count(case((SyncEvent.total_errors > 0, 1))).label("failed_syncs"),
        func.count(case((SyncEvent.total_errors == 0, 1))).label("successful_syncs"),
    ]


def _rollup(row) -> dict:
    total_syncs = int(row.total_syncs or 0)
    successful_syncs = int(row.successful_syncs or 0)
    return {
        "total_syncs": total_syncs,
        "total_files_synced": int(row.total_files_synced or 0),
        "total_errors": int(row.total_errors or 0),
        "last_sync": row.last_sync,
        "first_sync": row.first_sync,
        "failed_syncs": int(row.failed_syncs or 0),
        "successful_syncs": successful_syncs,
        "success_rate": success_rate(successful_syncs, total_syncs),
    }


class SyncEventRepository:
    """Queries over the sync_events table."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        device_id: str,
        timestamp: datetime,
        total_files_synced: int,
        total_errors: int,
        internet_speed: Optional[float] = None,
    ) -> SyncEvent:
        """Insert one event; the device row must already exist."""
        now = utcnow()
        event = SyncEvent(
            device_id=device_id,
            timestamp=timestamp,
            total_files_synced=total_files_synced,
            total_errors=total_errors,
            internet_speed=internet_speed,
            created_at=now,
            updated_at=now,
        )
        try:
            self.db.add(event)
            self.db.flush()
        except SQLAlchemyError:
            logger.exception("Error creating sync event for device %s", device_id)
            raise

        logger.info("Sync event created for device %s", device_id)
        return event

    def get_by_device_id(
        self,
        device_id: str,
        limit: int = 50,
        offset: int = 0,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> list[SyncEvent]:
        """Events for a device, newest timestamp first, optionally date-bounded."""
        query = self.db.query(SyncEvent).filter(SyncEvent.device_id == device_id)

        if start_date is not None:
            query = query.filter(SyncEvent.timestamp >= start_date)
        if end_date is not None:
            query = query.filter(SyncEvent.timestamp <= end_date)

        try:
            return (
                query.order_by(SyncEvent.timestamp.desc(), SyncEvent.id.desc())
                .limit(limit)
                .offset(offset)
                .all()
            )
        except SQLAlchemyError:
            logger.exception("Error fetching sync events for device %s", device_id)
            raise

    def get_device_stats(self, device_id: str) -> dict:
        """Single-pass rollup of every event a device has reported."""
        try:
            row = (
                self.db.query(
                    *_aggregate_columns(),
                    func.avg(SyncEvent.internet_speed).label("avg_internet_speed"),
                )
                .filter(SyncEvent.device_id == device_id)
                .one()
            )
        except SQLAlchemyError:
            logger.exception("Error calculating stats for device %s", device_id)
            raise

        stats = _rollup(row)
        avg_speed = row.avg_internet_speed
        stats["avg_internet_speed"] = round(float(avg_speed), 2) if avg_speed is not None else None
        return stats

    def get_bulk_stats(self, limit: int = 100) -> list[dict]:
        """Per-device rollups, most recently active device first."""
        last_sync = func.max(SyncEvent.timestamp)
        try:
            rows = (
                self.db.query(SyncEvent.device_id, *_aggregate_columns())
                .group_by(SyncEvent.device_id)
                .order_by(last_sync.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError:
            logger.exception("Error fetching bulk stats")
            raise

        return [{"device_id": row.device_id, **_rollup(row)} for row in rows]

    def get_consecutive_failures(self, device_id: str, limit: int = 3) -> dict:
        """Check whether the `limit` most recent events all carry errors."""
        recent_events = self.get_by_device_id(device_id, limit=limit)
        has_streak = len(recent_events) >= limit and all(
            event.total_errors > 0 for event in recent_events
        )
        return {
            "has_consecutive_failures": has_streak,
            "consecutive_failure_count": len(recent_events) if has_streak else 0,
            "recent_events": recent_events,
        }
