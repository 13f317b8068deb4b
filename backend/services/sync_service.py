"""Sync service: composes repository calls into API payloads."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from config import BULK_STATS_LIMIT, RECENT_DEVICES_LIMIT
from models.sync_event import SyncEvent
from repositories.device_repository import DeviceRepository
from repositories.sync_event_repository import SyncEventRepository, success_rate
from schemas.sync import SyncEventCreate


logger = logging.getLogger(__name__)


class SyncService:
    """Ingestion and reporting over devices and their sync events."""

    def __init__(self, db: Session, session_factory: Optional[Callable[[], Session]] = None):
        self.db = db
        self.devices = DeviceRepository(db)
        self.events = SyncEventRepository(db)
        # Independent reads run on their own sessions against the same bind
        self._session_factory = session_factory

    def _new_session(self) -> Session:
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.db.get_bind(), autoflush=False
            )
        return self._session_factory()

    def process_sync_event(self, payload: SyncEventCreate) -> SyncEvent:
        """Register the device if needed, store the event, refresh last seen.

        Device registration is committed first and is never rolled back. The
        event insert and the last-seen update commit together.
        """
        device_id = payload.device_id
        try:
            self.devices.find_or_create(device_id)
            self.db.commit()

            event = self.events.create(
                device_id=device_id,
                timestamp=payload.timestamp,
                total_files_synced=payload.total_files_synced,
                total_errors=payload.total_errors,
                internet_speed=payload.internet_speed,
            )
            self.devices.update_last_seen(device_id)
            self.db.commit()
            self.db.refresh(event)
        except Exception:
            self.db.rollback()
            logger.exception("Error processing sync event for device %s", device_id)
            raise

        logger.info("Sync event processed successfully for device: %s", device_id)
        return event

    def _read(self, query: Callable[[SyncEventRepository], object]):
        session = self._new_session()
        try:
            return query(SyncEventRepository(session))
        finally:
            session.close()

    def get_device_sync_history(
        self,
        device_id: str,
        limit: int = 50,
        offset: int = 0,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> dict:
        """Paginated history plus lifetime stats for one device.

        The two queries share no ordering dependency and run side by side.
        """
        try:
            with ThreadPoolExecutor(max_workers=2) as pool:
                history_future = pool.submit(
                    self._read,
                    lambda repo: repo.get_by_device_id(
                        device_id,
                        limit=limit,
                        offset=offset,
                        start_date=start_date,
                        end_date=end_date,
                    ),
                )
                stats_future = pool.submit(
                    self._read, lambda repo: repo.get_device_stats(device_id)
                )
                sync_history = history_future.result()
                stats = stats_future.result()
        except SQLAlchemyError:
            logger.exception("Error fetching sync history for device %s", device_id)
            raise

        return {
            "device_id": device_id,
            "stats": stats,
            "sync_history": sync_history,
            "pagination": {
                "limit": limit,
                "offset": offset,
                "total_events": stats["total_syncs"],
            },
        }

    def get_devices_with_repeated_failures(self, threshold: int = 3) -> dict:
        rows = self.devices.get_devices_with_repeated_failures(threshold)
        return {
            "threshold": threshold,
            "total_devices": len(rows),
            "devices": [
                {
                    "device_id": row.device_id,
                    "total_failed_syncs": int(row.total_failed_syncs),
                    "last_failed_sync": row.last_failed_sync,
                    "device_registered": row.created_at,
                    "last_seen": row.updated_at,
                }
                for row in rows
            ],
        }

    def get_system_stats(self) -> dict:
        """System-wide totals reduced from the per-device rollup."""
        per_device = self.events.get_bulk_stats(limit=BULK_STATS_LIMIT)

        total_syncs = sum(device["total_syncs"] for device in per_device)
        total_failures = sum(device["failed_syncs"] for device in per_device)
        total_files = sum(device["total_files_synced"] for device in per_device)

        return {
            "total_devices": len(per_device),
            "total_sync_events": total_syncs,
            "total_failures": total_failures,
            "total_files_synced": total_files,
            "overall_success_rate": success_rate(total_syncs - total_failures, total_syncs),
            "recent_devices": per_device[:RECENT_DEVICES_LIMIT],
        }

    def get_consecutive_failures(self, device_id: str, limit: int = 3) -> dict:
        result = self.events.get_consecutive_failures(device_id, limit=limit)
        return {"device_id": device_id, "limit": limit, **result}
