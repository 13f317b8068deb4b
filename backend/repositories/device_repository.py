"""Data access for the device registry."""

import logging

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from database import dialect_name, utcnow
from models.device import Device
from models.sync_event import SyncEvent


logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class DeviceRepository:
    """Queries over the devices table."""

    def __init__(self, db: Session):
        self.db = db

    def find_or_create(self, device_id: str) -> Device:
        """Return the device row for device_id, registering it on first sight.

        Concurrent first contact is resolved by the unique constraint on
        devices.device_id: the losing insert is skipped (or rolled back to
        its savepoint) and both callers read back the same row.
        """
        try:
            now = utcnow()
            insert = _UPSERT_DIALECTS.get(dialect_name(self.db))

            if insert is not None:
                stmt = (
                    insert(Device.__table__)
                    .values(device_id=device_id, created_at=now, updated_at=now)
                    .on_conflict_do_nothing(index_elements=["device_id"])
                )
                created = self.db.execute(stmt).rowcount == 1
            else:
                created = self._insert_in_savepoint(device_id, now)

            if created:
                logger.info("New device registered: %s", device_id)

            return self.db.query(Device).filter(Device.device_id == device_id).one()
        except SQLAlchemyError:
            logger.exception("Error in find_or_create for device %s", device_id)
            raise

    def _insert_in_savepoint(self, device_id: str, now) -> bool:
        try:
            with self.db.begin_nested():
                self.db.add(Device(device_id=device_id, created_at=now, updated_at=now))
            return True
        except IntegrityError:
            return False

    def update_last_seen(self, device_id: str) -> None:
        """Touch updated_at; unknown ids are silently ignored."""
        try:
            self.db.query(Device).filter(Device.device_id == device_id).update(
                {Device.updated_at: utcnow()},
                synchronize_session=False,
            )
        except SQLAlchemyError:
            logger.exception("Error updating last seen for device %s", device_id)
            raise

    def get_devices_with_repeated_failures(self, threshold: int = 3) -> list:
        """Devices with at least `threshold` failed sync events.

        Rows carry device_id, created_at, updated_at, total_failed_syncs and
        last_failed_sync, ordered by failure count then latest failure.
        """
        total_failed = func.count(SyncEvent.id).label("total_failed_syncs")
        last_failed = func.max(SyncEvent.timestamp).label("last_failed_sync")

        try:
            return (
                self.db.query(
                    Device.device_id,
                    Device.created_at,
                    Device.updated_at,
                    total_failed,
                    last_failed,
                )
                .join(SyncEvent, SyncEvent.device_id == Device.device_id)
                .filter(SyncEvent.total_errors > 0)
                .group_by(Device.device_id, Device.created_at, Device.updated_at)
                .having(func.count(SyncEvent.id) >= threshold)
                .order_by(total_failed.desc(), last_failed.desc())
                .all()
            )
        except SQLAlchemyError:
            logger.exception("Error getting devices with repeated failures")
            raise
