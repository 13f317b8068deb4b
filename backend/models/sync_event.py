"""Sync event reports sent by devices."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from database import Base, utcnow


class SyncEvent(Base):
    """One synchronization attempt; total_errors > 0 marks it as failed."""

    __tablename__ = "sync_events"

    id = Column(Integer, primary_key=True)
    device_id = Column(
        String(255),
        ForeignKey("devices.device_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Client-reported event time; may differ in order from created_at
    timestamp = Column(DateTime, nullable=False, index=True)
    total_files_synced = Column(Integer, nullable=False, default=0)
    total_errors = Column(Integer, nullable=False, default=0)
    internet_speed = Column(Numeric(10, 2, asdecimal=False), nullable=True)  # Mbps
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    device = relationship("Device", back_populates="sync_events")
