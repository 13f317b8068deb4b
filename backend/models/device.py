"""Device registry: one row per reporting unit, created on first sync event."""

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from database import Base, utcnow


class Device(Base):
    """A client identified by its self-assigned device_id."""

    __tablename__ = "devices"

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    # "Last seen": refreshed on every accepted sync event
    updated_at = Column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    sync_events = relationship(
        "SyncEvent",
        back_populates="device",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
