"""Shared pytest fixtures for sync ingestion and reporting tests.

Provides database fixtures, a FastAPI test client, and helpers for seeding
devices and sync events for both unit and integration tests.
"""

import os

# CRITICAL: Configure the app BEFORE any imports that read config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from datetime import datetime
from typing import Generator, Optional
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from database import Base, get_db
from models.device import Device
from models.sync_event import SyncEvent
from repositories.device_repository import DeviceRepository
from repositories.sync_event_repository import SyncEventRepository


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def test_engine(tmp_path):
    """File-backed SQLite engine with a fresh schema for each test.

    A file (not :memory:) lets the history endpoint open extra sessions
    that see the same committed data.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'pisync_test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(test_engine) -> Generator[Session, None, None]:
    """Create a database session for integration tests."""
    session_factory = sessionmaker(bind=test_engine, autoflush=False)
    session = session_factory()

    yield session

    session.close()


@pytest.fixture
def mock_db_session() -> MagicMock:
    """Create a mocked database session for unit tests."""
    mock_session = MagicMock(spec=Session)

    mock_session.commit.return_value = None
    mock_session.rollback.return_value = None
    mock_session.add.return_value = None

    return mock_session


# ============================================================================
# FastAPI Test Client
# ============================================================================

@pytest.fixture
def client(db_session: Session) -> TestClient:
    """Create FastAPI test client with overridden database dependency."""
    # Import app here to avoid loading it for unit tests
    from main import app

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    # Clean up
    app.dependency_overrides.clear()


@pytest.fixture
def lenient_client(db_session: Session) -> TestClient:
    """Test client that returns 500 responses instead of re-raising server errors."""
    from main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ============================================================================
# Helper Functions
# ============================================================================

def seed_sync_event(
    db: Session,
    device_id: str,
    timestamp: datetime,
    *,
    total_errors: int = 0,
    total_files_synced: int = 10,
    internet_speed: Optional[float] = None,
) -> SyncEvent:
    """Register the device if needed and store one committed sync event."""
    DeviceRepository(db).find_or_create(device_id)
    event = SyncEventRepository(db).create(
        device_id=device_id,
        timestamp=timestamp,
        total_files_synced=total_files_synced,
        total_errors=total_errors,
        internet_speed=internet_speed,
    )
    db.commit()
    return event


def count_devices(db: Session, device_id: Optional[str] = None) -> int:
    query = db.query(Device)
    if device_id is not None:
        query = query.filter(Device.device_id == device_id)
    return query.count()
