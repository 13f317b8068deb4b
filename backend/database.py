import sqlite3
from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from config import DATABASE_URL, DB_MAX_OVERFLOW, DB_POOL_SIZE, DB_POOL_TIMEOUT


def _engine_options(url: str) -> dict:
    """Build engine kwargs for the configured backend."""
    if url.startswith("sqlite"):
        # Required for SQLite with FastAPI
        return {"connect_args": {"check_same_thread": False}}
    # Bounded pool: checkout blocks up to pool_timeout, then raises TimeoutError
    return {
        "pool_size": DB_POOL_SIZE,
        "max_overflow": DB_MAX_OVERFLOW,
        "pool_timeout": DB_POOL_TIMEOUT,
        "pool_pre_ping": True,
    }


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def utcnow() -> datetime:
    """Current time as naive UTC, the representation stored in every table."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_db():
    """Dependency for getting database sessions in FastAPI routes."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def dialect_name(session: Session) -> str:
    """Name of the SQL dialect behind a session (engine- or connection-bound)."""
    # Connection does not have `.url`, but both expose `.dialect`
    return session.get_bind().dialect.name


def init_db():
    """Initialize the database and create all tables."""
    # Import models here to ensure they're registered with Base
    from models import Device, SyncEvent  # noqa: F401

    Base.metadata.create_all(bind=engine)


@event.listens_for(Engine, "connect")
def enable_sqlite_foreign_keys(dbapi_conn, connection_record):
    """SQLite ignores FOREIGN KEY clauses unless asked per connection."""
    if isinstance(dbapi_conn, sqlite3.Connection):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
