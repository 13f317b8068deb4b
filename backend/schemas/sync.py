"""Pydantic schemas for sync event ingestion and reporting endpoints."""

from datetime import datetime, timezone
from typing import Annotated, Any, Generic, Optional, TypeVar

from pydantic import (
    BaseModel,
    Field,
    PlainSerializer,
    ValidationError as PydanticValidationError,
    field_validator,
)

from database import utcnow
from errors import ValidationError


T = TypeVar("T")

# Leading loc entries FastAPI adds to say where a value came from
_LOCATION_PREFIXES = {"body", "query", "path", "header"}

# Upper bound of the INTEGER columns the counts are stored in
MAX_COUNT = 2_147_483_647


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are taken as UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _iso_utc(value: datetime) -> str:
    return to_naive_utc(value).isoformat() + "Z"


# Stored values are naive UTC; mark them as such on the wire
UtcDatetime = Annotated[datetime, PlainSerializer(_iso_utc, return_type=str, when_used="json")]


def collect_field_errors(errors: list[dict]) -> list[dict]:
    """Flatten pydantic error dicts into {field, message, value} triples."""
    details = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ())]
        if loc and loc[0] in _LOCATION_PREFIXES:
            loc = loc[1:]

        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]

        details.append({
            "field": ".".join(loc),
            "message": message,
            "value": None if error.get("type") == "missing" else error.get("input"),
        })
    return details


def validate_sync_event(data: Any) -> "SyncEventCreate":
    """Validate a raw payload outside of any HTTP request.

    Raises errors.ValidationError carrying every failing field at once.
    """
    try:
        return SyncEventCreate.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(collect_field_errors(e.errors())) from e


class SyncEventCreate(BaseModel):
    """Request schema for a single sync report."""

    device_id: str = Field(min_length=1, max_length=255)
    timestamp: datetime
    total_files_synced: int = Field(ge=0, le=MAX_COUNT)
    total_errors: int = Field(ge=0, le=MAX_COUNT)
    internet_speed: Optional[float] = Field(default=None, ge=0)  # Mbps

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v: datetime) -> datetime:
        v = to_naive_utc(v)
        if v > utcnow():
            raise ValueError("Timestamp cannot be in the future")
        return v


class SyncEventResponse(BaseModel):
    id: int
    device_id: str
    timestamp: UtcDatetime
    total_files_synced: int
    total_errors: int
    internet_speed: Optional[float] = None
    created_at: UtcDatetime

    class Config:
        from_attributes = True


class DeviceStatsResponse(BaseModel):
    """Rollup of every sync event a device has reported."""

    total_syncs: int
    total_files_synced: int
    total_errors: int
    avg_internet_speed: Optional[float] = None
    last_sync: Optional[UtcDatetime] = None
    first_sync: Optional[UtcDatetime] = None
    failed_syncs: int
    successful_syncs: int
    success_rate: float


class PaginationResponse(BaseModel):
    limit: int
    offset: int
    total_events: int


class SyncHistoryResponse(BaseModel):
    device_id: str
    stats: DeviceStatsResponse
    sync_history: list[SyncEventResponse]
    pagination: PaginationResponse


class RepeatedFailureDevice(BaseModel):
    device_id: str
    total_failed_syncs: int
    last_failed_sync: UtcDatetime
    device_registered: UtcDatetime
    last_seen: UtcDatetime


class RepeatedFailuresResponse(BaseModel):
    threshold: int
    total_devices: int
    devices: list[RepeatedFailureDevice]


class DeviceRollup(BaseModel):
    """Per-device entry of the system-wide rollup."""

    device_id: str
    total_syncs: int
    total_files_synced: int
    total_errors: int
    last_sync: Optional[UtcDatetime] = None
    first_sync: Optional[UtcDatetime] = None
    failed_syncs: int
    successful_syncs: int
    success_rate: float


class SystemStatsResponse(BaseModel):
    total_devices: int
    total_sync_events: int
    total_failures: int
    total_files_synced: int
    overall_success_rate: float
    recent_devices: list[DeviceRollup]


class ConsecutiveFailuresResponse(BaseModel):
    device_id: str
    limit: int
    has_consecutive_failures: bool
    consecutive_failure_count: int
    recent_events: list[SyncEventResponse]


class ApiResponse(BaseModel, Generic[T]):
    """Envelope wrapped around every successful payload."""

    success: bool = True
    message: str
    data: T
