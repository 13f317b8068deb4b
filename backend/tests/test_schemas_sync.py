from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from errors import ValidationError
from schemas.sync import (
    MAX_COUNT,
    DeviceRollup,
    SyncEventCreate,
    collect_field_errors,
    to_naive_utc,
    validate_sync_event,
)
from tests.fixtures.test_data import FUTURE_SYNC, PI_1_FIRST_SYNC


def test_sync_event_create_valid():
    """Test a well-formed report is accepted and normalized to naive UTC."""
    payload = SyncEventCreate(**PI_1_FIRST_SYNC)
    assert payload.device_id == "PI-1"
    assert payload.timestamp == datetime(2024, 1, 1, 0, 0)
    assert payload.timestamp.tzinfo is None
    assert payload.internet_speed is None


def test_offset_timestamp_converted_to_utc():
    payload = SyncEventCreate(**{**PI_1_FIRST_SYNC, "timestamp": "2024-01-01T02:00:00+02:00"})
    assert payload.timestamp == datetime(2024, 1, 1, 0, 0)


def test_future_timestamp_rejected():
    with pytest.raises(PydanticValidationError) as exc_info:
        SyncEventCreate(**FUTURE_SYNC)

    errors = exc_info.value.errors()
    assert any(
        "Timestamp cannot be in the future" in str(error.get("msg", ""))
        for error in errors
    )


def test_just_now_timestamp_accepted():
    recent = datetime.now(timezone.utc) - timedelta(seconds=1)
    payload = SyncEventCreate(**{**PI_1_FIRST_SYNC, "timestamp": recent.isoformat()})
    assert payload.timestamp <= datetime.now(timezone.utc).replace(tzinfo=None)


@pytest.mark.parametrize("field", ["total_files_synced", "total_errors", "internet_speed"])
def test_negative_counts_rejected(field):
    with pytest.raises(PydanticValidationError):
        SyncEventCreate(**{**PI_1_FIRST_SYNC, field: -1})


@pytest.mark.parametrize("field", ["total_files_synced", "total_errors"])
def test_counts_beyond_integer_column_rejected(field):
    with pytest.raises(PydanticValidationError):
        SyncEventCreate(**{**PI_1_FIRST_SYNC, field: MAX_COUNT + 1})

    payload = SyncEventCreate(**{**PI_1_FIRST_SYNC, field: MAX_COUNT})
    assert getattr(payload, field) == MAX_COUNT


@pytest.mark.parametrize("device_id", ["", "x" * 256])
def test_device_id_length_bounds(device_id):
    with pytest.raises(PydanticValidationError):
        SyncEventCreate(**{**PI_1_FIRST_SYNC, "device_id": device_id})


def test_internet_speed_allows_null():
    payload = SyncEventCreate(**{**PI_1_FIRST_SYNC, "internet_speed": None})
    assert payload.internet_speed is None


def test_validate_sync_event_reports_every_field():
    """All failing fields are reported together, with the offending values."""
    with pytest.raises(ValidationError) as exc_info:
        validate_sync_event({
            "timestamp": "2999-01-01T00:00:00Z",
            "total_files_synced": -5,
            "total_errors": 0,
        })

    details = {d["field"]: d for d in exc_info.value.details}
    assert set(details) == {"device_id", "timestamp", "total_files_synced"}
    assert details["device_id"]["value"] is None
    assert details["timestamp"]["message"] == "Timestamp cannot be in the future"
    assert details["total_files_synced"]["value"] == -5
    assert exc_info.value.status_code == 400


def test_validate_sync_event_returns_model():
    payload = validate_sync_event(PI_1_FIRST_SYNC)
    assert isinstance(payload, SyncEventCreate)


def test_collect_field_errors_strips_request_location():
    details = collect_field_errors([
        {"loc": ("query", "limit"), "msg": "Input should be less than or equal to 1000",
         "input": "5000", "type": "less_than_equal"},
        {"loc": ("body",), "msg": "Field required", "input": None, "type": "missing"},
    ])

    assert details == [
        {"field": "limit", "message": "Input should be less than or equal to 1000", "value": "5000"},
        {"field": "", "message": "Field required", "value": None},
    ]


def test_to_naive_utc_leaves_naive_values_alone():
    value = datetime(2024, 5, 1, 12, 0)
    assert to_naive_utc(value) is value


def test_response_datetimes_serialized_as_utc():
    rollup = DeviceRollup(
        device_id="PI-1",
        total_syncs=1,
        total_files_synced=10,
        total_errors=0,
        last_sync=datetime(2024, 1, 1, 0, 0),
        first_sync=datetime(2024, 1, 1, 0, 0),
        failed_syncs=0,
        successful_syncs=1,
        success_rate=100.0,
    )

    data = rollup.model_dump(mode="json")
    assert data["last_sync"] == "2024-01-01T00:00:00Z"
    assert rollup.model_dump()["last_sync"] == datetime(2024, 1, 1, 0, 0)
