"""Sync event ingestion and reporting endpoints."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from config import RATE_LIMIT, RATE_LIMIT_ENABLED
from database import get_db
from schemas.sync import (
    ApiResponse,
    ConsecutiveFailuresResponse,
    RepeatedFailuresResponse,
    SyncEventCreate,
    SyncEventResponse,
    SyncHistoryResponse,
    SystemStatsResponse,
    to_naive_utc,
)
from services.sync_service import SyncService


limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)
router = APIRouter()

ENDPOINTS = {
    "POST /api/sync-event": "Create a new sync event",
    "GET /api/device/:id/sync-history": "Get sync history for a device",
    "GET /api/device/:id/consecutive-failures": "Check a device for consecutive failed syncs",
    "GET /api/devices/repeated-failures": "Get devices with repeated failures",
    "GET /api/stats": "Get system statistics",
}


def welcome_payload() -> dict:
    return {
        "success": True,
        "message": "Welcome to PiSync Backend API",
        "version": "1.0.0",
        "documentation": "/api-docs",
        "endpoints": ENDPOINTS,
    }


@router.get("")
def index():
    """List the available endpoints."""
    return welcome_payload()


@router.post(
    "/sync-event",
    response_model=ApiResponse[SyncEventResponse],
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(RATE_LIMIT)
def create_sync_event(
    request: Request,
    payload: SyncEventCreate,
    db: Session = Depends(get_db),
):
    """
    Record one sync report from a device.

    The device is registered automatically on its first report and its
    last-seen time is refreshed on every accepted report.
    Raises: 400 on invalid payload or a timestamp in the future.
    """
    event = SyncService(db).process_sync_event(payload)
    return ApiResponse[SyncEventResponse](
        message="Sync event processed successfully",
        data=SyncEventResponse.model_validate(event),
    )


@router.get(
    "/device/{device_id}/sync-history",
    response_model=ApiResponse[SyncHistoryResponse],
)
@limiter.limit(RATE_LIMIT)
def get_device_sync_history(
    request: Request,
    device_id: str = Path(min_length=1, max_length=255),
    limit: int = Query(default=50, ge=1, le=1000, description="Number of records to return"),
    offset: int = Query(default=0, ge=0, description="Number of records to skip"),
    start_date: Optional[datetime] = Query(
        default=None, alias="startDate", description="Filter events from this date"
    ),
    end_date: Optional[datetime] = Query(
        default=None, alias="endDate", description="Filter events until this date"
    ),
    db: Session = Depends(get_db),
):
    """Get paginated sync history and lifetime statistics for a device."""
    result = SyncService(db).get_device_sync_history(
        device_id,
        limit=limit,
        offset=offset,
        start_date=to_naive_utc(start_date) if start_date else None,
        end_date=to_naive_utc(end_date) if end_date else None,
    )
    return ApiResponse[SyncHistoryResponse](
        message="Sync history retrieved successfully",
        data=result,
    )


@router.get(
    "/device/{device_id}/consecutive-failures",
    response_model=ApiResponse[ConsecutiveFailuresResponse],
)
@limiter.limit(RATE_LIMIT)
def get_consecutive_failures(
    request: Request,
    device_id: str = Path(min_length=1, max_length=255),
    limit: int = Query(default=3, ge=1, le=100, description="Number of recent syncs to inspect"),
    db: Session = Depends(get_db),
):
    """Report whether a device's most recent syncs all failed."""
    result = SyncService(db).get_consecutive_failures(device_id, limit=limit)
    return ApiResponse[ConsecutiveFailuresResponse](
        message="Consecutive failure check completed successfully",
        data=result,
    )


@router.get(
    "/devices/repeated-failures",
    response_model=ApiResponse[RepeatedFailuresResponse],
)
@limiter.limit(RATE_LIMIT)
def get_devices_with_repeated_failures(
    request: Request,
    threshold: int = Query(default=3, ge=1, le=100, description="Minimum number of failures"),
    db: Session = Depends(get_db),
):
    """Get devices with at least `threshold` failed syncs."""
    result = SyncService(db).get_devices_with_repeated_failures(threshold)
    return ApiResponse[RepeatedFailuresResponse](
        message="Devices with repeated failures retrieved successfully",
        data=result,
    )


@router.get("/stats", response_model=ApiResponse[SystemStatsResponse])
@limiter.limit(RATE_LIMIT)
def get_system_stats(request: Request, db: Session = Depends(get_db)):
    """Get system-wide sync statistics."""
    return ApiResponse[SystemStatsResponse](
        message="System statistics retrieved successfully",
        data=SyncService(db).get_system_stats(),
    )
