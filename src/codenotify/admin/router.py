"""Admin trigger surface: on-demand sync, cleanup, scans and redelivery.

Every route requires the ``X-Admin-Token`` header.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from codenotify.config import Settings
from codenotify.contests.retention import cleanup_contests
from codenotify.contests.schemas import CleanupResponse, SyncAllResponse, SyncResult
from codenotify.contests.sync_service import ContestSyncService
from codenotify.dependencies import (
    get_app_settings,
    get_db,
    get_notification_service,
    get_scheduler,
    get_sync_service,
    require_admin_token,
)
from codenotify.notifications.schemas import (
    ChannelName,
    NotificationRecordListResponse,
    NotificationRecordResponse,
    NotificationScanResponse,
    NotificationStatus,
)
from codenotify.notifications.service import NotificationService, list_notification_records
from codenotify.scheduler import ContestScheduler

router = APIRouter(
    prefix="/api/v1/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin_token)],
)


# ---------------------------------------------------------------------------
# Contests
# ---------------------------------------------------------------------------
@router.post("/contests/sync/{platform}", response_model=SyncResult)
async def sync_platform(
    platform: str,
    force: bool = Query(False),
    sync_service: ContestSyncService = Depends(get_sync_service),
) -> SyncResult:
    """Sync one platform. Adapter failures come back in the ``error`` field."""
    try:
        return await sync_service.sync_platform(platform, force_sync=force)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/contests/sync", response_model=SyncAllResponse)
async def sync_all_platforms(scheduler: ContestScheduler = Depends(get_scheduler)) -> SyncAllResponse:
    results = await scheduler.trigger_manual_sync()
    return SyncAllResponse(
        results=results,
        total_synced=sum(r.synced for r in results.values()),
        total_updated=sum(r.updated for r in results.values()),
        total_failed=sum(r.failed for r in results.values()),
    )


@router.post("/contests/cleanup", response_model=CleanupResponse)
async def cleanup(
    days: int | None = Query(None, ge=0, le=3650),
    settings: Settings = Depends(get_app_settings),
    db: AsyncSession = Depends(get_db),
) -> CleanupResponse:
    cutoff_days = settings.contest_cleanup_days if days is None else days
    deleted = await cleanup_contests(db, cutoff_days)
    return CleanupResponse(deleted_count=deleted, cutoff_days=cutoff_days)


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
@router.post("/notifications/scan", response_model=NotificationScanResponse)
async def scan_notifications(
    notification_service: NotificationService = Depends(get_notification_service),
) -> NotificationScanResponse:
    return await notification_service.notify_upcoming_contests()


@router.get("/notifications", response_model=NotificationRecordListResponse)
async def list_notifications(
    status: NotificationStatus | None = Query(None),
    channel: ChannelName | None = Query(None),
    contest_id: int | None = Query(None),
    user_id: int | None = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> NotificationRecordListResponse:
    records, total = await list_notification_records(
        db,
        status=status,
        channel=channel,
        contest_id=contest_id,
        user_id=user_id,
        page=page,
        per_page=per_page,
    )
    return NotificationRecordListResponse(
        records=[NotificationRecordResponse.model_validate(r) for r in records],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post("/notifications/{record_id}/retry", response_model=NotificationRecordResponse)
async def retry_notification(
    record_id: int,
    notification_service: NotificationService = Depends(get_notification_service),
) -> NotificationRecordResponse:
    try:
        record = await notification_service.redeliver(record_id)
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    if record is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return NotificationRecordResponse.model_validate(record)
