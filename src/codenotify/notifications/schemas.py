"""Notification payloads, delivery results and API schemas."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class ChannelName(StrEnum):
    EMAIL = "email"
    WHATSAPP = "whatsapp"
    PUSH = "push"


class NotificationStatus(StrEnum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


@dataclass(frozen=True)
class NotificationPayload:
    """What a reminder says about one contest."""

    contest_id: int
    contest_name: str
    platform: str
    start_time: datetime
    hours_until_start: int
    website_url: str | None = None


@dataclass(frozen=True)
class NotificationResult:
    success: bool
    channel: str
    message_id: str | None = None
    error: str | None = None


# --- API ---


class NotificationRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    contest_id: int
    channel: str
    status: str
    message_id: str | None = None
    error: str | None = None
    attempts: int
    sent_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class NotificationRecordListResponse(BaseModel):
    records: list[NotificationRecordResponse]
    total: int
    page: int
    per_page: int


class NotificationScanResponse(BaseModel):
    """Summary of one notification scan."""

    contests_scanned: int = 0
    contests_notified: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
