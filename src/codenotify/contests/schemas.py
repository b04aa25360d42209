"""Contest domain records and API schemas."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

# Platform-native contest payload, exactly as returned by the upstream endpoint.
RawContest = dict[str, Any]

# Fields the reconciler owns and compares on every sync.
TRACKED_FIELDS = (
    "name",
    "phase",
    "type",
    "difficulty",
    "start_time",
    "end_time",
    "duration_minutes",
    "participant_count",
    "problem_count",
    "description",
    "location",
    "website_url",
    "registration_url",
    "platform_metadata",
    "is_active",
)


@dataclass(frozen=True)
class NormalizedContest:
    """A contest mapped into the shared shape, ready for reconciliation."""

    platform: str
    platform_id: str
    name: str
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    phase: str
    type: str
    difficulty: str | None = None
    participant_count: int | None = None
    problem_count: int | None = None
    description: str | None = None
    location: str | None = None
    website_url: str | None = None
    registration_url: str | None = None
    platform_metadata: dict[str, Any] = field(default_factory=dict)
    is_active: bool = True

    def tracked_values(self) -> dict[str, Any]:
        """Tracked fields that carry a value (None means 'source did not say')."""
        values = asdict(self)
        return {k: values[k] for k in TRACKED_FIELDS if values[k] is not None}


# --- Sync ---


class SyncResult(BaseModel):
    """Outcome of one platform sync."""

    platform: str
    synced: int = 0
    updated: int = 0
    failed: int = 0
    deactivated: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SyncAllResponse(BaseModel):
    results: dict[str, SyncResult]
    total_synced: int
    total_updated: int
    total_failed: int


class CleanupResponse(BaseModel):
    deleted_count: int
    cutoff_days: int


# --- Queries ---


class ContestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    platform_id: str
    platform: str
    name: str
    phase: str
    type: str
    difficulty: str | None = None
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    participant_count: int
    problem_count: int
    description: str | None = None
    location: str | None = None
    website_url: str | None = None
    registration_url: str | None = None
    platform_metadata: dict[str, Any] = {}
    is_active: bool
    is_notified: bool
    created_at: datetime
    updated_at: datetime


class ContestListResponse(BaseModel):
    contests: list[ContestResponse]
    total: int
    page: int
    per_page: int


class ContestStatsResponse(BaseModel):
    total: int
    active: int
    upcoming: int
    by_platform: dict[str, int]
    by_phase: dict[str, int]
