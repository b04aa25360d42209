"""Public contest API router."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from codenotify.contests import schemas, service
from codenotify.contests.enums import ContestPhase, ContestType, DifficultyLevel, Platform
from codenotify.dependencies import get_db

router = APIRouter(prefix="/api/v1/contests", tags=["Contests"])


# ---------------------------------------------------------------------------
# GET /contests: filtered, paginated list
# ---------------------------------------------------------------------------
@router.get("", response_model=schemas.ContestListResponse)
async def list_contests(
    platform: Platform | None = Query(None),
    phase: ContestPhase | None = Query(None),
    contest_type: ContestType | None = Query(None, alias="type"),
    difficulty: DifficultyLevel | None = Query(None),
    search: str | None = Query(None, min_length=1, max_length=100),
    start_after: datetime | None = Query(None),
    start_before: datetime | None = Query(None),
    include_inactive: bool = Query(False),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> schemas.ContestListResponse:
    contests, total = await service.list_contests(
        db,
        platform=platform,
        phase=phase,
        contest_type=contest_type,
        difficulty=difficulty,
        search=search,
        start_after=start_after,
        start_before=start_before,
        active_only=not include_inactive,
        page=page,
        per_page=per_page,
    )
    return schemas.ContestListResponse(
        contests=[schemas.ContestResponse.model_validate(c) for c in contests],
        total=total,
        page=page,
        per_page=per_page,
    )


# ---------------------------------------------------------------------------
# GET /contests/upcoming: starting within the next N hours
# ---------------------------------------------------------------------------
@router.get("/upcoming", response_model=list[schemas.ContestResponse])
async def upcoming_contests(
    hours: int = Query(24, ge=1, le=720),
    platform: Platform | None = Query(None),
    db: AsyncSession = Depends(get_db),
) -> list[schemas.ContestResponse]:
    contests = await service.get_upcoming_contests(db, hours=hours, platform=platform)
    return [schemas.ContestResponse.model_validate(c) for c in contests]


# ---------------------------------------------------------------------------
# GET /contests/stats: counts by platform and phase
# ---------------------------------------------------------------------------
@router.get("/stats", response_model=schemas.ContestStatsResponse)
async def contest_stats(db: AsyncSession = Depends(get_db)) -> schemas.ContestStatsResponse:
    return schemas.ContestStatsResponse(**await service.get_contest_stats(db))


# ---------------------------------------------------------------------------
# GET /contests/{id}
# ---------------------------------------------------------------------------
@router.get("/{contest_id}", response_model=schemas.ContestResponse)
async def get_contest(contest_id: int, db: AsyncSession = Depends(get_db)) -> schemas.ContestResponse:
    contest = await service.get_contest(db, contest_id)
    if contest is None:
        raise HTTPException(status_code=404, detail="Contest not found")
    return schemas.ContestResponse.model_validate(contest)
