"""Read-side contest queries for the public API."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import ColumnElement, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from codenotify.contests.enums import ContestPhase
from codenotify.db.models import Contest


def _phase_conditions(phase: ContestPhase | str, now: datetime) -> list[ColumnElement[bool]]:
    """Phase as of ``now`` from the contest window; the stored phase lags until the next sync."""
    phase = ContestPhase(phase)
    if phase is ContestPhase.BEFORE:
        return [Contest.start_time > now]
    if phase is ContestPhase.CODING:
        return [Contest.start_time <= now, Contest.end_time > now]
    return [Contest.end_time <= now]


def _like_pattern(search: str) -> str:
    escaped = search.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


async def list_contests(
    session: AsyncSession,
    *,
    platform: str | None = None,
    phase: str | None = None,
    contest_type: str | None = None,
    difficulty: str | None = None,
    search: str | None = None,
    start_after: datetime | None = None,
    start_before: datetime | None = None,
    active_only: bool = True,
    page: int = 1,
    per_page: int = 20,
    now: datetime | None = None,
) -> tuple[list[Contest], int]:
    """Filtered, paginated contests ordered by start time.

    Returns:
        Tuple of (contests on the requested page, total matching count).
    """
    now = now or datetime.now(timezone.utc)
    conditions = []
    if active_only:
        conditions.append(Contest.is_active.is_(True))
    if platform:
        conditions.append(Contest.platform == platform)
    if phase:
        conditions.extend(_phase_conditions(phase, now))
    if contest_type:
        conditions.append(Contest.type == contest_type)
    if difficulty:
        conditions.append(Contest.difficulty == difficulty)
    if start_after:
        conditions.append(Contest.start_time >= start_after)
    if start_before:
        conditions.append(Contest.start_time <= start_before)
    if search:
        pattern = _like_pattern(search)
        conditions.append(
            or_(
                func.lower(Contest.name).like(pattern, escape="\\"),
                func.lower(Contest.description).like(pattern, escape="\\"),
            )
        )

    total = (await session.execute(select(func.count(Contest.id)).where(*conditions))).scalar_one()
    result = await session.execute(
        select(Contest)
        .where(*conditions)
        .order_by(Contest.start_time.asc(), Contest.id.asc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def get_upcoming_contests(
    session: AsyncSession,
    *,
    hours: int = 24,
    platform: str | None = None,
    now: datetime | None = None,
) -> list[Contest]:
    """Active contests starting within the next ``hours`` hours."""
    now = now or datetime.now(timezone.utc)
    query = select(Contest).where(
        Contest.is_active.is_(True),
        Contest.start_time >= now,
        Contest.start_time <= now + timedelta(hours=hours),
    )
    if platform:
        query = query.where(Contest.platform == platform)
    result = await session.execute(query.order_by(Contest.start_time.asc()))
    return list(result.scalars().all())


async def get_contest(session: AsyncSession, contest_id: int) -> Contest | None:
    return await session.get(Contest, contest_id)


async def get_contest_stats(session: AsyncSession, now: datetime | None = None) -> dict:
    """Contest counts overall, by platform and by phase."""
    now = now or datetime.now(timezone.utc)

    total = (await session.execute(select(func.count(Contest.id)))).scalar_one()
    active = (
        await session.execute(select(func.count(Contest.id)).where(Contest.is_active.is_(True)))
    ).scalar_one()
    upcoming = (
        await session.execute(
            select(func.count(Contest.id)).where(Contest.is_active.is_(True), Contest.start_time > now)
        )
    ).scalar_one()

    by_platform_rows = await session.execute(
        select(Contest.platform, func.count(Contest.id)).group_by(Contest.platform)
    )
    by_phase = {}
    for phase in ContestPhase:
        count = (
            await session.execute(select(func.count(Contest.id)).where(*_phase_conditions(phase, now)))
        ).scalar_one()
        if count:
            by_phase[phase.value] = count

    return {
        "total": total,
        "active": active,
        "upcoming": upcoming,
        "by_platform": {platform: count for platform, count in by_platform_rows.all()},
        "by_phase": by_phase,
    }
