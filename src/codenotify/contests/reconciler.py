"""Reconcile normalized contests against stored state.

Each contest is written in its own transaction keyed by
``(platform, platform_id)``: insert when absent, field-level merge when
any tracked field differs, no-op when identical. A failing record is
logged and counted without aborting the batch; a lost duplicate-key race
on insert falls back to the update path. Connectivity errors are raised
as ``StorageUnavailable`` so the caller can abort the tick.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from codenotify.contests.enums import Platform
from codenotify.contests.schemas import NormalizedContest
from codenotify.database import STORAGE_ERRORS
from codenotify.db.models import Contest
from codenotify.errors import StorageUnavailable

logger = logging.getLogger(__name__)


class UpsertOutcome(Enum):
    SYNCED = "synced"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass
class ReconcileResult:
    synced: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    deactivated: int = 0


def diff_contest(existing: Contest, incoming: NormalizedContest) -> dict[str, Any]:
    """Tracked fields whose incoming value differs from the stored one.

    Fields the source left empty (None) are never part of the diff, so a
    sparse payload cannot clobber values set earlier or by other writers.
    """
    changes: dict[str, Any] = {}
    for field, value in incoming.tracked_values().items():
        if getattr(existing, field) != value:
            changes[field] = value
    return changes


class ContestReconciler:
    """Atomic per-record upserts for one platform's contest batch."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def reconcile(
        self,
        platform: Platform | str,
        contests: Sequence[NormalizedContest],
        now: datetime | None = None,
        reported_ids: Collection[str] | None = None,
    ) -> ReconcileResult:
        """Upsert every contest, then soft-delete upcoming ones no longer reported.

        ``reported_ids`` defaults to the ids in ``contests``; callers pass the
        full set the platform returned (including records that failed to
        normalize) so a bad payload does not deactivate a live contest.
        """
        platform = Platform(platform)
        now = now or datetime.now(timezone.utc)
        result = ReconcileResult()

        for contest in contests:
            try:
                outcome = await self._upsert(platform, contest, now)
            except STORAGE_ERRORS as exc:
                await self._safe_rollback()
                raise StorageUnavailable(f"contest store unavailable during {platform.value} sync: {exc}") from exc
            except Exception:
                await self._safe_rollback()
                result.failed += 1
                logger.exception("Failed to reconcile %s contest %s", platform.value, contest.platform_id)
                continue

            if outcome is UpsertOutcome.SYNCED:
                result.synced += 1
            elif outcome is UpsertOutcome.UPDATED:
                result.updated += 1
            else:
                result.unchanged += 1

        reported = set(reported_ids) if reported_ids is not None else {c.platform_id for c in contests}
        result.deactivated = await self.deactivate_missing(platform, reported, now)
        return result

    async def deactivate_missing(
        self,
        platform: Platform | str,
        reported_ids: Collection[str],
        now: datetime | None = None,
    ) -> int:
        """Soft-delete upcoming contests the platform no longer reports."""
        platform = Platform(platform)
        now = now or datetime.now(timezone.utc)
        if not reported_ids:
            return 0
        try:
            result = await self.session.execute(
                update(Contest)
                .where(
                    Contest.platform == platform.value,
                    Contest.is_active.is_(True),
                    Contest.start_time > now,
                    Contest.platform_id.not_in(list(reported_ids)),
                )
                .values(is_active=False, updated_at=now)
            )
            await self.session.commit()
        except STORAGE_ERRORS as exc:
            await self._safe_rollback()
            raise StorageUnavailable(f"contest store unavailable during {platform.value} sync: {exc}") from exc

        if result.rowcount:
            logger.info("Deactivated %d %s contests no longer reported upstream", result.rowcount, platform.value)
        return result.rowcount or 0

    async def _get(self, platform: Platform, platform_id: str) -> Contest | None:
        result = await self.session.execute(
            select(Contest)
            .where(Contest.platform == platform.value, Contest.platform_id == platform_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _upsert(self, platform: Platform, incoming: NormalizedContest, now: datetime) -> UpsertOutcome:
        existing = await self._get(platform, incoming.platform_id)

        if existing is None:
            self.session.add(
                Contest(
                    platform=platform.value,
                    platform_id=incoming.platform_id,
                    **incoming.tracked_values(),
                    is_notified=False,
                    last_synced_at=now,
                    created_at=now,
                    updated_at=now,
                )
            )
            try:
                await self.session.commit()
                return UpsertOutcome.SYNCED
            except IntegrityError:
                # Another writer inserted the same key first.
                await self.session.rollback()
                existing = await self._get(platform, incoming.platform_id)
                if existing is None:
                    raise

        changes = diff_contest(existing, incoming)
        if not changes:
            return UpsertOutcome.UNCHANGED

        await self.session.execute(
            update(Contest)
            .where(Contest.id == existing.id)
            .values(**changes, updated_at=now, last_synced_at=now)
        )
        await self.session.commit()
        logger.debug("Updated %s contest %s: %s", platform.value, incoming.platform_id, sorted(changes))
        return UpsertOutcome.UPDATED

    async def _safe_rollback(self) -> None:
        try:
            await self.session.rollback()
        except STORAGE_ERRORS:
            logger.warning("Rollback failed after storage error", exc_info=True)
