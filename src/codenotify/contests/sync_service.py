"""Contest sync orchestration: fetch, normalize and reconcile per platform."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from codenotify.contests.enums import Platform, parse_platform
from codenotify.contests.normalizer import normalize
from codenotify.contests.platforms.base import PlatformAdapter
from codenotify.contests.reconciler import ContestReconciler
from codenotify.contests.schemas import NormalizedContest, RawContest, SyncResult
from codenotify.errors import NormalizationError, StorageUnavailable, UpstreamMalformed, UpstreamUnavailable

logger = logging.getLogger(__name__)


class ContestSyncService:
    """Runs platform syncs, each platform in its own session.

    Adapter failures become an ``error`` on that platform's ``SyncResult``;
    ``StorageUnavailable`` propagates so the caller can abort the tick.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        adapters: Mapping[Platform, PlatformAdapter],
        *,
        concurrency: int = 4,
    ) -> None:
        self._session_factory = session_factory
        self._adapters = dict(adapters)
        self._concurrency = max(1, concurrency)

    @property
    def platforms(self) -> list[Platform]:
        return list(self._adapters)

    def _adapter_for(self, platform: Platform | str) -> tuple[Platform, PlatformAdapter]:
        resolved = platform if isinstance(platform, Platform) else parse_platform(platform)
        adapter = self._adapters.get(resolved)
        if adapter is None:
            raise ValueError(f"Platform {resolved.value} is not enabled")
        return resolved, adapter

    async def sync_platform(
        self,
        platform: Platform | str,
        force_sync: bool = False,
        now: datetime | None = None,
    ) -> SyncResult:
        """Sync one platform. Raises ValueError for unknown or disabled platforms."""
        platform, adapter = self._adapter_for(platform)
        now = now or datetime.now(timezone.utc)

        try:
            raw_contests = await adapter.fetch_contests(force_sync=force_sync)
        except (UpstreamUnavailable, UpstreamMalformed) as exc:
            logger.error("Failed to fetch %s contests: %s", platform.value, exc)
            return SyncResult(platform=platform.value, error=str(exc))

        normalized, reported_ids, invalid = self._normalize_all(platform, raw_contests, now)

        async with self._session_factory() as session:
            outcome = await ContestReconciler(session).reconcile(
                platform,
                normalized,
                now=now,
                reported_ids=reported_ids,
            )

        result = SyncResult(
            platform=platform.value,
            synced=outcome.synced,
            updated=outcome.updated,
            failed=outcome.failed + invalid,
            deactivated=outcome.deactivated,
        )
        logger.info(
            "%s: %d new, %d updated, %d failed",
            platform.value, result.synced, result.updated, result.failed,
        )
        return result

    def _normalize_all(
        self,
        platform: Platform,
        raw_contests: list[RawContest],
        now: datetime,
    ) -> tuple[list[NormalizedContest], set[str], int]:
        normalized: dict[str, NormalizedContest] = {}
        reported_ids: set[str] = set()
        invalid = 0
        for raw in raw_contests:
            try:
                contest = normalize(raw, platform, now=now)
            except NormalizationError as exc:
                invalid += 1
                if exc.platform_id:
                    reported_ids.add(exc.platform_id)
                logger.warning("Skipping contest: %s", exc)
                continue
            # Last occurrence wins when a payload repeats an id.
            normalized[contest.platform_id] = contest
            reported_ids.add(contest.platform_id)
        return list(normalized.values()), reported_ids, invalid

    async def sync_all_platforms(self, force_sync: bool = False) -> dict[str, SyncResult]:
        """Sync every enabled platform concurrently with bounded parallelism."""
        semaphore = asyncio.Semaphore(self._concurrency)

        async def _run(platform: Platform) -> SyncResult:
            async with semaphore:
                return await self.sync_platform(platform, force_sync=force_sync)

        platforms = self.platforms
        outcomes = await asyncio.gather(*(_run(p) for p in platforms), return_exceptions=True)

        results: dict[str, SyncResult] = {}
        storage_error: StorageUnavailable | None = None
        for platform, outcome in zip(platforms, outcomes, strict=True):
            if isinstance(outcome, StorageUnavailable):
                storage_error = storage_error or outcome
                results[platform.value] = SyncResult(platform=platform.value, error=str(outcome))
            elif isinstance(outcome, BaseException):
                logger.error("Sync of %s failed", platform.value, exc_info=outcome)
                results[platform.value] = SyncResult(platform=platform.value, error=str(outcome))
            else:
                results[platform.value] = outcome

        if storage_error is not None:
            raise storage_error
        return results
