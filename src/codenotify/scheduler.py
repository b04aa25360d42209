"""Cron-driven ticker tasks for contest sync, notification scans and cleanup.

Each job runs in its own asyncio task that sleeps until the next cron
fire time. A tick is skipped when its enabled flag is off or when the
previous tick of the same job is still in flight, and it is cancelled
after ``tick_timeout_seconds``. Errors are logged and the loop waits for
the next fire time.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
from croniter import croniter
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from codenotify.config import Settings
from codenotify.contests.platforms import build_adapters
from codenotify.contests.retention import cleanup_contests
from codenotify.contests.schemas import SyncResult
from codenotify.contests.sync_service import ContestSyncService
from codenotify.errors import TickInProgress
from codenotify.notifications.channels import build_channels
from codenotify.notifications.schemas import NotificationScanResponse
from codenotify.notifications.service import NotificationService

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

T = TypeVar("T")

SYNC_JOB = "contest_sync"
NOTIFY_JOB = "notification_scan"
CLEANUP_JOB = "contest_cleanup"


def next_fire_time(expression: str, after: datetime) -> datetime:
    """Next time the cron expression fires strictly after ``after`` (UTC)."""
    return croniter(expression, after).get_next(datetime)


def log_sync_results(results: dict[str, SyncResult]) -> None:
    """Per-platform lines are logged by the sync service; this adds the total."""
    failed_platforms = sorted(p for p, r in results.items() if r.error)
    if failed_platforms:
        logger.warning("Platforms with sync errors: %s", ", ".join(failed_platforms))
    logger.info(
        "Total: %d new, %d updated, %d failed",
        sum(r.synced for r in results.values()),
        sum(r.updated for r in results.values()),
        sum(r.failed for r in results.values()),
    )


class ContestScheduler:
    """Owns the three periodic jobs and their overlap protection."""

    def __init__(
        self,
        settings: Settings,
        sync_service: ContestSyncService,
        notification_service: NotificationService,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        for expression in (
            settings.contest_sync_interval,
            settings.notification_scan_interval,
            settings.contest_cleanup_interval,
        ):
            if not croniter.is_valid(expression):
                raise ValueError(f"Invalid cron expression: {expression!r}")

        self.settings = settings
        self.sync_service = sync_service
        self.notification_service = notification_service
        self._session_factory = session_factory
        self._sleep = sleep
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._in_flight: set[str] = set()
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def is_in_flight(self, job: str) -> bool:
        return job in self._in_flight

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self.running:
            return
        jobs: list[tuple[str, str, Callable[[], Awaitable[Any]]]] = [
            (SYNC_JOB, self.settings.contest_sync_interval, self.run_sync_tick),
            (NOTIFY_JOB, self.settings.notification_scan_interval, self.run_notification_tick),
            (CLEANUP_JOB, self.settings.contest_cleanup_interval, self.run_cleanup_tick),
        ]
        self._tasks = [
            asyncio.create_task(self._loop(name, expression, tick), name=f"scheduler:{name}")
            for name, expression, tick in jobs
        ]
        logger.info(
            "Scheduler started (sync=%r, notifications=%r, cleanup=%r)",
            self.settings.contest_sync_interval,
            self.settings.notification_scan_interval,
            self.settings.contest_cleanup_interval,
        )

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            logger.info("Scheduler stopped")

    async def _loop(self, name: str, expression: str, tick: Callable[[], Awaitable[Any]]) -> None:
        while True:
            now = self._clock()
            fire_at = next_fire_time(expression, now)
            delay = max(0.0, (fire_at - now).total_seconds())
            logger.debug("Next %s tick at %s", name, fire_at.isoformat())
            await self._sleep(delay)
            await tick()

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    async def _run_tick(self, job: str, enabled: bool, work: Callable[[], Awaitable[T]]) -> T | None:
        if not enabled:
            logger.debug("%s is disabled, skipping tick", job)
            return None
        if job in self._in_flight:
            logger.warning("%s tick skipped: previous run still in progress", job)
            return None

        self._in_flight.add(job)
        try:
            return await asyncio.wait_for(work(), timeout=self.settings.tick_timeout_seconds)
        except TimeoutError:
            logger.error("%s tick exceeded %.0fs and was abandoned", job, self.settings.tick_timeout_seconds)
        except Exception:
            logger.exception("%s tick failed", job)
        finally:
            self._in_flight.discard(job)
        return None

    async def _sync_all(self) -> dict[str, SyncResult]:
        logger.info("Starting scheduled contest sync")
        results = await self.sync_service.sync_all_platforms()
        log_sync_results(results)
        return results

    async def _cleanup(self) -> int:
        async with self._session_factory() as session:
            return await cleanup_contests(session, self.settings.contest_cleanup_days, now=self._clock())

    async def run_sync_tick(self) -> dict[str, SyncResult] | None:
        return await self._run_tick(SYNC_JOB, self.settings.contest_sync_enabled, self._sync_all)

    async def run_notification_tick(self) -> NotificationScanResponse | None:
        return await self._run_tick(
            NOTIFY_JOB,
            self.settings.notifications_enabled,
            lambda: self.notification_service.notify_upcoming_contests(now=self._clock()),
        )

    async def run_cleanup_tick(self) -> int | None:
        return await self._run_tick(CLEANUP_JOB, self.settings.contest_cleanup_enabled, self._cleanup)

    async def trigger_manual_sync(self) -> dict[str, SyncResult]:
        """Run a full sync now. Errors propagate to the caller.

        Raises:
            TickInProgress: If a sync is already running.
        """
        if SYNC_JOB in self._in_flight:
            raise TickInProgress("A contest sync is already running")
        self._in_flight.add(SYNC_JOB)
        try:
            logger.info("Manual contest sync triggered")
            return await self._sync_all()
        finally:
            self._in_flight.discard(SYNC_JOB)


def build_scheduler(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    http_client: httpx.AsyncClient,
    redis: Redis | None = None,
) -> ContestScheduler:
    """Wire adapters, channels and services into a scheduler."""
    sync_service = ContestSyncService(
        session_factory,
        build_adapters(settings, http_client),
        concurrency=settings.platform_sync_concurrency,
    )
    notification_service = NotificationService(
        session_factory,
        build_channels(settings, http_client, redis),
        window_hours=settings.notification_window_hours,
    )
    return ContestScheduler(settings, sync_service, notification_service, session_factory)
