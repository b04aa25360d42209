"""Contest reminder dispatch.

A scan picks contests that are upcoming within the notification window,
active and not yet notified. For each one, every subscribed user whose own
lead time has been reached gets one delivery per enabled channel:

1. claim: insert a ``pending`` record; the unique
   ``(user_id, contest_id, channel)`` key means overlapping scans cannot
   both claim the same delivery
2. send through the channel
3. record the result as ``sent`` or ``failed``

Once every subscribed user has been attempted, the contest flips to
notified with a single conditional update, regardless of delivery
success. Failed records are retried explicitly through ``redeliver``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from codenotify.contests.enums import ContestPhase
from codenotify.database import STORAGE_ERRORS
from codenotify.db.models import Contest, NotificationRecord, User
from codenotify.errors import StorageUnavailable
from codenotify.notifications.channels.base import NotificationChannel
from codenotify.notifications.eligibility import (
    Subscriber,
    delivery_target,
    enabled_channels,
    hours_until,
    is_due,
    is_subscribed,
)
from codenotify.notifications.schemas import (
    NotificationPayload,
    NotificationResult,
    NotificationScanResponse,
    NotificationStatus,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DueContest:
    id: int
    platform: str
    type: str
    payload_base: NotificationPayload


def build_payload(contest: Contest, now: datetime) -> NotificationPayload:
    return NotificationPayload(
        contest_id=contest.id,
        contest_name=contest.name,
        platform=contest.platform,
        start_time=contest.start_time,
        hours_until_start=max(0, round(hours_until(contest.start_time, now))),
        website_url=contest.website_url,
    )


class NotificationService:
    """Scans for due contests and dispatches reminders."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        channels: Mapping[str, NotificationChannel],
        *,
        window_hours: int = 24,
    ) -> None:
        self._session_factory = session_factory
        self._channels = dict(channels)
        self._window_hours = window_hours

    async def notify_upcoming_contests(self, now: datetime | None = None) -> NotificationScanResponse:
        """Run one notification scan. Raises StorageUnavailable if the store is unreachable."""
        now = now or datetime.now(timezone.utc)
        summary = NotificationScanResponse()

        async with self._session_factory() as session:
            try:
                contests, subscribers = await self._load_candidates(session, now)
                summary.contests_scanned = len(contests)

                for contest in contests:
                    await self._process_contest(session, contest, subscribers, now, summary)
            except STORAGE_ERRORS as exc:
                await session.rollback()
                raise StorageUnavailable(f"contest store unavailable during notification scan: {exc}") from exc

        logger.info(
            "Notification scan: %d contests due, %d notified, %d sent, %d failed",
            summary.contests_scanned, summary.contests_notified, summary.sent, summary.failed,
        )
        return summary

    async def _load_candidates(
        self, session: AsyncSession, now: datetime
    ) -> tuple[list[DueContest], list[Subscriber]]:
        window_end = now + timedelta(hours=self._window_hours)
        contest_rows = await session.execute(
            select(Contest)
            .where(
                Contest.start_time >= now,
                Contest.start_time <= window_end,
                Contest.phase == ContestPhase.BEFORE.value,
                Contest.is_active.is_(True),
                Contest.is_notified.is_(False),
            )
            .order_by(Contest.start_time.asc())
        )
        contests = [
            DueContest(id=c.id, platform=c.platform, type=c.type, payload_base=build_payload(c, now))
            for c in contest_rows.scalars().all()
        ]
        if not contests:
            return [], []

        user_rows = await session.execute(select(User).where(User.is_active.is_(True)))
        subscribers = [Subscriber.from_user(u) for u in user_rows.scalars().all()]
        return contests, subscribers

    async def _process_contest(
        self,
        session: AsyncSession,
        contest: DueContest,
        subscribers: list[Subscriber],
        now: datetime,
        summary: NotificationScanResponse,
    ) -> None:
        subscribed = [s for s in subscribers if is_subscribed(s.preferences, contest.platform, contest.type)]
        due = [s for s in subscribed if is_due(s.preferences, contest.payload_base.start_time, now)]

        for subscriber in due:
            for channel_name in enabled_channels(subscriber.preferences):
                record_id = await self._claim(session, subscriber.id, contest.id, channel_name, now)
                if record_id is None:
                    summary.skipped += 1
                    continue
                result = await self._send(subscriber, channel_name, contest.payload_base)
                await self._record_result(session, record_id, result, now)
                if result.success:
                    summary.sent += 1
                else:
                    summary.failed += 1

        if len(due) < len(subscribed):
            logger.debug(
                "Contest %d: %d of %d subscribers not yet within their lead time",
                contest.id, len(subscribed) - len(due), len(subscribed),
            )
            return

        if await self._mark_notified(session, contest.id, now):
            summary.contests_notified += 1

    async def _claim(
        self,
        session: AsyncSession,
        user_id: int,
        contest_id: int,
        channel: str,
        now: datetime,
    ) -> int | None:
        """Insert a pending record. Returns its id, or None if already claimed."""
        record = NotificationRecord(
            user_id=user_id,
            contest_id=contest_id,
            channel=channel,
            status=NotificationStatus.PENDING.value,
            attempts=0,
            created_at=now,
            updated_at=now,
        )
        session.add(record)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            return None
        return record.id

    async def _send(self, subscriber: Subscriber, channel_name: str, payload: NotificationPayload) -> NotificationResult:
        channel = self._channels.get(channel_name)
        if channel is None:
            return NotificationResult(success=False, channel=channel_name, error=f"unknown channel {channel_name}")
        target = delivery_target(subscriber, channel_name)
        if not target:
            return NotificationResult(success=False, channel=channel_name, error=f"user has no {channel_name} target")
        try:
            return await channel.send(target, payload)
        except Exception as exc:
            logger.exception("Channel %s raised while notifying user %d", channel_name, subscriber.id)
            return NotificationResult(success=False, channel=channel_name, error=f"{type(exc).__name__}: {exc}")

    async def _record_result(
        self,
        session: AsyncSession,
        record_id: int,
        result: NotificationResult,
        now: datetime,
    ) -> None:
        await session.execute(
            update(NotificationRecord)
            .where(NotificationRecord.id == record_id)
            .values(
                status=(NotificationStatus.SENT if result.success else NotificationStatus.FAILED).value,
                message_id=result.message_id,
                error=result.error,
                attempts=NotificationRecord.attempts + 1,
                sent_at=now if result.success else None,
                updated_at=now,
            )
        )
        await session.commit()

    async def _mark_notified(self, session: AsyncSession, contest_id: int, now: datetime) -> bool:
        """Flip is_notified false -> true. True only for the caller that flipped it."""
        result = await session.execute(
            update(Contest)
            .where(Contest.id == contest_id, Contest.is_notified.is_(False))
            .values(is_notified=True, updated_at=now)
        )
        await session.commit()
        flipped = result.rowcount == 1
        if flipped:
            logger.info("Contest %d marked as notified", contest_id)
        return flipped

    async def redeliver(self, record_id: int, now: datetime | None = None) -> NotificationRecord | None:
        """Resend a failed (or abandoned pending) record through its channel.

        Returns the updated record, or None if it does not exist.

        Raises:
            ValueError: If the record was already delivered.
        """
        now = now or datetime.now(timezone.utc)
        async with self._session_factory() as session:
            record = await session.get(
                NotificationRecord,
                record_id,
                options=[selectinload(NotificationRecord.contest), selectinload(NotificationRecord.user)],
            )
            if record is None:
                return None
            if record.status == NotificationStatus.SENT:
                raise ValueError(f"Notification {record_id} was already delivered")

            subscriber = Subscriber.from_user(record.user)
            payload = build_payload(record.contest, now)
            channel_name = record.channel

            result = await self._send(subscriber, channel_name, payload)
            await self._record_result(session, record_id, result, now)
            logger.info(
                "Redelivered notification %d over %s: %s",
                record_id, channel_name, "sent" if result.success else result.error,
            )

            refreshed = await session.execute(
                select(NotificationRecord)
                .where(NotificationRecord.id == record_id)
                .execution_options(populate_existing=True)
            )
            return refreshed.scalar_one()


async def list_notification_records(
    session: AsyncSession,
    *,
    status: str | None = None,
    channel: str | None = None,
    contest_id: int | None = None,
    user_id: int | None = None,
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[NotificationRecord], int]:
    """Filtered, paginated notification records, newest first."""
    conditions = []
    if status:
        conditions.append(NotificationRecord.status == status)
    if channel:
        conditions.append(NotificationRecord.channel == channel)
    if contest_id is not None:
        conditions.append(NotificationRecord.contest_id == contest_id)
    if user_id is not None:
        conditions.append(NotificationRecord.user_id == user_id)

    total = (await session.execute(select(func.count(NotificationRecord.id)).where(*conditions))).scalar_one()
    result = await session.execute(
        select(NotificationRecord)
        .where(*conditions)
        .order_by(NotificationRecord.created_at.desc(), NotificationRecord.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total
