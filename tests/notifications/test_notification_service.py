"""Tests for the notification scan and explicit redelivery."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from codenotify.db.models import Contest, NotificationRecord
from codenotify.errors import StorageUnavailable
from codenotify.notifications.service import NotificationService, list_notification_records

from conftest import NOW, RecordingChannel


def _service(session_factory, *channels: RecordingChannel) -> NotificationService:
    return NotificationService(session_factory, {c.name: c for c in channels}, window_hours=24)


async def _records(session_factory) -> list[NotificationRecord]:
    async with session_factory() as session:
        result = await session.execute(select(NotificationRecord).order_by(NotificationRecord.id))
        return list(result.scalars().all())


async def _contest(session_factory, contest_id: int) -> Contest:
    async with session_factory() as session:
        return await session.get(Contest, contest_id)


class TestScan:
    async def test_due_contest_is_delivered_once(self, session_factory, make_contest, make_user, email_channel):
        contest = await make_contest(website_url="https://codeforces.com/contest/1901")
        user = await make_user()
        service = _service(session_factory, email_channel)

        summary = await service.notify_upcoming_contests(now=NOW)

        assert (summary.contests_scanned, summary.contests_notified, summary.sent, summary.failed) == (1, 1, 1, 0)
        target, payload = email_channel.sent[0]
        assert target == user.email
        assert payload.contest_id == contest.id
        assert payload.hours_until_start == 10

        [record] = await _records(session_factory)
        assert (record.status, record.channel, record.attempts, record.message_id) == ("sent", "email", 1, "email-1")
        assert record.sent_at == NOW
        assert (await _contest(session_factory, contest.id)).is_notified is True

    async def test_second_scan_sends_nothing(self, session_factory, make_contest, make_user, email_channel):
        await make_contest()
        await make_user()
        service = _service(session_factory, email_channel)

        await service.notify_upcoming_contests(now=NOW)
        summary = await service.notify_upcoming_contests(now=NOW + timedelta(minutes=15))

        assert summary.contests_scanned == 0
        assert len(email_channel.sent) == 1

    async def test_overlapping_scans_deliver_once(self, session_factory, make_contest, make_user, email_channel):
        contest = await make_contest()
        await make_user()
        first = _service(session_factory, email_channel)
        second = _service(session_factory, email_channel)

        summaries = await asyncio.gather(
            first.notify_upcoming_contests(now=NOW),
            second.notify_upcoming_contests(now=NOW),
        )

        assert len(email_channel.sent) == 1
        assert sum(s.contests_notified for s in summaries) == 1
        assert sum(s.sent for s in summaries) == 1
        assert len(await _records(session_factory)) == 1
        assert (await _contest(session_factory, contest.id)).is_notified is True

    async def test_lead_time_not_reached(self, session_factory, make_contest, make_user, email_channel):
        contest = await make_contest(start_time=NOW + timedelta(hours=20))
        await make_user(preferences={"notifyBefore": 1})

        summary = await _service(session_factory, email_channel).notify_upcoming_contests(now=NOW)

        assert summary.contests_scanned == 1
        assert summary.contests_notified == 0
        assert email_channel.sent == []
        assert (await _contest(session_factory, contest.id)).is_notified is False

    async def test_contest_flips_after_last_subscriber_is_due(
        self, session_factory, make_contest, make_user, email_channel
    ):
        contest = await make_contest(start_time=NOW + timedelta(hours=10))
        early = await make_user(preferences={"notifyBefore": 24})
        late = await make_user(preferences={"notifyBefore": 2})
        service = _service(session_factory, email_channel)

        first = await service.notify_upcoming_contests(now=NOW)
        assert [t for t, _ in email_channel.sent] == [early.email]
        assert first.contests_notified == 0

        second = await service.notify_upcoming_contests(now=NOW + timedelta(hours=9))
        assert [t for t, _ in email_channel.sent] == [early.email, late.email]
        assert second.skipped == 1
        assert second.contests_notified == 1
        assert (await _contest(session_factory, contest.id)).is_notified is True

    async def test_failed_delivery_still_marks_notified(self, session_factory, make_contest, make_user):
        failing = await make_contest(name="Codeforces Round 950 (Div. 3)")
        working = await make_contest(name="Codeforces Round 951 (Div. 2)")
        await make_user()
        channel = RecordingChannel("email", fail_for=lambda target, payload: payload.contest_id == failing.id)

        summary = await _service(session_factory, channel).notify_upcoming_contests(now=NOW)

        assert (summary.contests_notified, summary.sent, summary.failed) == (2, 1, 1)
        by_contest = {r.contest_id: r for r in await _records(session_factory)}
        assert by_contest[failing.id].status == "failed"
        assert "provider rejected" in by_contest[failing.id].error
        assert by_contest[working.id].status == "sent"
        assert (await _contest(session_factory, failing.id)).is_notified is True

    async def test_every_enabled_channel_gets_a_record(self, session_factory, make_contest, make_user):
        await make_contest()
        await make_user(
            phone_number=None,
            preferences={"notificationChannels": {"email": True, "whatsapp": True, "push": True}},
        )
        email, whatsapp, push = RecordingChannel("email"), RecordingChannel("whatsapp"), RecordingChannel("push")

        summary = await _service(session_factory, email, whatsapp, push).notify_upcoming_contests(now=NOW)

        assert (summary.sent, summary.failed) == (2, 1)
        by_channel = {r.channel: r for r in await _records(session_factory)}
        assert by_channel["whatsapp"].status == "failed"
        assert by_channel["whatsapp"].error == "user has no whatsapp target"
        assert whatsapp.sent == []
        assert push.sent[0][0] == str(by_channel["push"].user_id)

    async def test_disabled_channel_is_recorded_as_failed(self, session_factory, make_contest, make_user):
        await make_contest()
        await make_user()
        channel = RecordingChannel("email", enabled=False)

        summary = await _service(session_factory, channel).notify_upcoming_contests(now=NOW)

        assert summary.failed == 1
        [record] = await _records(session_factory)
        assert record.error == "email channel is not configured"

    async def test_subscription_filters(self, session_factory, make_contest, make_user, email_channel):
        await make_contest(platform="atcoder", platform_id="abc400", type="ABC")
        await make_contest(platform="atcoder", platform_id="arc200", type="ARC")
        subscriber = await make_user(preferences={"platforms": ["AtCoder"], "contestTypes": ["abc"]})
        await make_user()
        await make_user(is_active=False, preferences={"platforms": ["atcoder"]})

        summary = await _service(session_factory, email_channel).notify_upcoming_contests(now=NOW)

        assert [t for t, _ in email_channel.sent] == [subscriber.email]
        assert summary.contests_notified == 2

    async def test_contests_outside_scan_are_ignored(self, session_factory, make_contest, make_user, email_channel):
        await make_contest(start_time=NOW + timedelta(hours=30))
        await make_contest(start_time=NOW - timedelta(minutes=5), phase="CODING")
        await make_contest(is_active=False)
        await make_contest(is_notified=True)
        await make_user()

        summary = await _service(session_factory, email_channel).notify_upcoming_contests(now=NOW)

        assert summary.contests_scanned == 0
        assert email_channel.sent == []

    async def test_storage_outage_raises(self, session_factory, email_channel, monkeypatch):
        service = _service(session_factory, email_channel)

        async def unavailable(*args, **kwargs):
            raise OperationalError("SELECT", {}, ConnectionRefusedError("connection refused"))

        monkeypatch.setattr(service, "_load_candidates", unavailable)

        with pytest.raises(StorageUnavailable):
            await service.notify_upcoming_contests(now=NOW)


class TestRedeliver:
    async def test_failed_record_is_resent(self, session_factory, make_contest, make_user):
        await make_contest()
        await make_user()
        channel = RecordingChannel("email", fail_for=lambda target, payload: True)
        service = _service(session_factory, channel)
        await service.notify_upcoming_contests(now=NOW)
        [failed] = await _records(session_factory)

        channel.fail_for = None
        record = await service.redeliver(failed.id, now=NOW + timedelta(minutes=5))

        assert record.status == "sent"
        assert record.attempts == 2
        assert record.error is None
        assert record.sent_at == NOW + timedelta(minutes=5)
        assert len(channel.sent) == 1

    async def test_sent_record_is_rejected(self, session_factory, make_contest, make_user, email_channel):
        await make_contest()
        await make_user()
        service = _service(session_factory, email_channel)
        await service.notify_upcoming_contests(now=NOW)
        [sent] = await _records(session_factory)

        with pytest.raises(ValueError, match="already delivered"):
            await service.redeliver(sent.id)

    async def test_missing_record(self, session_factory, email_channel):
        assert await _service(session_factory, email_channel).redeliver(404) is None


class TestListRecords:
    async def test_filter_and_paginate(self, session_factory, db_session, make_contest, make_user):
        await make_contest()
        await make_contest()
        await make_user()
        channel = RecordingChannel("email", fail_for=lambda target, payload: payload.contest_id % 2 == 0)
        await _service(session_factory, channel).notify_upcoming_contests(now=NOW)

        failed, failed_total = await list_notification_records(db_session, status="failed")
        everything, total = await list_notification_records(db_session, per_page=1)

        assert failed_total == 1
        assert failed[0].status == "failed"
        assert total == 2
        assert len(everything) == 1
