"""HTTP tests for the public contest API, health probes and admin surface."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
import pytest_asyncio

from codenotify.contests.enums import Platform
from codenotify.contests.platforms import CodeforcesAdapter
from codenotify.contests.sync_service import ContestSyncService
from codenotify.errors import StorageUnavailable
from codenotify.main import create_app
from codenotify.notifications.service import NotificationService
from codenotify.scheduler import ContestScheduler

ADMIN = {"X-Admin-Token": "test-admin-token"}


def _upstream(request: httpx.Request) -> httpx.Response:
    start = int((datetime.now(timezone.utc) + timedelta(days=3)).timestamp())
    return httpx.Response(200, json={"status": "OK", "result": [
        {"id": 2001, "name": "Codeforces Round 2001 (Div. 2)", "type": "CF", "phase": "BEFORE",
         "durationSeconds": 7200, "startTimeSeconds": start},
    ]})


def _wire(app, settings, session_factory, upstream_client, channel) -> None:
    """Attach the services the lifespan would normally build."""
    sync_service = ContestSyncService(
        session_factory,
        {Platform.CODEFORCES: CodeforcesAdapter(upstream_client, settings)},
    )
    notification_service = NotificationService(session_factory, {channel.name: channel})
    app.state.session_factory = session_factory
    app.state.redis = None
    app.state.sync_service = sync_service
    app.state.notification_service = notification_service
    app.state.scheduler = ContestScheduler(settings, sync_service, notification_service, session_factory)


@pytest_asyncio.fixture
async def app(settings, session_factory, email_channel):
    async with httpx.AsyncClient(transport=httpx.MockTransport(_upstream)) as upstream_client:
        app = create_app(settings)
        _wire(app, settings, session_factory, upstream_client, email_channel)
        yield app


@pytest_asyncio.fixture
async def client(app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client


def _from_now(**delta) -> datetime:
    return datetime.now(timezone.utc) + timedelta(**delta)


class TestHealth:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    async def test_ready(self, client):
        body = (await client.get("/ready")).json()
        assert body["status"] == "ready"
        assert body["checks"] == {"database": "ok", "scheduler": "stopped"}

    async def test_version(self, client):
        assert (await client.get("/version")).json() == {"version": "0.1.0", "environment": "development"}

    async def test_request_id_is_echoed_or_generated(self, client):
        echoed = await client.get("/health", headers={"X-Request-Id": "req-123"})
        generated = await client.get("/health")

        assert echoed.headers["X-Request-Id"] == "req-123"
        assert len(generated.headers["X-Request-Id"]) == 36


class TestContestsApi:
    async def test_list_filters_and_paginates(self, client, make_contest):
        await make_contest(name="Codeforces Round 940 (Div. 2)", start_time=_from_now(hours=5))
        await make_contest(name="Educational Round 160", start_time=_from_now(hours=1))
        await make_contest(platform="atcoder", platform_id="abc400", type="ABC", start_time=_from_now(days=2))
        await make_contest(name="Cancelled Round", is_active=False)

        everything = (await client.get("/api/v1/contests")).json()
        assert everything["total"] == 3
        assert [c["name"] for c in everything["contests"]][:2] == [
            "Educational Round 160",
            "Codeforces Round 940 (Div. 2)",
        ]

        by_type = (await client.get("/api/v1/contests", params={"type": "ABC"})).json()
        assert [c["platform_id"] for c in by_type["contests"]] == ["abc400"]

        searched = (await client.get("/api/v1/contests", params={"search": "educational"})).json()
        assert searched["total"] == 1

        with_inactive = (await client.get("/api/v1/contests", params={"include_inactive": "true"})).json()
        assert with_inactive["total"] == 4

        paged = (await client.get("/api/v1/contests", params={"per_page": 2, "page": 2})).json()
        assert (paged["total"], len(paged["contests"]), paged["page"]) == (3, 1, 2)

    async def test_invalid_filter_is_422(self, client):
        response = await client.get("/api/v1/contests", params={"platform": "topcoder"})
        assert response.status_code == 422
        assert response.json()["detail"] == "Validation error"

    async def test_upcoming_window(self, client, make_contest):
        soon = await make_contest(start_time=_from_now(hours=10))
        await make_contest(start_time=_from_now(hours=48))

        upcoming = (await client.get("/api/v1/contests/upcoming", params={"hours": 24})).json()

        assert [c["id"] for c in upcoming] == [soon.id]

    async def test_stats(self, client, make_contest):
        await make_contest(start_time=_from_now(hours=10))
        await make_contest(platform="leetcode", platform_id="weekly-contest-500", type="WEEKLY",
                           start_time=_from_now(days=-3), phase="FINISHED")

        stats = (await client.get("/api/v1/contests/stats")).json()

        assert stats["total"] == 2
        assert stats["upcoming"] == 1
        assert stats["by_platform"] == {"codeforces": 1, "leetcode": 1}
        assert stats["by_phase"] == {"BEFORE": 1, "FINISHED": 1}

    async def test_get_contest(self, client, make_contest):
        contest = await make_contest(start_time=_from_now(hours=10))

        found = await client.get(f"/api/v1/contests/{contest.id}")
        missing = await client.get("/api/v1/contests/9999")

        assert found.json()["platform_id"] == contest.platform_id
        assert missing.status_code == 404
        assert missing.json() == {"detail": "Contest not found"}


class TestAdminAuth:
    async def test_missing_or_wrong_token(self, client):
        assert (await client.post("/api/v1/admin/notifications/scan")).status_code == 401
        wrong = await client.post("/api/v1/admin/notifications/scan", headers={"X-Admin-Token": "nope"})
        assert wrong.status_code == 401

    async def test_unset_token_disables_admin(self, settings, session_factory, email_channel):
        app = create_app(settings.model_copy(update={"admin_api_token": ""}))
        async with httpx.AsyncClient() as upstream_client:
            _wire(app, settings, session_factory, upstream_client, email_channel)
            async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
                response = await client.post("/api/v1/admin/notifications/scan", headers=ADMIN)
        assert response.status_code == 403


class TestAdminContests:
    async def test_sync_one_platform(self, client):
        response = await client.post("/api/v1/admin/contests/sync/codeforces", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["synced"] == 1
        assert (await client.get("/api/v1/contests")).json()["total"] == 1

    async def test_sync_unknown_platform(self, client):
        response = await client.post("/api/v1/admin/contests/sync/topcoder", headers=ADMIN)
        assert response.status_code == 400
        assert "Unknown platform" in response.json()["detail"]

    async def test_sync_all(self, client):
        body = (await client.post("/api/v1/admin/contests/sync", headers=ADMIN)).json()

        assert body["total_synced"] == 1
        assert body["results"]["codeforces"]["error"] is None

    async def test_sync_all_while_running(self, client, app):
        app.state.scheduler._in_flight.add("contest_sync")

        response = await client.post("/api/v1/admin/contests/sync", headers=ADMIN)

        assert response.status_code == 409

    async def test_cleanup(self, client, make_contest):
        await make_contest(start_time=_from_now(days=-200), phase="FINISHED")
        await make_contest(start_time=_from_now(hours=10))

        body = (await client.post("/api/v1/admin/contests/cleanup", params={"days": 90}, headers=ADMIN)).json()

        assert body == {"deleted_count": 1, "cutoff_days": 90}


class TestAdminNotifications:
    async def test_scan_list_and_retry(self, client, make_contest, make_user, email_channel):
        await make_contest(start_time=_from_now(hours=10))
        await make_user()

        scan = (await client.post("/api/v1/admin/notifications/scan", headers=ADMIN)).json()
        assert (scan["sent"], scan["contests_notified"]) == (1, 1)

        listing = (await client.get("/api/v1/admin/notifications", params={"status": "sent"}, headers=ADMIN)).json()
        assert listing["total"] == 1
        record = listing["records"][0]
        assert (record["channel"], record["attempts"]) == ("email", 1)

        retry = await client.post(f"/api/v1/admin/notifications/{record['id']}/retry", headers=ADMIN)
        assert retry.status_code == 409
        assert len(email_channel.sent) == 1

    async def test_retry_missing_record(self, client):
        response = await client.post("/api/v1/admin/notifications/404/retry", headers=ADMIN)
        assert response.status_code == 404

    async def test_storage_outage_is_503(self, client, app, monkeypatch):
        async def unavailable(*args, **kwargs):
            raise StorageUnavailable("connection refused")

        monkeypatch.setattr(app.state.notification_service, "notify_upcoming_contests", unavailable)

        response = await client.post("/api/v1/admin/notifications/scan", headers=ADMIN)

        assert response.status_code == 503
        assert response.json() == {"detail": "Contest store unavailable"}


class TestLifespan:
    async def test_startup_wires_services_and_shutdown_releases_them(self, settings):
        settings = settings.model_copy(update={"push_enabled": False, "scheduler_enabled": False})
        app = create_app(settings)

        async with app.router.lifespan_context(app):
            assert app.state.redis is None
            assert not app.state.scheduler.running
            assert sorted(p.value for p in app.state.sync_service.platforms) == [
                "atcoder", "codechef", "codeforces", "leetcode",
            ]
            async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
                ready = (await client.get("/ready")).json()
            assert ready["checks"]["database"] == "ok"

        assert app.state.http_client.is_closed
