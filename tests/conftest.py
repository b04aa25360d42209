"""Shared test fixtures.

Database tests run against a throwaway SQLite file through aiosqlite, with
the same models and session settings the application uses.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from codenotify.config import Settings
from codenotify.db.base import Base
from codenotify.db.models import Contest, User
from codenotify.errors import ChannelDeliveryFailure
from codenotify.notifications.channels.base import NotificationChannel
from codenotify.notifications.schemas import NotificationPayload

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated from the environment and any local .env file."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'codenotify.db'}",
        log_format="console",
        admin_api_token="test-admin-token",
        scheduler_enabled=False,
        http_retry_attempts=3,
        http_retry_delay_seconds=1.0,
        platform_cache_ttl_seconds=300,
        resend_api_key="",
        whatsapp_api_key="",
        whatsapp_phone_id="",
    )


@pytest_asyncio.fixture
async def engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for test setup and assertions."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_contest(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[Contest]]:
    """Insert a contest; keyword arguments override the defaults."""
    counter = {"n": 0}

    async def _make(**overrides: Any) -> Contest:
        counter["n"] += 1
        start = overrides.pop("start_time", NOW + timedelta(hours=10))
        duration = overrides.pop("duration_minutes", 120)
        fields: dict[str, Any] = {
            "platform": "codeforces",
            "platform_id": str(1900 + counter["n"]),
            "name": f"Codeforces Round {900 + counter['n']} (Div. 2)",
            "phase": "BEFORE",
            "type": "CF",
            "difficulty": "MEDIUM",
            "start_time": start,
            "end_time": overrides.pop("end_time", start + timedelta(minutes=duration)),
            "duration_minutes": duration,
            "participant_count": 0,
            "problem_count": 0,
            "platform_metadata": {},
            "is_active": True,
            "is_notified": False,
            "created_at": NOW,
            "updated_at": NOW,
        }
        fields.update(overrides)
        contest = Contest(**fields)
        async with session_factory() as session:
            session.add(contest)
            await session.commit()
        return contest

    return _make


@pytest.fixture
def make_user(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[User]]:
    """Insert a user subscribed to Codeforces by email with a 24h lead time."""
    counter = {"n": 0}

    async def _make(**overrides: Any) -> User:
        counter["n"] += 1
        preferences = {
            "platforms": ["codeforces"],
            "notifyBefore": 24,
            "notificationChannels": {"email": True, "whatsapp": False, "push": False},
        }
        preferences.update(overrides.pop("preferences", {}))
        fields: dict[str, Any] = {
            "email": f"coder{counter['n']}@example.com",
            "name": f"Coder {counter['n']}",
            "phone_number": None,
            "is_active": True,
            "preferences": preferences,
        }
        fields.update(overrides)
        user = User(**fields)
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _make


class RecordingChannel(NotificationChannel):
    """In-memory channel that records deliveries and can fail on demand."""

    def __init__(self, name: str = "email", *, enabled: bool = True, fail_for: Callable[..., bool] | None = None):
        self.name = name
        self.enabled = enabled
        self.fail_for = fail_for
        self.sent: list[tuple[str, NotificationPayload]] = []

    def is_enabled(self) -> bool:
        return self.enabled

    async def _deliver(self, target: str, payload: NotificationPayload) -> str | None:
        if self.fail_for is not None and self.fail_for(target, payload):
            raise ChannelDeliveryFailure(self.name, "provider rejected the message")
        self.sent.append((target, payload))
        return f"{self.name}-{len(self.sent)}"


@pytest.fixture
def email_channel() -> RecordingChannel:
    return RecordingChannel("email")


@pytest.fixture
def channel_factory() -> type[RecordingChannel]:
    return RecordingChannel
