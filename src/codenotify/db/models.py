"""ORM models for contests, subscribers and notification records."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from codenotify.db.base import Base, IdType, JSONType, UTCDateTime

# ---------------------------------------------------------------------------
# Contests
# ---------------------------------------------------------------------------


class Contest(Base):
    """One scheduled competitive-programming event."""

    __tablename__ = "contests"
    __table_args__ = (
        UniqueConstraint("platform", "platform_id", name="uq_contests_platform_platform_id"),
        Index("idx_contests_notify_scan", "start_time", "phase", "is_active", "is_notified"),
        Index("idx_contests_end_time", "end_time"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    platform_id: Mapped[str] = mapped_column(String(128), nullable=False)
    platform: Mapped[str] = mapped_column(String(16), nullable=False)
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    phase: Mapped[str] = mapped_column(String(16), nullable=False, default="BEFORE")
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="OTHER")
    difficulty: Mapped[str | None] = mapped_column(String(16), nullable=True)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    participant_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    problem_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(String(256), nullable=True)
    website_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    registration_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    platform_metadata: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_notified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_synced_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())

    notifications: Mapped[list[NotificationRecord]] = relationship(
        "NotificationRecord", back_populates="contest", passive_deletes=True
    )


# ---------------------------------------------------------------------------
# Users (subscribers, owned by the account service and read here)
# ---------------------------------------------------------------------------


class User(Base):
    """Registered user with reminder preferences stored as JSON."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    preferences: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())


# ---------------------------------------------------------------------------
# Notification records
# ---------------------------------------------------------------------------


class NotificationRecord(Base):
    """One delivery attempt of one contest reminder to one user over one channel."""

    __tablename__ = "notification_records"
    __table_args__ = (
        UniqueConstraint("user_id", "contest_id", "channel", name="uq_notification_user_contest_channel"),
        Index("idx_notification_records_status", "status"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    contest_id: Mapped[int] = mapped_column(IdType, ForeignKey("contests.id", ondelete="CASCADE"), nullable=False)
    channel: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    message_id: Mapped[str | None] = mapped_column(String(256), nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sent_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())

    contest: Mapped[Contest] = relationship("Contest", back_populates="notifications")
    user: Mapped[User] = relationship("User")
