"""Who gets reminded about which contest, over which channels.

Pure functions over user preferences as stored in ``users.preferences``::

    {
        "platforms": ["codeforces", "atcoder"],
        "notifyBefore": 24,
        "notificationChannels": {"email": true, "whatsapp": false, "push": true},
        "contestTypes": ["ABC", "WEEKLY"]
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from codenotify.db.models import User
from codenotify.notifications.schemas import ChannelName

DEFAULT_NOTIFY_BEFORE_HOURS = 24
MIN_NOTIFY_BEFORE_HOURS = 1
MAX_NOTIFY_BEFORE_HOURS = 168

# Applied per key when the user has not set it.
DEFAULT_CHANNELS: dict[str, bool] = {
    ChannelName.EMAIL.value: True,
    ChannelName.WHATSAPP.value: False,
    ChannelName.PUSH.value: False,
}


@dataclass(frozen=True)
class Subscriber:
    """Detached snapshot of a user, safe to use across session rollbacks."""

    id: int
    email: str
    name: str
    phone_number: str | None = None
    preferences: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_user(cls, user: User) -> Subscriber:
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            phone_number=user.phone_number,
            preferences=dict(user.preferences or {}),
        )


def notify_before_hours(preferences: dict[str, Any]) -> int:
    """Lead time in hours, clamped to 1..168 (default 24)."""
    value = preferences.get("notifyBefore")
    try:
        hours = int(value) if value is not None else DEFAULT_NOTIFY_BEFORE_HOURS
    except (TypeError, ValueError):
        hours = DEFAULT_NOTIFY_BEFORE_HOURS
    return max(MIN_NOTIFY_BEFORE_HOURS, min(MAX_NOTIFY_BEFORE_HOURS, hours))


def is_subscribed(preferences: dict[str, Any], platform: str, contest_type: str) -> bool:
    platforms = {str(p).lower() for p in preferences.get("platforms") or []}
    if platform.lower() not in platforms:
        return False
    types = {str(t).upper() for t in preferences.get("contestTypes") or []}
    return not types or contest_type.upper() in types


def hours_until(start_time: datetime, now: datetime) -> float:
    return (start_time - now).total_seconds() / 3600


def is_due(preferences: dict[str, Any], start_time: datetime, now: datetime) -> bool:
    """True once the contest is within the user's own lead time."""
    remaining = hours_until(start_time, now)
    return 0 <= remaining <= notify_before_hours(preferences)


def enabled_channels(preferences: dict[str, Any]) -> list[str]:
    configured = preferences.get("notificationChannels") or {}
    return [name for name, default in DEFAULT_CHANNELS.items() if bool(configured.get(name, default))]


def delivery_target(subscriber: Subscriber, channel: str) -> str | None:
    """Address for ``channel``, or None when the user has none."""
    if channel == ChannelName.EMAIL:
        return subscriber.email or None
    if channel == ChannelName.WHATSAPP:
        return subscriber.phone_number or None
    if channel == ChannelName.PUSH:
        return str(subscriber.id)
    return None
