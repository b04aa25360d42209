"""Notification channels and their construction from settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from codenotify.config import Settings
from codenotify.notifications.channels.base import NotificationChannel
from codenotify.notifications.channels.email import EmailChannel, create_email_provider
from codenotify.notifications.channels.push import PushChannel
from codenotify.notifications.channels.whatsapp import WhatsAppChannel
from codenotify.notifications.schemas import ChannelName

if TYPE_CHECKING:
    from redis.asyncio import Redis


def build_channels(
    settings: Settings,
    client: httpx.AsyncClient,
    redis: Redis | None = None,
) -> dict[str, NotificationChannel]:
    """All channels keyed by name. Unconfigured ones report ``is_enabled() == False``."""
    return {
        ChannelName.EMAIL.value: EmailChannel(
            create_email_provider(settings, client),
            settings.frontend_base_url,
        ),
        ChannelName.WHATSAPP.value: WhatsAppChannel(
            client,
            api_key=settings.whatsapp_api_key,
            phone_number_id=settings.whatsapp_phone_id,
            frontend_base_url=settings.frontend_base_url,
            api_version=settings.whatsapp_api_version,
        ),
        ChannelName.PUSH.value: PushChannel(redis, settings.frontend_base_url, enabled=settings.push_enabled),
    }


__all__ = [
    "EmailChannel",
    "NotificationChannel",
    "PushChannel",
    "WhatsAppChannel",
    "build_channels",
]
