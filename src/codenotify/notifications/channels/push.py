"""Push reminders over Redis pub/sub for per-user WebSocket delivery."""

from __future__ import annotations

import json
import uuid
from typing import TYPE_CHECKING

from redis.exceptions import RedisError

from codenotify.errors import ChannelDeliveryFailure
from codenotify.notifications.channels.base import NotificationChannel
from codenotify.notifications.schemas import ChannelName, NotificationPayload
from codenotify.notifications.templates import contest_url

if TYPE_CHECKING:
    from redis.asyncio import Redis


class PushChannel(NotificationChannel):
    """Publishes to ``ws:user:{user_id}``; the target is the user id.

    A WebSocket bridge pattern-subscribes to ``ws:user:*`` and routes the
    message to the user's open connections.
    """

    name = ChannelName.PUSH.value

    def __init__(self, redis: Redis | None, frontend_base_url: str, enabled: bool = True) -> None:
        self.redis = redis
        self.frontend_base_url = frontend_base_url
        self.enabled = enabled

    def is_enabled(self) -> bool:
        return self.enabled and self.redis is not None

    async def _deliver(self, target: str, payload: NotificationPayload) -> str | None:
        message_id = uuid.uuid4().hex
        ws_payload = {
            "event": "notification",
            "data": {
                "id": message_id,
                "type": "contest_reminder",
                "title": f"Contest Alert: {payload.contest_name}",
                "description": f"{payload.platform.upper()} contest starts in {payload.hours_until_start}h",
                "contestId": payload.contest_id,
                "platform": payload.platform,
                "startTime": payload.start_time.isoformat(),
                "hoursUntilStart": payload.hours_until_start,
                "actionUrl": contest_url(payload, self.frontend_base_url),
                "actionLabel": "View Contest",
            },
        }
        try:
            await self.redis.publish(f"ws:user:{target}", json.dumps(ws_payload))  # type: ignore[union-attr]
        except (RedisError, OSError) as exc:
            raise ChannelDeliveryFailure(self.name, f"publish to ws:user:{target} failed: {exc}") from exc
        return message_id
