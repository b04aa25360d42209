"""Notification channel contract."""

from __future__ import annotations

from abc import ABC, abstractmethod

import structlog

from codenotify.errors import ChannelDeliveryFailure
from codenotify.notifications.schemas import NotificationPayload, NotificationResult

logger = structlog.get_logger()


class NotificationChannel(ABC):
    """Delivers one reminder to one target (email address, phone number, user id).

    ``send`` never raises for delivery problems: disabled channels and
    provider failures come back as ``success=False`` with an error string.
    """

    name: str

    @abstractmethod
    def is_enabled(self) -> bool:
        """True when the channel is configured to deliver."""
        ...

    @abstractmethod
    async def _deliver(self, target: str, payload: NotificationPayload) -> str | None:
        """Deliver and return the provider message id. Raises ChannelDeliveryFailure."""
        ...

    async def send(self, target: str, payload: NotificationPayload) -> NotificationResult:
        if not self.is_enabled():
            logger.warning(
                "notification_channel_disabled",
                channel=self.name,
                contest_id=payload.contest_id,
            )
            return NotificationResult(success=False, channel=self.name, error=f"{self.name} channel is not configured")
        if not target:
            return NotificationResult(success=False, channel=self.name, error="no delivery target")

        try:
            message_id = await self._deliver(target, payload)
        except ChannelDeliveryFailure as exc:
            logger.warning("notification_send_failed", channel=self.name, contest_id=payload.contest_id, error=str(exc))
            return NotificationResult(success=False, channel=self.name, error=str(exc))

        logger.info("notification_sent", channel=self.name, contest_id=payload.contest_id, message_id=message_id)
        return NotificationResult(success=True, channel=self.name, message_id=message_id)
