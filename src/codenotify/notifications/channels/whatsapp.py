"""WhatsApp channel via the Meta WhatsApp Cloud API."""

from __future__ import annotations

import httpx

from codenotify.errors import ChannelDeliveryFailure
from codenotify.notifications.channels.base import NotificationChannel
from codenotify.notifications.schemas import ChannelName, NotificationPayload
from codenotify.notifications.templates import contest_reminder_short

GRAPH_API_BASE = "https://graph.facebook.com"


def normalize_phone_number(phone: str) -> str:
    """Digits only, as the Cloud API expects (country code, no '+')."""
    return "".join(ch for ch in phone if ch.isdigit())


class WhatsAppChannel(NotificationChannel):
    name = ChannelName.WHATSAPP.value

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        phone_number_id: str,
        frontend_base_url: str,
        api_version: str = "v21.0",
    ) -> None:
        self.client = client
        self.api_key = api_key
        self.phone_number_id = phone_number_id
        self.frontend_base_url = frontend_base_url
        self.api_version = api_version

    def is_enabled(self) -> bool:
        return bool(self.api_key and self.phone_number_id)

    @property
    def messages_url(self) -> str:
        return f"{GRAPH_API_BASE}/{self.api_version}/{self.phone_number_id}/messages"

    async def _deliver(self, target: str, payload: NotificationPayload) -> str | None:
        to = normalize_phone_number(target)
        if not to:
            raise ChannelDeliveryFailure(self.name, f"invalid phone number: {target!r}")

        try:
            response = await self.client.post(
                self.messages_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "messaging_product": "whatsapp",
                    "to": to,
                    "type": "text",
                    "text": {"preview_url": True, "body": contest_reminder_short(payload, self.frontend_base_url)},
                },
            )
            response.raise_for_status()
            messages = response.json().get("messages") or []
        except httpx.HTTPStatusError as exc:
            raise ChannelDeliveryFailure(
                self.name, f"HTTP {exc.response.status_code} {exc.response.text[:200]}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise ChannelDeliveryFailure(self.name, str(exc)) from exc

        return messages[0].get("id") if messages else None
