"""
Email channel with provider abstraction.

Supports the Resend API (default) and SMTP.
Provider is selected via configuration.
"""

from __future__ import annotations

import ssl
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid

import aiosmtplib
import httpx

from codenotify.config import Settings
from codenotify.errors import ChannelDeliveryFailure
from codenotify.notifications.channels.base import NotificationChannel
from codenotify.notifications.schemas import ChannelName, NotificationPayload
from codenotify.notifications.templates import contest_reminder

RESEND_API_URL = "https://api.resend.com/emails"


class BaseEmailProvider(ABC):
    """Abstract base class for email delivery providers."""

    name: str

    @abstractmethod
    def is_configured(self) -> bool: ...

    @abstractmethod
    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> str | None:
        """Send an email and return its message id. Raises ChannelDeliveryFailure."""
        ...


class SMTPProvider(BaseEmailProvider):
    """Send emails via SMTP using aiosmtplib."""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str,
        from_name: str,
        use_tls: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.from_name = from_name
        self.use_tls = use_tls

    def is_configured(self) -> bool:
        return bool(self.host and self.from_address)

    def build_message(self, to_email: str, subject: str, html_body: str, text_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = f"{self.from_name} <{self.from_address}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg["Message-ID"] = make_msgid(domain=self.from_address.rpartition("@")[2] or None)
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> str | None:
        """Send via SMTP."""
        msg = self.build_message(to_email, subject, html_body, text_body)
        try:
            tls_context = ssl.create_default_context() if self.use_tls else None
            await aiosmtplib.send(
                msg,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
                tls_context=tls_context,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            raise ChannelDeliveryFailure(ChannelName.EMAIL, f"smtp: {exc}") from exc
        return msg["Message-ID"]


class ResendProvider(BaseEmailProvider):
    """Send emails via Resend API."""

    name = "resend"

    def __init__(
        self,
        api_key: str,
        from_address: str,
        from_name: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.from_address = from_address
        self.from_name = from_name
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> str | None:
        """Send via Resend HTTP API."""
        request = {
            "headers": {
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            "json": {
                "from": f"{self.from_name} <{self.from_address}>",
                "to": [to_email],
                "subject": subject,
                "html": html_body,
                "text": text_body,
            },
            "timeout": 10.0,
        }
        try:
            if self._client is not None:
                response = await self._client.post(RESEND_API_URL, **request)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(RESEND_API_URL, **request)
            response.raise_for_status()
            return response.json().get("id")
        except httpx.HTTPStatusError as exc:
            raise ChannelDeliveryFailure(
                ChannelName.EMAIL, f"resend: HTTP {exc.response.status_code} {exc.response.text[:200]}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise ChannelDeliveryFailure(ChannelName.EMAIL, f"resend: {exc}") from exc


def create_email_provider(settings: Settings, client: httpx.AsyncClient | None = None) -> BaseEmailProvider:
    """Create email provider based on configuration."""
    provider_name = settings.email_provider.lower()

    if provider_name == "smtp":
        return SMTPProvider(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
            use_tls=settings.smtp_use_tls,
        )
    if provider_name == "resend":
        return ResendProvider(
            api_key=settings.resend_api_key,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
            client=client,
        )
    msg = f"Unsupported email provider: {provider_name}"
    raise ValueError(msg)


class EmailChannel(NotificationChannel):
    """Contest reminders by email, rendered from the HTML + text template."""

    name = ChannelName.EMAIL.value

    def __init__(self, provider: BaseEmailProvider, frontend_base_url: str) -> None:
        self.provider = provider
        self.frontend_base_url = frontend_base_url

    def is_enabled(self) -> bool:
        return self.provider.is_configured()

    async def _deliver(self, target: str, payload: NotificationPayload) -> str | None:
        subject, html_body, text_body = contest_reminder(payload, self.frontend_base_url)
        return await self.provider.send(target, subject, html_body, text_body)
