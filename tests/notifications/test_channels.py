"""Tests for the email, WhatsApp and push channels."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from codenotify.notifications.channels import build_channels
from codenotify.notifications.channels.email import (
    RESEND_API_URL,
    EmailChannel,
    ResendProvider,
    SMTPProvider,
    create_email_provider,
)
from codenotify.notifications.channels.push import PushChannel
from codenotify.notifications.channels.whatsapp import WhatsAppChannel, normalize_phone_number
from codenotify.notifications.schemas import NotificationPayload

from conftest import NOW

PAYLOAD = NotificationPayload(
    contest_id=42,
    contest_name="Codeforces Round 932 (Div. 2)",
    platform="codeforces",
    start_time=NOW,
    hours_until_start=3,
    website_url="https://codeforces.com/contest/1935",
)


class Recorder:
    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response


class TestEmailChannel:
    async def test_resend_delivery(self):
        recorder = Recorder(httpx.Response(200, json={"id": "re_123"}))
        async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
            provider = ResendProvider("re_key", "noreply@codenotify.dev", "CodeNotify", client=client)
            result = await EmailChannel(provider, "https://codenotify.dev").send("coder@example.com", PAYLOAD)

        assert result.success
        assert result.message_id == "re_123"
        request = recorder.requests[0]
        assert str(request.url) == RESEND_API_URL
        assert request.headers["Authorization"] == "Bearer re_key"
        body = json.loads(request.content)
        assert body["to"] == ["coder@example.com"]
        assert body["from"] == "CodeNotify <noreply@codenotify.dev>"
        assert body["subject"] == "Contest Alert: Codeforces Round 932 (Div. 2)"
        assert "Starts in: 3 hours" in body["text"]

    async def test_resend_rejection_is_a_failed_result(self):
        recorder = Recorder(httpx.Response(422, json={"message": "invalid to address"}))
        async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
            provider = ResendProvider("re_key", "noreply@codenotify.dev", "CodeNotify", client=client)
            result = await EmailChannel(provider, "https://codenotify.dev").send("bad", PAYLOAD)

        assert not result.success
        assert "HTTP 422" in result.error

    async def test_unconfigured_provider_disables_channel(self):
        channel = EmailChannel(ResendProvider("", "noreply@codenotify.dev", "CodeNotify"), "https://codenotify.dev")

        result = await channel.send("coder@example.com", PAYLOAD)

        assert not channel.is_enabled()
        assert result.error == "email channel is not configured"

    def test_smtp_message(self):
        provider = SMTPProvider("smtp.example.com", 587, "", "", "noreply@codenotify.dev", "CodeNotify")

        msg = provider.build_message("coder@example.com", "Subject", "<p>html</p>", "text")

        assert msg["To"] == "coder@example.com"
        assert msg["Message-ID"].endswith("@codenotify.dev>")
        assert [part.get_content_type() for part in msg.get_payload()] == ["text/plain", "text/html"]

    def test_provider_selection(self, settings):
        assert isinstance(create_email_provider(settings), ResendProvider)
        assert isinstance(create_email_provider(settings.model_copy(update={"email_provider": "SMTP"})), SMTPProvider)
        with pytest.raises(ValueError, match="Unsupported email provider"):
            create_email_provider(settings.model_copy(update={"email_provider": "ses"}))


class TestWhatsAppChannel:
    def test_normalize_phone_number(self):
        assert normalize_phone_number("+91 98765-43210") == "919876543210"

    async def test_cloud_api_delivery(self):
        recorder = Recorder(httpx.Response(200, json={"messages": [{"id": "wamid.ABC"}]}))
        async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
            channel = WhatsAppChannel(client, "wa_key", "1098", "https://codenotify.dev")
            result = await channel.send("+1 (555) 010-0199", PAYLOAD)

        assert result.success
        assert result.message_id == "wamid.ABC"
        request = recorder.requests[0]
        assert str(request.url) == "https://graph.facebook.com/v21.0/1098/messages"
        body = json.loads(request.content)
        assert body["to"] == "15550100199"
        assert body["text"]["body"].endswith("https://codenotify.dev/contests/42")

    async def test_api_error_is_a_failed_result(self):
        recorder = Recorder(httpx.Response(401, json={"error": {"message": "expired token"}}))
        async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
            result = await WhatsAppChannel(client, "wa_key", "1098", "https://codenotify.dev").send("15550100199", PAYLOAD)

        assert not result.success
        assert "HTTP 401" in result.error

    async def test_invalid_number_is_not_sent(self):
        recorder = Recorder(httpx.Response(200, json={}))
        async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as client:
            result = await WhatsAppChannel(client, "wa_key", "1098", "https://codenotify.dev").send("n/a", PAYLOAD)

        assert not result.success
        assert recorder.requests == []

    async def test_missing_credentials_disable_channel(self):
        async with httpx.AsyncClient() as client:
            assert not WhatsAppChannel(client, "", "1098", "https://codenotify.dev").is_enabled()


class TestPushChannel:
    async def test_publishes_to_user_channel(self):
        redis = AsyncMock()
        channel = PushChannel(redis, "https://codenotify.dev")

        result = await channel.send("7", PAYLOAD)

        assert result.success
        redis.publish.assert_awaited_once()
        topic, message = redis.publish.await_args.args
        assert topic == "ws:user:7"
        event = json.loads(message)
        assert event["event"] == "notification"
        assert event["data"]["type"] == "contest_reminder"
        assert event["data"]["contestId"] == 42
        assert event["data"]["id"] == result.message_id

    async def test_redis_error_is_a_failed_result(self):
        redis = AsyncMock()
        redis.publish.side_effect = RedisConnectionError("connection reset")

        result = await PushChannel(redis, "https://codenotify.dev").send("7", PAYLOAD)

        assert not result.success
        assert "ws:user:7" in result.error

    def test_requires_redis(self):
        assert not PushChannel(None, "https://codenotify.dev").is_enabled()
        assert not PushChannel(AsyncMock(), "https://codenotify.dev", enabled=False).is_enabled()


class TestBuildChannels:
    async def test_all_channels_built(self, settings):
        async with httpx.AsyncClient() as client:
            channels = build_channels(settings, client, redis=AsyncMock())

        assert set(channels) == {"email", "whatsapp", "push"}
        assert not channels["email"].is_enabled()
        assert not channels["whatsapp"].is_enabled()
        assert channels["push"].is_enabled()
