"""Tests for notification delivery."""

import json

import httpx
import pytest

from eventchat.services.notifier import HttpPushNotifier, LoggingNotifier, NotificationError


class TestHttpPushNotifier:
    """Test the HTTP push gateway client."""

    async def test_posts_notification_payload(self):
        """Test the gateway receives token, notification and data."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"ok": True})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            notifier = HttpPushNotifier("https://push.test/send", api_key="k3y", client=client)
            await notifier.send("device-token", "New Message", "hello", {"chatId": "c1"})

        assert len(requests) == 1
        request = requests[0]
        assert request.url == "https://push.test/send"
        assert request.headers["Authorization"] == "Bearer k3y"
        assert json.loads(request.content) == {
            "token": "device-token",
            "notification": {"title": "New Message", "body": "hello"},
            "data": {"chatId": "c1"},
        }

    async def test_no_api_key_sends_no_authorization(self):
        """Test the Authorization header is omitted without a key."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.headers)
            return httpx.Response(204)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await HttpPushNotifier("https://push.test/send", client=client).send("t", "a", "b", {})

        assert "authorization" not in seen

    async def test_error_status_raises_notification_error(self):
        """Test gateway errors surface as NotificationError."""
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))

        async with httpx.AsyncClient(transport=transport) as client:
            notifier = HttpPushNotifier("https://push.test/send", client=client)
            with pytest.raises(NotificationError, match="HTTP 500"):
                await notifier.send("t", "a", "b", {})

    async def test_connection_error_raises_notification_error(self):
        """Test unreachable gateways surface as NotificationError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            notifier = HttpPushNotifier("https://push.test/send", client=client)
            with pytest.raises(NotificationError, match="unreachable"):
                await notifier.send("t", "a", "b", {})


class TestLoggingNotifier:
    """Test the fallback notifier."""

    async def test_logs_instead_of_sending(self, caplog):
        """Test notifications are written to the log."""
        with caplog.at_level("INFO"):
            await LoggingNotifier().send("abcdefghijkl", "New Message", "hi", {"chatId": "c1"})

        assert "New Message - hi" in caplog.text
        assert "abcdefghijkl" not in caplog.text
