"""Push notification delivery."""

import logging
from typing import Optional, Protocol

import httpx

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Raised when a push gateway rejects or cannot receive a notification."""


class Notifier(Protocol):
    """Best-effort delivery of a notification to one device token."""

    async def send(self, token: str, title: str, body: str, data: dict[str, str]) -> None: ...


class LoggingNotifier:
    """Notifier used when no push gateway is configured."""

    async def send(self, token: str, title: str, body: str, data: dict[str, str]) -> None:
        logger.info("Notification for token %s...: %s - %s %s", token[:8], title, body, data)


class HttpPushNotifier:
    """Posts notifications to an HTTP push gateway."""

    def __init__(
        self,
        push_url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the notifier.

        Args:
            push_url: Gateway endpoint accepting JSON notification payloads.
            api_key: Bearer token for the gateway, if it requires one.
            timeout: Request timeout in seconds.
            client: Optional shared client (tests pass one with a mock transport).
        """
        self.push_url = push_url
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    async def send(self, token: str, title: str, body: str, data: dict[str, str]) -> None:
        """
        Deliver one notification.

        Raises:
            NotificationError: If the gateway is unreachable or answers with an error.
        """
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {
            "token": token,
            "notification": {"title": title, "body": body},
            "data": data,
        }

        try:
            if self._client is not None:
                response = await self._client.post(self.push_url, headers=headers, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.push_url, headers=headers, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NotificationError(
                f"Push gateway returned HTTP {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise NotificationError(f"Push gateway unreachable: {e}") from e

        logger.debug("Delivered notification to token %s...", token[:8])
