"""Alert delivery transports."""

from __future__ import annotations

import logging
from typing import Protocol

from memewatch.ingestor.errors import MemewatchError, ProviderError
from memewatch.ingestor.http import HttpClient

logger = logging.getLogger(__name__)

TELEGRAM_MAX_MESSAGE_LENGTH = 4096


class DeliveryFailure(MemewatchError):
    """Raised when a transport could not deliver a message."""


class AlertTransport(Protocol):
    async def send(self, text: str) -> None: ...


class TelegramTransport:
    """Telegram Bot API ``sendMessage``.

    Messages go out as plain text with link previews disabled; anything over
    Telegram's length limit is truncated.
    """

    def __init__(
        self,
        http: HttpClient,
        *,
        bot_token: str,
        chat_id: str,
        api_url: str = "https://api.telegram.org",
    ) -> None:
        self._http = http
        self._url = f"{api_url.rstrip('/')}/bot{bot_token}/sendMessage"
        self._chat_id = chat_id

    async def send(self, text: str) -> None:
        """Deliver one message.

        Raises:
            DeliveryFailure: If the request fails or Telegram rejects it.
        """
        payload = {
            "chat_id": self._chat_id,
            "text": text[:TELEGRAM_MAX_MESSAGE_LENGTH],
            "disable_web_page_preview": True,
        }
        try:
            data = await self._http.post_json(self._url, payload, throttle=False)
        except ProviderError as e:
            # Provider messages carry the host only, never the token path.
            raise DeliveryFailure(f"Telegram send failed: {e}") from e
        if isinstance(data, dict) and data.get("ok") is False:
            raise DeliveryFailure(f"Telegram rejected message: {data.get('description', 'unknown error')}")


class LoggingTransport:
    """Dry-run transport: logs instead of sending."""

    async def send(self, text: str) -> None:
        logger.info("[DRY RUN] Would send alert:\n%s", text)
