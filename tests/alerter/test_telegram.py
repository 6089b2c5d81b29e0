"""Tests for alert transports."""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from memewatch.alerter.telegram import (
    TELEGRAM_MAX_MESSAGE_LENGTH,
    DeliveryFailure,
    LoggingTransport,
    TelegramTransport,
)
from memewatch.ingestor.errors import ProviderError


@pytest.fixture
def http() -> MagicMock:
    client = MagicMock()
    client.post_json = AsyncMock(return_value={"ok": True})
    return client


class TestTelegramTransport:
    @pytest.mark.asyncio
    async def test_posts_plain_text(self, http: MagicMock) -> None:
        transport = TelegramTransport(http, bot_token="123:abc", chat_id="-100")
        await transport.send("hello")
        url, payload = http.post_json.await_args.args
        assert url == "https://api.telegram.org/bot123:abc/sendMessage"
        assert payload["chat_id"] == "-100"
        assert payload["text"] == "hello"
        assert "parse_mode" not in payload
        assert http.post_json.await_args.kwargs == {"throttle": False}

    @pytest.mark.asyncio
    async def test_long_message_truncated(self, http: MagicMock) -> None:
        transport = TelegramTransport(http, bot_token="t", chat_id="c")
        await transport.send("x" * 5000)
        payload = http.post_json.await_args.args[1]
        assert len(payload["text"]) == TELEGRAM_MAX_MESSAGE_LENGTH

    @pytest.mark.asyncio
    async def test_rejection_raises(self, http: MagicMock) -> None:
        http.post_json.return_value = {"ok": False, "description": "chat not found"}
        transport = TelegramTransport(http, bot_token="t", chat_id="c")
        with pytest.raises(DeliveryFailure, match="chat not found"):
            await transport.send("hello")

    @pytest.mark.asyncio
    async def test_transport_error_raises(self, http: MagicMock) -> None:
        http.post_json.side_effect = ProviderError("api.telegram.org", "HTTP 502")
        transport = TelegramTransport(http, bot_token="secret", chat_id="c")
        with pytest.raises(DeliveryFailure) as exc_info:
            await transport.send("hello")
        assert "secret" not in str(exc_info.value)


class TestLoggingTransport:
    @pytest.mark.asyncio
    async def test_logs_dry_run(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="memewatch.alerter.telegram"):
            await LoggingTransport().send("hello")
        assert "[DRY RUN] Would send alert" in caplog.text
        assert "hello" in caplog.text
