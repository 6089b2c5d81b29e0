"""Tests for the Base swap log stream."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import BASE_TOKEN
from memewatch.ingestor.base_stream import BaseSwapStream, ConnectionState
from memewatch.ingestor.errors import FatalStartupError, ProviderError
from memewatch.ingestor.models import SwapEvent
from memewatch.ingestor.normalizer import V2_SWAP_TOPIC

WETH = "0x4200000000000000000000000000000000000006"


def _log(*, removed: bool = False) -> dict[str, object]:
    data = "".join(f"{v:064x}" for v in (10**18, 0, 0, 10**24))
    return {
        "address": "0xpair",
        "topics": [V2_SWAP_TOPIC, "0x" + "00" * 32, "0x" + "0" * 24 + "cd" * 20],
        "data": "0x" + data,
        "transactionHash": "0xfeed",
        "logIndex": "0x0",
        "removed": removed,
    }


def _notification(log: dict[str, object]) -> str:
    payload = {"jsonrpc": "2.0", "method": "eth_subscription", "params": {"subscription": "0x1", "result": log}}
    return json.dumps(payload)


@pytest.fixture
def chain() -> MagicMock:
    client = MagicMock()
    client.get_chain_id = AsyncMock(return_value=8453)
    client.get_pair_tokens = AsyncMock(return_value=(WETH, BASE_TOKEN))
    return client


@pytest.fixture
def events() -> list[SwapEvent]:
    return []


@pytest.fixture
def stream(chain: MagicMock, events: list[SwapEvent]) -> BaseSwapStream:
    async def on_event(event: SwapEvent) -> None:
        events.append(event)

    return BaseSwapStream(ws_url="wss://example.invalid", chain=chain, on_event=on_event)


class TestInitialize:
    @pytest.mark.asyncio
    async def test_rpc_failure_is_fatal(self, stream: BaseSwapStream, chain: MagicMock) -> None:
        chain.get_chain_id.side_effect = ProviderError("base-rpc", "connection refused")
        with pytest.raises(FatalStartupError) as exc_info:
            await stream.initialize()
        assert exc_info.value.network == "Base"

    @pytest.mark.asyncio
    async def test_websocket_failure_is_fatal(self, stream: BaseSwapStream) -> None:
        with (
            patch("memewatch.ingestor.base_stream.websockets.connect", AsyncMock(side_effect=OSError("refused"))),
            pytest.raises(FatalStartupError),
        ):
            await stream.initialize()

    @pytest.mark.asyncio
    async def test_subscribes_to_swap_topic(self, stream: BaseSwapStream) -> None:
        ws = MagicMock()
        ws.send = AsyncMock()
        ws.recv = AsyncMock(return_value=json.dumps({"jsonrpc": "2.0", "id": 1, "result": "0xsub"}))
        with patch("memewatch.ingestor.base_stream.websockets.connect", AsyncMock(return_value=ws)):
            await stream.initialize()

        request = json.loads(ws.send.await_args.args[0])
        assert request["method"] == "eth_subscribe"
        assert request["params"] == ["logs", {"topics": [V2_SWAP_TOPIC]}]
        assert stream.state == ConnectionState.CONNECTED

    @pytest.mark.asyncio
    async def test_rejected_subscription_is_fatal(self, stream: BaseSwapStream) -> None:
        ws = MagicMock()
        ws.send = AsyncMock()
        ws.close = AsyncMock()
        ws.recv = AsyncMock(return_value=json.dumps({"jsonrpc": "2.0", "id": 1, "error": {"code": -32601}}))
        with (
            patch("memewatch.ingestor.base_stream.websockets.connect", AsyncMock(return_value=ws)),
            pytest.raises(FatalStartupError),
        ):
            await stream.initialize()
        ws.close.assert_awaited()


class TestMessageHandling:
    @pytest.mark.asyncio
    async def test_swap_log_emitted(self, stream: BaseSwapStream, events: list[SwapEvent]) -> None:
        stream._handle_message(_notification(_log()))
        await asyncio.gather(*stream._log_tasks)
        assert len(events) == 1
        assert events[0].asset_in == WETH
        assert events[0].asset_out == BASE_TOKEN
        assert events[0].taker == "0x" + "cd" * 20
        assert stream.stats.events_emitted == 1

    @pytest.mark.asyncio
    async def test_removed_log_ignored(self, stream: BaseSwapStream, events: list[SwapEvent]) -> None:
        stream._handle_message(_notification(_log(removed=True)))
        assert not stream._log_tasks
        assert stream.stats.logs_received == 0

    @pytest.mark.asyncio
    async def test_non_subscription_message_ignored(self, stream: BaseSwapStream) -> None:
        stream._handle_message(json.dumps({"jsonrpc": "2.0", "id": 7, "result": True}))
        stream._handle_message("not json")
        assert stream.stats.logs_received == 0
        assert stream.stats.decode_errors == 1

    @pytest.mark.asyncio
    async def test_pair_lookup_failure_dropped(
        self, stream: BaseSwapStream, chain: MagicMock, events: list[SwapEvent]
    ) -> None:
        chain.get_pair_tokens.side_effect = ProviderError("base-rpc", "execution reverted")
        await stream._process_log(_log())
        assert events == []
        assert stream.stats.lookup_errors == 1
