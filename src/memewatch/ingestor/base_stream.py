"""Base swap log subscription over a WebSocket RPC.

Subscribes to every V2-style ``Swap`` log on the chain, resolves the pool's
token pair, decodes the log into a SwapEvent and hands it to the pipeline.
Reconnects with exponential backoff; the subscription is re-established on
every reconnect.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import websockets
from websockets.asyncio.client import ClientConnection

from memewatch.ingestor.base_chain import BaseChainClient
from memewatch.ingestor.errors import DecodeError, FatalStartupError, ProviderError
from memewatch.ingestor.models import SwapEvent
from memewatch.ingestor.normalizer import V2_SWAP_TOPIC, decode_v2_swap_log

logger = logging.getLogger(__name__)

DEFAULT_PING_INTERVAL = 30  # seconds
DEFAULT_MAX_RECONNECT_DELAY = 30  # seconds
DEFAULT_INITIAL_RECONNECT_DELAY = 1  # seconds
SUBSCRIBE_TIMEOUT_SECONDS = 10.0


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


@dataclass
class StreamStats:
    logs_received: int = 0
    events_emitted: int = 0
    decode_errors: int = 0
    lookup_errors: int = 0
    reconnect_count: int = 0
    last_message_time: float | None = None
    connected_since: float | None = None
    last_error: str | None = None


class SwapStreamError(Exception):
    """Base exception for swap stream errors."""


class SwapConnectionError(SwapStreamError):
    """Raised when connecting or subscribing fails."""


EventCallback = Callable[[SwapEvent], Awaitable[None]]


class BaseSwapStream:
    """Push adapter for Base swap logs."""

    def __init__(
        self,
        *,
        ws_url: str,
        chain: BaseChainClient,
        on_event: EventCallback,
        ping_interval: int = DEFAULT_PING_INTERVAL,
        max_reconnect_delay: int = DEFAULT_MAX_RECONNECT_DELAY,
        initial_reconnect_delay: int = DEFAULT_INITIAL_RECONNECT_DELAY,
    ) -> None:
        self._ws_url = ws_url
        self._chain = chain
        self._on_event = on_event
        self._ping_interval = ping_interval
        self._max_reconnect_delay = max_reconnect_delay
        self._initial_reconnect_delay = initial_reconnect_delay

        self._state = ConnectionState.DISCONNECTED
        self._stats = StreamStats()
        self._ws: ClientConnection | None = None
        self._subscription_id: str | None = None
        self._running = False
        self._stop_event: asyncio.Event | None = None
        self._log_tasks: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def stats(self) -> StreamStats:
        return self._stats

    def _set_state(self, new_state: ConnectionState) -> None:
        if self._state != new_state:
            logger.info("Base swap stream state: %s -> %s", self._state.value, new_state.value)
            self._state = new_state

    async def initialize(self) -> None:
        """Open the first connection.

        Raises:
            FatalStartupError: If the RPC or the subscription is unreachable.
        """
        try:
            await self._chain.get_chain_id()
            self._ws = await self._connect()
        except (ProviderError, SwapConnectionError) as e:
            raise FatalStartupError("Base", str(e)) from e

    async def _connect(self) -> ClientConnection:
        self._set_state(ConnectionState.CONNECTING)
        try:
            ws = await websockets.connect(
                self._ws_url,
                ping_interval=self._ping_interval,
                ping_timeout=self._ping_interval * 2,
                max_size=None,
            )
        except Exception as e:
            self._stats.last_error = str(e)
            raise SwapConnectionError(f"Failed to connect to {self._ws_url}: {e}") from e

        try:
            await ws.send(
                json.dumps(
                    {
                        "jsonrpc": "2.0",
                        "id": 1,
                        "method": "eth_subscribe",
                        "params": ["logs", {"topics": [V2_SWAP_TOPIC]}],
                    }
                )
            )
            reply = json.loads(await asyncio.wait_for(ws.recv(), timeout=SUBSCRIBE_TIMEOUT_SECONDS))
        except Exception as e:
            with contextlib.suppress(Exception):
                await ws.close()
            raise SwapConnectionError(f"eth_subscribe failed: {e}") from e

        if not isinstance(reply, dict) or "result" not in reply:
            with contextlib.suppress(Exception):
                await ws.close()
            raise SwapConnectionError(f"eth_subscribe rejected: {reply!r}")

        self._subscription_id = str(reply["result"])
        self._set_state(ConnectionState.CONNECTED)
        self._stats.connected_since = time.time()
        logger.info("Subscribed to Base swap logs (subscription=%s)", self._subscription_id)
        return ws

    def _handle_message(self, message: str | bytes) -> None:
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            self._stats.decode_errors += 1
            return

        params = data.get("params") if isinstance(data, dict) else None
        if not isinstance(params, dict) or data.get("method") != "eth_subscription":
            return
        log = params.get("result")
        if not isinstance(log, dict) or log.get("removed"):
            return

        self._stats.logs_received += 1
        self._stats.last_message_time = time.time()
        task = asyncio.create_task(self._process_log(log))
        self._log_tasks.add(task)
        task.add_done_callback(self._log_tasks.discard)

    async def _process_log(self, log: dict[str, Any]) -> None:
        received_at = datetime.now(UTC)
        try:
            token0, token1 = await self._chain.get_pair_tokens(str(log["address"]))
            event = decode_v2_swap_log(log, token0, token1, received_at=received_at)
        except DecodeError as e:
            self._stats.decode_errors += 1
            logger.debug("Dropping undecodable swap log: %s", e)
            return
        except (ProviderError, KeyError) as e:
            # Non-V2 pools (no token0/token1) land here constantly.
            self._stats.lookup_errors += 1
            logger.debug("Dropping swap log, pair lookup failed: %s", e)
            return

        self._stats.events_emitted += 1
        await self._on_event(event)

    async def _listen(self, ws: ClientConnection) -> None:
        try:
            while self._running:
                try:
                    message = await asyncio.wait_for(ws.recv(), timeout=1.0)
                except TimeoutError:
                    continue
                self._handle_message(message)
        except websockets.ConnectionClosed as e:
            logger.warning("Base swap stream connection closed: %s", e)
            raise

    async def run(self) -> None:
        """Consume the subscription until ``stop()``, reconnecting on failure."""
        if self._running:
            raise RuntimeError("Swap stream already running")
        self._running = True
        self._stop_event = asyncio.Event()

        delay = self._initial_reconnect_delay
        while self._running and not self._stop_event.is_set():
            try:
                if self._ws is None:
                    self._ws = await self._connect()
                delay = self._initial_reconnect_delay
                await self._listen(self._ws)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if not self._running:
                    break
                self._stats.reconnect_count += 1
                self._stats.last_error = str(e)
                self._set_state(ConnectionState.RECONNECTING)
                logger.warning("Base swap stream error, reconnecting in %ss: %s", delay, e)
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                delay = min(self._max_reconnect_delay, delay * 2)
            finally:
                with contextlib.suppress(Exception):
                    if self._ws:
                        await self._ws.close()
                self._ws = None

        self._set_state(ConnectionState.DISCONNECTED)

    async def stop(self) -> None:
        self._running = False
        if self._stop_event:
            self._stop_event.set()
        if self._ws:
            with contextlib.suppress(Exception):
                await self._ws.close()
        for task in list(self._log_tasks):
            task.cancel()
        if self._log_tasks:
            await asyncio.gather(*self._log_tasks, return_exceptions=True)
