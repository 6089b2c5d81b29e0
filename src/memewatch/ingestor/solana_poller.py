"""Cursor-based Solana swap poller.

Each polled program keeps its own watermark: the newest signature seen on the
previous scan. A scan asks only for signatures newer than the watermark
(``until``), paging back with ``before`` when a page comes back full,
processes them oldest first, then advances the watermark to the
newest one. The first scan only sets the watermark, so history from before
startup is never replayed.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from memewatch.ingestor.cache import TTLCache
from memewatch.ingestor.errors import DecodeError, FatalStartupError, ProviderError
from memewatch.ingestor.market_data import MetadataCache
from memewatch.ingestor.models import NetworkId, SwapEvent
from memewatch.ingestor.normalizer import decode_solana_transaction, token_decimals
from memewatch.ingestor.solana_rpc import SolanaRpcClient

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 20.0
DEFAULT_SIGNATURE_LIMIT = 10
DEFAULT_MAX_PAGES_PER_SCAN = 5
DEFAULT_MAX_EVENT_AGE_SECONDS = 30.0
DEFAULT_SEEN_CACHE_SIZE = 10_000

EventCallback = Callable[[SwapEvent], Awaitable[None]]


@dataclass
class PollerStats:
    scans: int = 0
    signatures_seen: int = 0
    events_emitted: int = 0
    decode_errors: int = 0
    stale_dropped: int = 0
    rpc_errors: int = 0
    truncated_scans: int = 0
    last_scan_time: float | None = None


class SolanaSwapPoller:
    """Poll adapter for Solana swap programs."""

    def __init__(
        self,
        *,
        rpc: SolanaRpcClient,
        programs: Sequence[str],
        on_event: EventCallback,
        metadata: MetadataCache | None = None,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        signature_limit: int = DEFAULT_SIGNATURE_LIMIT,
        max_pages_per_scan: int = DEFAULT_MAX_PAGES_PER_SCAN,
        request_delay_seconds: float = 0.3,
        program_delay_seconds: float = 1.0,
        max_event_age_seconds: float = DEFAULT_MAX_EVENT_AGE_SECONDS,
        seen_cache_size: int = DEFAULT_SEEN_CACHE_SIZE,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._rpc = rpc
        self._programs = tuple(programs)
        self._on_event = on_event
        self._metadata = metadata
        self._poll_interval = poll_interval_seconds
        self._signature_limit = signature_limit
        self._max_pages = max(1, max_pages_per_scan)
        self._request_delay = request_delay_seconds
        self._program_delay = program_delay_seconds
        self._max_age = max_event_age_seconds
        self._clock = clock
        self._sleep = sleep

        self._watermarks: dict[str, str] = {}
        self._seen: TTLCache[str, bool] = TTLCache(max_size=seen_cache_size, name="solana-seen")
        self._stats = PollerStats()
        self._running = False
        self._stop_event: asyncio.Event | None = None

    @property
    def stats(self) -> PollerStats:
        return self._stats

    @property
    def watermarks(self) -> dict[str, str]:
        return dict(self._watermarks)

    @property
    def seen_cache(self) -> TTLCache[str, bool]:
        return self._seen

    async def initialize(self) -> None:
        """Check the RPC endpoint is healthy.

        Raises:
            FatalStartupError: If the endpoint is unreachable or unhealthy.
        """
        if not self._programs:
            raise FatalStartupError("Solana", "no programs configured")
        try:
            health = await self._rpc.get_health()
        except ProviderError as e:
            raise FatalStartupError("Solana", str(e)) from e
        if health != "ok":
            raise FatalStartupError("Solana", f"RPC reports unhealthy: {health}")
        logger.info("Solana RPC healthy, polling %d programs", len(self._programs))

    async def scan_once(self) -> int:
        """Scan every program once. Returns the number of events emitted."""
        emitted = 0
        for index, program in enumerate(self._programs):
            if index:
                await self._sleep(self._program_delay)
            try:
                emitted += await self._scan_program(program)
            except ProviderError as e:
                self._stats.rpc_errors += 1
                logger.warning("Solana scan of %s failed: %s", program[:8], e)
        self._stats.scans += 1
        self._stats.last_scan_time = self._clock()
        return emitted

    async def _fetch_signatures(self, program: str, watermark: str | None) -> list[dict[str, Any]]:
        """Signatures newer than ``watermark``, newest first.

        A full page means more may be waiting behind it, so keep paging back
        with ``before`` until the watermark is reached or the page cap is hit.
        """
        page = await self._rpc.get_signatures_for_address(
            program,
            limit=self._signature_limit,
            until=watermark,
        )
        signatures = list(page)
        if watermark is None:
            return signatures

        pages = 1
        while len(page) >= self._signature_limit:
            oldest = page[-1].get("signature")
            if not oldest:
                break
            if pages >= self._max_pages:
                self._stats.truncated_scans += 1
                logger.warning(
                    "Solana scan of %s hit %d pages, signatures older than %s skipped",
                    program[:8],
                    pages,
                    str(oldest)[:12],
                )
                break
            await self._sleep(self._request_delay)
            page = await self._rpc.get_signatures_for_address(
                program,
                limit=self._signature_limit,
                until=watermark,
                before=str(oldest),
            )
            signatures.extend(page)
            pages += 1
        return signatures

    async def _scan_program(self, program: str) -> int:
        watermark = self._watermarks.get(program)
        signatures = await self._fetch_signatures(program, watermark)
        if not signatures:
            return 0

        newest = str(signatures[0].get("signature") or "")
        if watermark is None:
            # First sighting: anchor the cursor, do not replay.
            if newest:
                self._watermarks[program] = newest
                for sig in signatures:
                    if sig.get("signature"):
                        self._seen.set(str(sig["signature"]), True)
            return 0

        emitted = 0
        for sig in reversed(signatures):
            signature = sig.get("signature")
            if not signature or sig.get("err") is not None:
                continue
            if not self._seen.add(str(signature), True):
                continue
            self._stats.signatures_seen += 1
            block_time = sig.get("blockTime")
            if block_time and self._clock() - float(block_time) > self._max_age:
                self._stats.stale_dropped += 1
                continue

            event = await self._fetch_event(str(signature), program)
            if event is not None:
                self._stats.events_emitted += 1
                emitted += 1
                await self._on_event(event)
            await self._sleep(self._request_delay)

        if newest:
            self._watermarks[program] = newest
        return emitted

    async def _fetch_event(self, signature: str, program: str) -> SwapEvent | None:
        try:
            tx = await self._rpc.get_transaction(signature)
        except ProviderError as e:
            self._stats.rpc_errors += 1
            logger.debug("getTransaction %s failed: %s", signature[:12], e)
            return None
        if not tx:
            return None

        try:
            event = decode_solana_transaction(signature, tx, program_id=program)
        except DecodeError as e:
            self._stats.decode_errors += 1
            logger.debug("Dropping Solana transaction %s: %s", signature[:12], e)
            return None

        if self._clock() - event.timestamp.timestamp() > self._max_age:
            self._stats.stale_dropped += 1
            return None

        if self._metadata is not None:
            decimals = token_decimals(tx, event.asset_out)
            if decimals is not None:
                self._metadata.remember_decimals(NetworkId.SOLANA, event.asset_out, decimals)
        return event

    async def run(self) -> None:
        """Scan on a fixed interval until ``stop()``."""
        if self._running:
            raise RuntimeError("Solana poller already running")
        self._running = True
        self._stop_event = asyncio.Event()

        while self._running and not self._stop_event.is_set():
            try:
                await self.scan_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("Solana poll loop error: %s", e)
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._poll_interval)

    async def stop(self) -> None:
        self._running = False
        if self._stop_event:
            self._stop_event.set()
