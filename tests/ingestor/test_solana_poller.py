"""Tests for the cursor-based Solana poller."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import SOLANA_MINT, FakeClock
from memewatch.ingestor.errors import FatalStartupError, ProviderError
from memewatch.ingestor.models import NetworkId, SwapEvent
from memewatch.ingestor.solana_poller import SolanaSwapPoller

PROGRAM = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"
PAYER = "Payer1111111111111111111111111111111111111"


def _sig(signature: str, block_time: float, err: object = None) -> dict[str, object]:
    return {"signature": signature, "blockTime": block_time, "err": err}


def _tx(block_time: float) -> dict[str, object]:
    return {
        "blockTime": block_time,
        "meta": {
            "err": None,
            "preBalances": [3 * 10**9],
            "postBalances": [10**9],
            "preTokenBalances": [],
            "postTokenBalances": [
                {
                    "accountIndex": 2,
                    "mint": SOLANA_MINT,
                    "owner": PAYER,
                    "uiTokenAmount": {"amount": "5000000", "decimals": 6, "uiAmount": 5.0},
                }
            ],
        },
        "transaction": {"message": {"accountKeys": [PAYER]}},
    }


@pytest.fixture
def rpc() -> MagicMock:
    client = MagicMock()
    client.get_health = AsyncMock(return_value="ok")
    client.get_signatures_for_address = AsyncMock(return_value=[])
    client.get_transaction = AsyncMock()
    return client


@pytest.fixture
def events() -> list[SwapEvent]:
    return []


@pytest.fixture
def poller(rpc: MagicMock, events: list[SwapEvent], clock: FakeClock) -> SolanaSwapPoller:
    async def on_event(event: SwapEvent) -> None:
        events.append(event)

    return SolanaSwapPoller(
        rpc=rpc,
        programs=[PROGRAM],
        on_event=on_event,
        metadata=MagicMock(),
        max_event_age_seconds=30,
        clock=clock,
        sleep=AsyncMock(),
    )


class TestInitialize:
    @pytest.mark.asyncio
    async def test_healthy(self, poller: SolanaSwapPoller) -> None:
        await poller.initialize()

    @pytest.mark.asyncio
    async def test_unreachable_is_fatal(self, poller: SolanaSwapPoller, rpc: MagicMock) -> None:
        rpc.get_health.side_effect = ProviderError("solana-rpc", "connection refused")
        with pytest.raises(FatalStartupError) as exc_info:
            await poller.initialize()
        assert exc_info.value.network == "Solana"

    @pytest.mark.asyncio
    async def test_unhealthy_is_fatal(self, poller: SolanaSwapPoller, rpc: MagicMock) -> None:
        rpc.get_health.return_value = "behind"
        with pytest.raises(FatalStartupError):
            await poller.initialize()

    @pytest.mark.asyncio
    async def test_no_programs_is_fatal(self, rpc: MagicMock) -> None:
        poller = SolanaSwapPoller(rpc=rpc, programs=[], on_event=AsyncMock())
        with pytest.raises(FatalStartupError):
            await poller.initialize()


class TestScan:
    @pytest.mark.asyncio
    async def test_first_scan_anchors_without_replay(
        self, poller: SolanaSwapPoller, rpc: MagicMock, events: list[SwapEvent], clock: FakeClock
    ) -> None:
        rpc.get_signatures_for_address.return_value = [_sig("s2", clock.now), _sig("s1", clock.now)]
        assert await poller.scan_once() == 0
        assert events == []
        assert poller.watermarks == {PROGRAM: "s2"}
        rpc.get_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_second_scan_uses_watermark_and_emits_oldest_first(
        self, poller: SolanaSwapPoller, rpc: MagicMock, events: list[SwapEvent], clock: FakeClock
    ) -> None:
        rpc.get_signatures_for_address.return_value = [_sig("s1", clock.now)]
        await poller.scan_once()

        rpc.get_signatures_for_address.return_value = [_sig("s3", clock.now), _sig("s2", clock.now)]
        rpc.get_transaction.return_value = _tx(clock.now)
        assert await poller.scan_once() == 2

        assert rpc.get_signatures_for_address.await_args.kwargs["until"] == "s1"
        fetched = [c.args[0] for c in rpc.get_transaction.await_args_list]
        assert fetched == ["s2", "s3"]
        assert [e.event_id for e in events] == ["s2", "s3"]
        assert events[0].network == NetworkId.SOLANA
        assert poller.watermarks[PROGRAM] == "s3"

    @pytest.mark.asyncio
    async def test_seen_signature_not_reemitted(
        self, poller: SolanaSwapPoller, rpc: MagicMock, events: list[SwapEvent], clock: FakeClock
    ) -> None:
        rpc.get_signatures_for_address.return_value = [_sig("s1", clock.now)]
        await poller.scan_once()
        rpc.get_transaction.return_value = _tx(clock.now)
        rpc.get_signatures_for_address.return_value = [_sig("s2", clock.now), _sig("s1", clock.now)]
        await poller.scan_once()
        assert [e.event_id for e in events] == ["s2"]

    @pytest.mark.asyncio
    async def test_stale_and_failed_signatures_skipped(
        self, poller: SolanaSwapPoller, rpc: MagicMock, events: list[SwapEvent], clock: FakeClock
    ) -> None:
        rpc.get_signatures_for_address.return_value = [_sig("s0", clock.now)]
        await poller.scan_once()
        rpc.get_signatures_for_address.return_value = [
            _sig("failed", clock.now, err={"InstructionError": [0, "Custom"]}),
            _sig("old", clock.now - 120),
        ]
        assert await poller.scan_once() == 0
        assert poller.stats.stale_dropped == 1
        rpc.get_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_rpc_error_counted_not_raised(self, poller: SolanaSwapPoller, rpc: MagicMock) -> None:
        rpc.get_signatures_for_address.side_effect = ProviderError("solana-rpc", "HTTP 429")
        assert await poller.scan_once() == 0
        assert poller.stats.rpc_errors == 1
        assert poller.stats.scans == 1

    @pytest.mark.asyncio
    async def test_undecodable_transaction_dropped(
        self, poller: SolanaSwapPoller, rpc: MagicMock, events: list[SwapEvent], clock: FakeClock
    ) -> None:
        rpc.get_signatures_for_address.return_value = [_sig("s0", clock.now)]
        await poller.scan_once()
        rpc.get_signatures_for_address.return_value = [_sig("s1", clock.now)]
        rpc.get_transaction.return_value = {"meta": None}
        await poller.scan_once()
        assert events == []
        assert poller.stats.decode_errors == 1

    @pytest.mark.asyncio
    async def test_decimals_remembered(
        self, poller: SolanaSwapPoller, rpc: MagicMock, clock: FakeClock
    ) -> None:
        rpc.get_signatures_for_address.return_value = [_sig("s0", clock.now)]
        await poller.scan_once()
        rpc.get_signatures_for_address.return_value = [_sig("s1", clock.now)]
        rpc.get_transaction.return_value = _tx(clock.now)
        await poller.scan_once()
        metadata = poller._metadata
        assert isinstance(metadata, MagicMock)
        metadata.remember_decimals.assert_called_once_with(NetworkId.SOLANA, SOLANA_MINT, 6)


class FakeSignatureLedger:
    """Answers getSignaturesForAddress over a growing newest-first history."""

    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self.history: list[str] = []

    def append(self, count: int) -> None:
        start = len(self.history)
        self.history.extend(f"s{i}" for i in range(start, start + count))

    async def __call__(
        self, address: str, *, limit: int, until: str | None = None, before: str | None = None
    ) -> list[dict[str, object]]:
        newest_first = list(reversed(self.history))
        if before is not None:
            newest_first = newest_first[newest_first.index(before) + 1 :]
        if until is not None and until in newest_first:
            newest_first = newest_first[: newest_first.index(until)]
        return [_sig(s, self._clock.now) for s in newest_first[:limit]]


class TestPaging:
    """A backlog larger than one page is fetched without gaps."""

    def _poller(self, rpc: MagicMock, clock: FakeClock, *, max_pages: int = 5) -> SolanaSwapPoller:
        return SolanaSwapPoller(
            rpc=rpc,
            programs=[PROGRAM],
            on_event=AsyncMock(),
            signature_limit=10,
            max_pages_per_scan=max_pages,
            clock=clock,
            sleep=AsyncMock(),
        )

    @pytest.mark.asyncio
    async def test_full_page_pages_back_to_watermark(self, rpc: MagicMock, clock: FakeClock) -> None:
        ledger = FakeSignatureLedger(clock)
        rpc.get_signatures_for_address = AsyncMock(side_effect=ledger.__call__)
        rpc.get_transaction.return_value = _tx(clock.now)
        poller = self._poller(rpc, clock)

        ledger.append(1)
        await poller.scan_once()
        ledger.append(15)
        assert await poller.scan_once() == 15

        fetched = [c.args[0] for c in rpc.get_transaction.await_args_list]
        assert fetched == [f"s{i}" for i in range(1, 16)]
        assert poller.watermarks[PROGRAM] == "s15"
        assert poller.stats.truncated_scans == 0

        before = [c.kwargs.get("before") for c in rpc.get_signatures_for_address.await_args_list]
        assert before == [None, None, "s6"]

    @pytest.mark.asyncio
    async def test_repeated_scans_never_refetch(self, rpc: MagicMock, clock: FakeClock) -> None:
        ledger = FakeSignatureLedger(clock)
        rpc.get_signatures_for_address = AsyncMock(side_effect=ledger.__call__)
        rpc.get_transaction.return_value = _tx(clock.now)
        poller = self._poller(rpc, clock)

        ledger.append(1)
        await poller.scan_once()
        for _ in range(3):
            ledger.append(12)
            await poller.scan_once()

        fetched = [c.args[0] for c in rpc.get_transaction.await_args_list]
        assert fetched == [f"s{i}" for i in range(1, 37)]

    @pytest.mark.asyncio
    async def test_page_cap_truncates_and_counts(self, rpc: MagicMock, clock: FakeClock) -> None:
        ledger = FakeSignatureLedger(clock)
        rpc.get_signatures_for_address = AsyncMock(side_effect=ledger.__call__)
        rpc.get_transaction.return_value = _tx(clock.now)
        poller = self._poller(rpc, clock, max_pages=2)

        ledger.append(1)
        await poller.scan_once()
        ledger.append(35)
        assert await poller.scan_once() == 20

        assert poller.stats.truncated_scans == 1
        assert poller.watermarks[PROGRAM] == "s35"
        fetched = [c.args[0] for c in rpc.get_transaction.await_args_list]
        assert fetched == [f"s{i}" for i in range(16, 36)]
