"""Pytest configuration and fixtures."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from memewatch.ingestor.models import AssetMetadata, MarketStats, NetworkId, SwapEvent

BASE_TOKEN = "0x1234567890abcdef1234567890abcdef12345678"
SOLANA_MINT = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"


class FakeClock:
    """Manually advanced clock for window, TTL and queue tests."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sample_token() -> str:
    """Sample Base token address for testing."""
    return BASE_TOKEN


def make_market(
    asset_id: str = BASE_TOKEN,
    network: NetworkId = NetworkId.BASE,
    *,
    liquidity_usd: float = 50_000.0,
    market_cap_usd: float = 200_000.0,
    age_hours: float | None = 6.0,
    **kwargs: object,
) -> MarketStats:
    return MarketStats(
        asset_id=asset_id,
        network=network,
        pair_address=kwargs.pop("pair_address", "0xpair"),  # type: ignore[arg-type]
        liquidity_usd=liquidity_usd,
        market_cap_usd=market_cap_usd,
        price_usd=0.001,
        age_hours=age_hours,
        **kwargs,  # type: ignore[arg-type]
    )


def make_metadata(
    asset_id: str = BASE_TOKEN,
    network: NetworkId = NetworkId.BASE,
    **kwargs: object,
) -> AssetMetadata:
    market = make_market(asset_id, network, symbol="PEPE", name="Pepe", **kwargs)
    return AssetMetadata(asset_id=asset_id, symbol="PEPE", name="Pepe", decimals=18, market=market)


def make_event(
    *,
    network: NetworkId = NetworkId.BASE,
    event_id: str = "0xabc:0",
    asset_in: str = "0x4200000000000000000000000000000000000006",
    asset_out: str = BASE_TOKEN,
    amount_in: int = 10**18,
    amount_out: int = 10**24,
    taker: str = "0x1111111111111111111111111111111111111111",
) -> SwapEvent:
    return SwapEvent(
        network=network,
        event_id=event_id,
        timestamp=datetime.now(UTC),
        pool_id="0xpair",
        asset_in=asset_in,
        asset_out=asset_out,
        amount_in=amount_in,
        amount_out=amount_out,
        taker=taker,
    )
