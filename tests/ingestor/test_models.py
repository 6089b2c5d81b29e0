"""Tests for ingestor data models."""

from __future__ import annotations

import dataclasses
from decimal import Decimal

import pytest

from conftest import BASE_TOKEN, make_event, make_metadata
from memewatch.ingestor.models import MarketStats, NetworkId, QualifiedBuy

NOW = 1_700_000_000.0


def _pair(**overrides: object) -> dict[str, object]:
    pair: dict[str, object] = {
        "chainId": "base",
        "pairAddress": "0xpair",
        "baseToken": {"address": BASE_TOKEN, "name": "Pepe", "symbol": "PEPE"},
        "priceUsd": "0.00012",
        "liquidity": {"usd": 42_000.5},
        "marketCap": 180_000,
        "fdv": 250_000,
        "pairCreatedAt": int((NOW - 3 * 3600) * 1000),
        "priceChange": {"m5": 12.5, "h1": "-3.2", "h24": 140},
        "volume": {"m5": 9_000},
        "txns": {"m5": {"buys": 30, "sells": "12"}},
        "info": {
            "websites": [{"url": "https://pepe.example"}],
            "socials": [{"type": "Twitter", "url": "x"}, {"type": "telegram"}, "junk"],
        },
    }
    pair.update(overrides)
    return pair


class TestNetworkId:
    def test_display_names(self) -> None:
        assert NetworkId.BASE.display_name == "Base"
        assert NetworkId.SOLANA.display_name == "Solana"

    def test_from_value(self) -> None:
        assert NetworkId("solana") is NetworkId.SOLANA


class TestMarketStats:
    """Tests for MarketStats.from_dexscreener_pair."""

    def test_full_pair(self) -> None:
        stats = MarketStats.from_dexscreener_pair(BASE_TOKEN, NetworkId.BASE, _pair(), now=NOW)

        assert stats.pair_address == "0xpair"
        assert stats.liquidity_usd == 42_000.5
        assert stats.market_cap_usd == 180_000.0
        assert stats.price_usd == pytest.approx(0.00012)
        assert stats.age_hours == pytest.approx(3.0)
        assert stats.price_change_1h == pytest.approx(-3.2)
        assert stats.buys_5m == 30
        assert stats.sells_5m == 12
        assert stats.symbol == "PEPE"
        assert stats.socials == ("twitter", "telegram")
        assert stats.has_website is True

    def test_market_cap_falls_back_to_fdv(self) -> None:
        stats = MarketStats.from_dexscreener_pair(BASE_TOKEN, NetworkId.BASE, _pair(marketCap=None), now=NOW)
        assert stats.market_cap_usd == 250_000.0

    def test_sparse_pair(self) -> None:
        stats = MarketStats.from_dexscreener_pair(BASE_TOKEN, NetworkId.SOLANA, {}, now=NOW)

        assert stats.pair_address is None
        assert stats.liquidity_usd == 0.0
        assert stats.age_hours is None
        assert stats.symbol == "???"
        assert stats.name == "Unknown"
        assert stats.socials == ()
        assert stats.has_website is False

    def test_bad_numbers_default_to_zero(self) -> None:
        pair = _pair(priceUsd="n/a", txns={"m5": {"buys": "many"}})
        stats = MarketStats.from_dexscreener_pair(BASE_TOKEN, NetworkId.BASE, pair, now=NOW)
        assert stats.price_usd == 0.0
        assert stats.buys_5m == 0

    def test_future_creation_time_clamped(self) -> None:
        pair = _pair(pairCreatedAt=int((NOW + 600) * 1000))
        stats = MarketStats.from_dexscreener_pair(BASE_TOKEN, NetworkId.BASE, pair, now=NOW)
        assert stats.age_hours == 0.0


class TestAssetMetadata:
    def test_market_passthrough(self) -> None:
        meta = make_metadata(liquidity_usd=10_000.0, market_cap_usd=90_000.0, age_hours=2.0)
        assert meta.liquidity_usd == 10_000.0
        assert meta.market_cap_usd == 90_000.0
        assert meta.age_hours == 2.0

    def test_frozen(self) -> None:
        with pytest.raises(dataclasses.FrozenInstanceError):
            make_metadata().symbol = "X"  # type: ignore[misc]


class TestQualifiedBuy:
    def test_network_from_event(self) -> None:
        event = make_event(network=NetworkId.SOLANA)
        buy = QualifiedBuy(event=event, asset_id="mint", buyer="w", usd_amount=Decimal("250"), base_asset="SOL")
        assert buy.network is NetworkId.SOLANA
