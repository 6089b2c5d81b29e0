"""Data models for the ingestor module."""

from __future__ import annotations

import contextlib
import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class NetworkId(str, Enum):
    """Chains the detector ingests from."""

    BASE = "base"
    SOLANA = "solana"

    @property
    def display_name(self) -> str:
        return {NetworkId.BASE: "Base", NetworkId.SOLANA: "Solana"}[self]

    @property
    def dexscreener_chain(self) -> str:
        """Chain id used by DexScreener pair payloads."""
        return self.value


@dataclass(frozen=True)
class SwapEvent:
    """Canonical swap record produced once by normalization.

    Amounts are raw on-chain integers in the smallest unit of each asset.

    Attributes:
        network: Chain the swap happened on.
        event_id: Stable unique id (``txHash:logIndex`` or a signature).
        timestamp: Block time, or receive time when the chain omits it.
        pool_id: Pair / pool / program the swap went through.
        asset_in: Asset the taker paid with.
        asset_out: Asset the taker received.
        amount_in: Raw amount paid.
        amount_out: Raw amount received.
        taker: Wallet that initiated the swap.
    """

    network: NetworkId
    event_id: str
    timestamp: datetime
    pool_id: str
    asset_in: str
    asset_out: str
    amount_in: int
    amount_out: int
    taker: str


@dataclass(frozen=True)
class QualifiedBuy:
    """A swap classified as a base-asset-for-token buy above the whale floor."""

    event: SwapEvent
    asset_id: str
    buyer: str
    usd_amount: Decimal
    base_asset: str

    @property
    def network(self) -> NetworkId:
        return self.event.network


def _float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    with contextlib.suppress(TypeError, ValueError):
        return float(value)
    return default


def _int(value: Any) -> int:
    with contextlib.suppress(TypeError, ValueError):
        return int(value)
    return 0


@dataclass(frozen=True)
class MarketStats:
    """Market data for one asset, taken from its deepest pool.

    Attributes:
        asset_id: Token address / mint.
        network: Chain the pool lives on.
        pair_address: Pool the numbers were taken from.
        liquidity_usd: Pool liquidity in USD.
        market_cap_usd: Market cap (falls back to FDV).
        price_usd: Last price.
        age_hours: Hours since pool creation, if known.
        price_change_5m: Percent change over 5 minutes.
        price_change_1h: Percent change over 1 hour.
        price_change_24h: Percent change over 24 hours.
        volume_5m: USD volume over 5 minutes.
        buys_5m: Buy transactions over 5 minutes.
        sells_5m: Sell transactions over 5 minutes.
        socials: Social link types (``twitter``, ``telegram``...).
        has_website: Whether the listing carries a website.
    """

    asset_id: str
    network: NetworkId
    pair_address: str | None
    liquidity_usd: float
    market_cap_usd: float
    price_usd: float
    age_hours: float | None
    price_change_5m: float = 0.0
    price_change_1h: float = 0.0
    price_change_24h: float = 0.0
    volume_5m: float = 0.0
    buys_5m: int = 0
    sells_5m: int = 0
    symbol: str = "???"
    name: str = "Unknown"
    socials: tuple[str, ...] = ()
    has_website: bool = False

    @classmethod
    def from_dexscreener_pair(
        cls,
        asset_id: str,
        network: NetworkId,
        pair: dict[str, Any],
        *,
        now: float | None = None,
    ) -> MarketStats:
        """Create from a DexScreener pair object."""
        now = time.time() if now is None else now
        created_ms = pair.get("pairCreatedAt")
        age_hours = None
        if created_ms:
            age_hours = max(0.0, (now * 1000 - _float(created_ms)) / 3_600_000)

        liquidity = pair.get("liquidity") or {}
        changes = pair.get("priceChange") or {}
        volume = pair.get("volume") or {}
        txns_5m = (pair.get("txns") or {}).get("m5") or {}
        base_token = pair.get("baseToken") or {}
        info = pair.get("info") or {}

        market_cap = _float(pair.get("marketCap")) or _float(pair.get("fdv"))
        return cls(
            asset_id=asset_id,
            network=network,
            pair_address=pair.get("pairAddress"),
            liquidity_usd=_float(liquidity.get("usd")),
            market_cap_usd=market_cap,
            price_usd=_float(pair.get("priceUsd")),
            age_hours=age_hours,
            price_change_5m=_float(changes.get("m5")),
            price_change_1h=_float(changes.get("h1")),
            price_change_24h=_float(changes.get("h24")),
            volume_5m=_float(volume.get("m5")),
            buys_5m=_int(txns_5m.get("buys")),
            sells_5m=_int(txns_5m.get("sells")),
            symbol=str(base_token.get("symbol") or "???"),
            name=str(base_token.get("name") or "Unknown"),
            socials=tuple(
                str(s.get("type")).lower() for s in info.get("socials") or [] if isinstance(s, dict) and s.get("type")
            ),
            has_website=bool(info.get("websites")),
        )


@dataclass(frozen=True)
class AssetMetadata:
    """Cached descriptive and market data for one asset."""

    asset_id: str
    symbol: str
    name: str
    decimals: int | None
    market: MarketStats
    fetched_at: float = field(default_factory=time.time)

    @property
    def liquidity_usd(self) -> float:
        return self.market.liquidity_usd

    @property
    def market_cap_usd(self) -> float:
        return self.market.market_cap_usd

    @property
    def age_hours(self) -> float | None:
        return self.market.age_hours

    @property
    def price_change_5m(self) -> float:
        return self.market.price_change_5m

    @property
    def price_change_1h(self) -> float:
        return self.market.price_change_1h


@dataclass(frozen=True)
class PriceQuote:
    """USD price of a network's native asset.

    ``is_stale`` is set when a refresh failed and an older value was served.
    """

    network: NetworkId
    native_asset_usd: float
    fetched_at: float
    is_stale: bool = False
