"""Stage A market filters: liquidity, market cap and pool age bounds."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from memewatch.detector.models import ValidationFailure
from memewatch.ingestor.models import AssetMetadata, NetworkId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketBounds:
    min_liquidity_usd: float
    max_liquidity_usd: float
    min_market_cap_usd: float
    max_market_cap_usd: float
    max_age_hours: float | None = None


def _fmt(value: float) -> str:
    return f"${value:,.0f}"


class MarketFilter:
    """Cheap bounds checks on cached metadata. No network calls."""

    def __init__(self, bounds: Mapping[NetworkId, MarketBounds]) -> None:
        self._bounds = dict(bounds)

    def bounds_for(self, network: NetworkId) -> MarketBounds | None:
        return self._bounds.get(network)

    def evaluate(self, network: NetworkId, metadata: AssetMetadata | None) -> ValidationFailure | None:
        """Return the first failed bound, or None if the asset passes."""
        if metadata is None:
            return ValidationFailure("market", "no market data")
        bounds = self._bounds.get(network)
        if bounds is None:
            return None

        liq = metadata.liquidity_usd
        if liq < bounds.min_liquidity_usd:
            return ValidationFailure("market", f"liquidity {_fmt(liq)} below {_fmt(bounds.min_liquidity_usd)}")
        if liq > bounds.max_liquidity_usd:
            return ValidationFailure("market", f"liquidity {_fmt(liq)} above {_fmt(bounds.max_liquidity_usd)}")

        mcap = metadata.market_cap_usd
        if mcap < bounds.min_market_cap_usd:
            return ValidationFailure("market", f"market cap {_fmt(mcap)} below {_fmt(bounds.min_market_cap_usd)}")
        if mcap > bounds.max_market_cap_usd:
            return ValidationFailure("market", f"market cap {_fmt(mcap)} above {_fmt(bounds.max_market_cap_usd)}")

        if bounds.max_age_hours is not None and metadata.age_hours is not None:
            if metadata.age_hours > bounds.max_age_hours:
                return ValidationFailure(
                    "market",
                    f"age {metadata.age_hours:.1f}h above {bounds.max_age_hours:.0f}h",
                )
        return None
