"""Price momentum labels. Informational: carries no score."""

from __future__ import annotations

from collections import deque

from memewatch.detector.checks.base import CheckContext, SafetyCheck
from memewatch.detector.models import CheckResult, CheckStage
from memewatch.ingestor.cache import TTLCache
from memewatch.ingestor.errors import ProviderError
from memewatch.ingestor.models import MarketStats

HISTORY_POINTS = 20
VOLUME_SURGE_MULTIPLIER = 3.0


def momentum_label(change_5m: float, change_1h: float, change_24h: float) -> str:
    if change_5m > 50:
        return "MEGA PUMP"
    if change_5m > 20:
        return "STRONG PUMP"
    if change_5m > 10:
        return "PUMPING"
    if change_1h > 30:
        return "STRONG UPTREND"
    if change_1h > 15:
        return "UPTREND"
    if change_1h < -20:
        return "DUMPING"
    if change_24h > 100:
        return "HOT"
    return "SIDEWAYS"


class MomentumCheck(SafetyCheck):
    """Labels price action and flags 5m volume surges against recent history."""

    name = "momentum"
    stage = CheckStage.DEEP
    cacheable = False

    def __init__(self, *, max_assets: int = 5000, weight: float = 0.0) -> None:
        super().__init__(weight=weight)
        self._history: TTLCache[str, deque[float]] = TTLCache(max_size=max_assets, name="volume-history")

    @property
    def history(self) -> TTLCache[str, deque[float]]:
        return self._history

    def observe(self, market: MarketStats) -> bool:
        """Record a volume point and report whether it is a surge."""
        points = self._history.get(market.asset_id)
        if points is None:
            points = deque(maxlen=HISTORY_POINTS + 1)
            self._history.set(market.asset_id, points)
        points.append(market.volume_5m)
        if len(points) < 3:
            return False
        prior = list(points)[:-1]
        average = sum(prior) / len(prior)
        return average > 0 and market.volume_5m >= average * VOLUME_SURGE_MULTIPLIER

    async def check(self, ctx: CheckContext) -> CheckResult:
        if ctx.metadata is None:
            raise ProviderError("dexscreener", "no market data")
        market = ctx.metadata.market
        label = momentum_label(market.price_change_5m, market.price_change_1h, market.price_change_24h)
        surge = self.observe(market)
        reason = f"{label}, volume surge 3x" if surge else label
        return CheckResult(
            self.name,
            None,
            True,
            reason,
            details={
                "label": label,
                "5m": f"{market.price_change_5m:+.1f}%",
                "1h": f"{market.price_change_1h:+.1f}%",
                "volume_surge": str(surge),
            },
        )
