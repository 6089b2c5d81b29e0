"""Trigger policy: decides whether a window deserves a safety review."""

from __future__ import annotations

from decimal import Decimal

from memewatch.detector.models import TriggerDecision, TriggerReason

DEFAULT_BIG_BUY_USD = 2000.0
DEFAULT_MIN_WHALES = 2


class TriggerPolicy:
    """Fires on a big first buy or on enough distinct whales.

    A big single buy only counts while it is the window's only buyer; after
    that the multi-whale path takes over.
    """

    def __init__(
        self,
        *,
        big_buy_usd: float = DEFAULT_BIG_BUY_USD,
        min_whales: int = DEFAULT_MIN_WHALES,
    ) -> None:
        self._big_buy_usd = Decimal(str(big_buy_usd))
        self._min_whales = min_whales

    def evaluate(self, buy_usd: Decimal | float, unique_buyers: int) -> TriggerDecision:
        amount = buy_usd if isinstance(buy_usd, Decimal) else Decimal(str(buy_usd))
        if unique_buyers >= self._min_whales:
            return TriggerDecision(fired=True, reason=TriggerReason.MULTI_WHALE)
        if amount >= self._big_buy_usd and unique_buyers == 1:
            return TriggerDecision(fired=True, reason=TriggerReason.BIG_SINGLE_BUY)
        return TriggerDecision(fired=False)
