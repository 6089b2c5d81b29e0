"""Whale window aggregation.

The aggregator is the only owner of per-asset window state. A window is
anchored at the first qualifying buy; once a new buy arrives more than
``duration_seconds`` after the anchor, the window is reset and re-anchored
at that buy. This is a fixed window, not a sliding one: a single stray buy
after a long pause wipes what had accumulated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from memewatch.detector.models import WindowSnapshot

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DURATION_SECONDS = 300.0
DEFAULT_IDLE_MULTIPLIER = 3.0


@dataclass
class AssetWindow:
    asset_id: str
    anchor: float
    buyers: dict[str, Decimal] = field(default_factory=dict)
    total_volume_usd: Decimal = Decimal("0")

    def reset(self, now: float) -> None:
        self.buyers.clear()
        self.total_volume_usd = Decimal("0")
        self.anchor = now


class WhaleWindowAggregator:
    """Tracks unique buyers and cumulative volume per asset.

    Example:
        ```python
        windows = WhaleWindowAggregator(duration_seconds=300)
        snap = windows.record_buy("mint", "wallet", Decimal("500"), now=time.time())
        print(snap.unique_buyers, snap.total_volume_usd)
        ```
    """

    def __init__(
        self,
        *,
        duration_seconds: float = DEFAULT_WINDOW_DURATION_SECONDS,
        idle_multiplier: float = DEFAULT_IDLE_MULTIPLIER,
    ) -> None:
        self._duration = duration_seconds
        self._idle_after = duration_seconds * idle_multiplier
        self._windows: dict[str, AssetWindow] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._windows

    @property
    def duration_seconds(self) -> float:
        return self._duration

    def record_buy(self, asset_id: str, buyer_id: str, usd_amount: Decimal, now: float) -> WindowSnapshot:
        """Record a qualifying buy and return the window state after it."""
        window = self._windows.get(asset_id)
        was_reset = False
        if window is None:
            window = AssetWindow(asset_id=asset_id, anchor=now)
            self._windows[asset_id] = window
        elif now - window.anchor > self._duration:
            window.reset(now)
            was_reset = True

        window.buyers[buyer_id] = window.buyers.get(buyer_id, Decimal("0")) + usd_amount
        window.total_volume_usd += usd_amount

        return WindowSnapshot(
            asset_id=asset_id,
            unique_buyers=len(window.buyers),
            total_volume_usd=window.total_volume_usd,
            anchor=window.anchor,
            was_reset=was_reset,
        )

    def buyers(self, asset_id: str) -> tuple[str, ...]:
        window = self._windows.get(asset_id)
        return tuple(window.buyers) if window is not None else ()

    def evict_idle(self, now: float) -> int:
        """Drop windows anchored more than ``duration x idle_multiplier`` ago."""
        stale = [a for a, w in self._windows.items() if now - w.anchor > self._idle_after]
        for asset_id in stale:
            del self._windows[asset_id]
        if stale:
            logger.debug("Evicted %d idle windows", len(stale))
        return len(stale)
