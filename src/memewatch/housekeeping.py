"""Periodic sweep over every stateful store in the pipeline."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from memewatch.detector.dedup import DedupStore
from memewatch.detector.serial_buyers import SerialBuyerTracker
from memewatch.detector.window import WhaleWindowAggregator
from memewatch.ingestor.cache import TTLCache
from memewatch.ingestor.price_feed import PriceFeed

logger = logging.getLogger(__name__)

DEFAULT_DEDUP_MAX_SIZE = 1000


@dataclass(frozen=True)
class HousekeepingReport:
    windows_evicted: int = 0
    dedup_cleared: int = 0
    cache_entries_expired: int = 0
    prices_expired: int = 0
    wallets_expired: int = 0

    @property
    def total(self) -> int:
        return (
            self.windows_evicted
            + self.dedup_cleared
            + self.cache_entries_expired
            + self.prices_expired
            + self.wallets_expired
        )


class Housekeeper:
    """Evicts idle windows, bulk-clears the dedup set and expires caches.

    Stores are registered at construction; ``sweep()`` touches each once.
    """

    def __init__(
        self,
        *,
        windows: WhaleWindowAggregator,
        dedup: DedupStore,
        caches: Iterable[TTLCache[Any, Any]] = (),
        price_feed: PriceFeed | None = None,
        serial_buyers: SerialBuyerTracker | None = None,
        dedup_max_size: int = DEFAULT_DEDUP_MAX_SIZE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._windows = windows
        self._dedup = dedup
        self._caches = list(caches)
        self._price_feed = price_feed
        self._serial_buyers = serial_buyers
        self._dedup_max_size = dedup_max_size
        self._clock = clock

    def register_cache(self, cache: TTLCache[Any, Any]) -> None:
        self._caches.append(cache)

    async def sweep(self) -> HousekeepingReport:
        windows = self._windows.evict_idle(self._clock())
        dedup = await self._dedup.clear_if_exceeds(self._dedup_max_size)
        expired = sum(cache.sweep() for cache in self._caches)
        prices = self._price_feed.sweep() if self._price_feed is not None else 0
        wallets = self._serial_buyers.sweep() if self._serial_buyers is not None else 0
        report = HousekeepingReport(
            windows_evicted=windows,
            dedup_cleared=dedup,
            cache_entries_expired=expired,
            prices_expired=prices,
            wallets_expired=wallets,
        )
        if report.total:
            logger.debug(
                "Housekeeping: %d windows, %d dedup, %d cache entries, %d prices, %d wallets",
                windows,
                dedup,
                expired,
                prices,
                wallets,
            )
        return report
