"""Serial buyer (sniper) tracking.

A wallet that buys ``min_assets`` distinct assets is flagged once. Flagged
wallets present in an asset's window feed the alpha scorer's sniper count.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable

from memewatch.ingestor.cache import TTLCache

logger = logging.getLogger(__name__)

DEFAULT_MIN_ASSETS = 3
DEFAULT_TTL_SECONDS = 3600.0
DEFAULT_MAX_WALLETS = 20_000


class SerialBuyerTracker:
    """Tracks distinct assets bought per wallet.

    A wallet's record expires ``ttl_seconds`` after its latest buy.
    """

    def __init__(
        self,
        *,
        min_assets: int = DEFAULT_MIN_ASSETS,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_wallets: int = DEFAULT_MAX_WALLETS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._min_assets = min_assets
        self._assets: TTLCache[str, frozenset[str]] = TTLCache(
            max_size=max_wallets,
            ttl_seconds=ttl_seconds,
            clock=clock,
            name="wallet-assets",
        )
        self._flagged: TTLCache[str, bool] = TTLCache(
            max_size=max_wallets,
            ttl_seconds=ttl_seconds,
            clock=clock,
            name="flagged-wallets",
        )

    @property
    def caches(self) -> tuple[TTLCache[str, frozenset[str]], TTLCache[str, bool]]:
        return (self._assets, self._flagged)

    def asset_count(self, wallet: str) -> int:
        return len(self._assets.get(wallet) or ())

    def record(self, wallet: str, asset_id: str) -> bool:
        """Record a buy. Returns True only when this buy newly flags the wallet."""
        assets = (self._assets.get(wallet) or frozenset()) | {asset_id}
        self._assets.set(wallet, assets)
        if len(assets) < self._min_assets:
            return False
        if not self._flagged.add(wallet, True):
            self._flagged.set(wallet, True)
            return False
        logger.info("Serial buyer %s bought %d distinct assets", wallet, len(assets))
        return True

    def is_sniper(self, wallet: str) -> bool:
        return self._flagged.get(wallet) is not None

    def sniper_count(self, buyers: Iterable[str]) -> int:
        return sum(1 for b in buyers if self.is_sniper(b))

    def sweep(self) -> int:
        return self._assets.sweep() + self._flagged.sweep()
