"""Market data and metadata lookups backed by DexScreener.

The metadata cache is cache-first: a hit younger than the TTL never touches
the network, and a provider failure is reported as "no data" rather than an
exception so the caller's stage can fail closed on its own terms.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from memewatch.ingestor.cache import TTLCache
from memewatch.ingestor.errors import ProviderError
from memewatch.ingestor.http import HttpClient
from memewatch.ingestor.models import AssetMetadata, MarketStats, NetworkId

logger = logging.getLogger(__name__)

DEFAULT_METADATA_TTL_SECONDS = 120.0
DEFAULT_TRENDING_TTL_SECONDS = 300.0
DEFAULT_MAX_ENTRIES = 5000


class MarketDataProvider:
    """DexScreener client returning MarketStats for the deepest pool."""

    def __init__(
        self,
        http: HttpClient,
        *,
        base_url: str = "https://api.dexscreener.com",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._clock = clock

    async def get_market_stats(self, asset_id: str, network: NetworkId) -> MarketStats | None:
        """Fetch market stats for an asset.

        Returns:
            Stats for the highest-liquidity pair on ``network``, or None if
            the asset has no pair there.

        Raises:
            ProviderError: If the request fails.
        """
        data = await self._http.get_json(f"{self._base_url}/latest/dex/tokens/{asset_id}")
        pair = self._select_pair(data, asset_id, network)
        if pair is None:
            return None
        return MarketStats.from_dexscreener_pair(asset_id, network, pair, now=self._clock())

    @staticmethod
    def _select_pair(data: Any, asset_id: str, network: NetworkId) -> dict[str, Any] | None:
        pairs = data.get("pairs") if isinstance(data, dict) else None
        if not pairs:
            return None
        candidates = [
            p
            for p in pairs
            if isinstance(p, dict)
            and p.get("chainId") == network.dexscreener_chain
            and str((p.get("baseToken") or {}).get("address", "")).lower() == asset_id.lower()
        ]
        if not candidates:
            # Asset may be the quote side of every pool it trades in.
            candidates = [p for p in pairs if isinstance(p, dict) and p.get("chainId") == network.dexscreener_chain]
        if not candidates:
            return None
        return max(candidates, key=lambda p: float((p.get("liquidity") or {}).get("usd") or 0))

    async def get_trending_assets(self) -> set[tuple[str, str]]:
        """Return ``(chainId, lowercase address)`` of currently boosted tokens.

        Raises:
            ProviderError: If the request fails.
        """
        data = await self._http.get_json(f"{self._base_url}/token-boosts/top/v1")
        if not isinstance(data, list):
            raise ProviderError("dexscreener", "unexpected token-boosts response shape")
        trending: set[tuple[str, str]] = set()
        for item in data:
            if not isinstance(item, dict):
                continue
            chain = item.get("chainId")
            address = item.get("tokenAddress")
            if chain and address:
                trending.add((str(chain), str(address).lower()))
        return trending


class MetadataCache:
    """TTL cache in front of the market data provider.

    Example:
        ```python
        cache = MetadataCache(MarketDataProvider(http))
        meta = await cache.get_asset_metadata(mint, NetworkId.SOLANA)
        if meta is not None:
            print(meta.symbol, meta.liquidity_usd)
        ```
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        *,
        ttl_seconds: float = DEFAULT_METADATA_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        trending_ttl_seconds: float = DEFAULT_TRENDING_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._cache: TTLCache[tuple[NetworkId, str], AssetMetadata] = TTLCache(
            max_size=max_entries,
            ttl_seconds=ttl_seconds,
            clock=clock,
            name="metadata",
        )
        self._trending: TTLCache[str, set[tuple[str, str]]] = TTLCache(
            max_size=1,
            ttl_seconds=trending_ttl_seconds,
            clock=clock,
            name="trending",
        )
        self._decimals: dict[tuple[NetworkId, str], int] = {}

    @property
    def caches(self) -> tuple[TTLCache[Any, Any], ...]:
        return (self._cache, self._trending)

    def remember_decimals(self, network: NetworkId, asset_id: str, decimals: int) -> None:
        """Record decimals learned from chain data (DexScreener does not expose them)."""
        if len(self._decimals) >= self._cache.max_size:
            self._decimals.clear()
        self._decimals[(network, asset_id.lower())] = decimals

    async def get_asset_metadata(self, asset_id: str, network: NetworkId) -> AssetMetadata | None:
        """Get cached metadata, fetching on miss. Returns None if unavailable."""
        key = (network, asset_id.lower())
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            stats = await self._provider.get_market_stats(asset_id, network)
        except ProviderError as e:
            logger.debug("Market data unavailable for %s: %s", asset_id, e)
            return None
        if stats is None:
            return None

        meta = AssetMetadata(
            asset_id=asset_id,
            symbol=stats.symbol,
            name=stats.name,
            decimals=self._decimals.get(key),
            market=stats,
        )
        self._cache.set(key, meta)
        return meta

    async def is_trending(self, asset_id: str, network: NetworkId) -> bool:
        """Check the boosted-token list.

        Raises:
            ProviderError: If the list is not cached and cannot be fetched.
        """
        trending = self._trending.get("top")
        if trending is None:
            trending = await self._provider.get_trending_assets()
            self._trending.set("top", trending)
        return (network.dexscreener_chain, asset_id.lower()) in trending
