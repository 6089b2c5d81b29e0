"""Native asset USD price feed with TTL caching and stale fallback."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from memewatch.ingestor.errors import ProviderError
from memewatch.ingestor.http import HttpClient
from memewatch.ingestor.models import NetworkId, PriceQuote

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60.0

COINGECKO_IDS: dict[NetworkId, str] = {
    NetworkId.BASE: "ethereum",
    NetworkId.SOLANA: "solana",
}


class PriceFeed:
    """Caches one PriceQuote per network.

    A quote younger than ``ttl_seconds`` is served directly. Otherwise a
    refresh is attempted; if it fails the previous quote is served marked
    stale, and before any successful refresh the configured fallback is used.
    Concurrent callers share one refresh.
    """

    def __init__(
        self,
        http: HttpClient,
        *,
        base_url: str = "https://api.coingecko.com/api/v3",
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        fallback_prices: dict[NetworkId, float] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._ttl = ttl_seconds
        self._fallback = dict(fallback_prices or {})
        self._clock = clock
        self._quotes: dict[NetworkId, PriceQuote] = {}
        self._last_attempt: float | None = None
        self._lock = asyncio.Lock()

    def _fresh(self, network: NetworkId) -> PriceQuote | None:
        quote = self._quotes.get(network)
        if quote is not None and not quote.is_stale and self._clock() - quote.fetched_at <= self._ttl:
            return quote
        return None

    async def get_quote(self, network: NetworkId) -> PriceQuote:
        """Get the native asset price for a network. Never raises."""
        quote = self._fresh(network)
        if quote is not None:
            return quote

        async with self._lock:
            quote = self._fresh(network)
            if quote is not None:
                return quote
            now = self._clock()
            if self._last_attempt is not None and now - self._last_attempt < self._ttl:
                return self._stale_quote(network)
            self._last_attempt = now
            try:
                await self.refresh()
            except ProviderError as e:
                logger.warning("Price refresh failed, serving cached price: %s", e)
            quote = self._fresh(network)
            if quote is not None:
                return quote
            return self._stale_quote(network)

    async def get_native_usd(self, network: NetworkId) -> float:
        return (await self.get_quote(network)).native_asset_usd

    def _stale_quote(self, network: NetworkId) -> PriceQuote:
        previous = self._quotes.get(network)
        if previous is not None:
            stale = PriceQuote(
                network=network,
                native_asset_usd=previous.native_asset_usd,
                fetched_at=previous.fetched_at,
                is_stale=True,
            )
        else:
            stale = PriceQuote(
                network=network,
                native_asset_usd=self._fallback.get(network, 0.0),
                fetched_at=0.0,
                is_stale=True,
            )
        self._quotes[network] = stale
        return stale

    async def refresh(self) -> None:
        """Fetch prices for every known network in one call.

        Raises:
            ProviderError: If the price provider fails or returns no usable price.
        """
        ids = ",".join(sorted(set(COINGECKO_IDS.values())))
        data = await self._http.get_json(
            f"{self._base_url}/simple/price",
            params={"ids": ids, "vs_currencies": "usd"},
        )
        now = self._clock()
        updated = 0
        for network, coin_id in COINGECKO_IDS.items():
            try:
                price = float(data[coin_id]["usd"])
            except (KeyError, TypeError, ValueError):
                continue
            if price <= 0:
                continue
            self._quotes[network] = PriceQuote(network=network, native_asset_usd=price, fetched_at=now)
            updated += 1
            logger.debug("%s native price: $%.2f", network.display_name, price)
        if not updated:
            raise ProviderError("coingecko", "response contained no usable prices")

    def sweep(self) -> int:
        """Mark expired quotes stale so the next read refreshes them."""
        now = self._clock()
        expired = 0
        for network, quote in list(self._quotes.items()):
            if not quote.is_stale and now - quote.fetched_at > self._ttl:
                self._quotes[network] = PriceQuote(
                    network=network,
                    native_asset_usd=quote.native_asset_usd,
                    fetched_at=quote.fetched_at,
                    is_stale=True,
                )
                expired += 1
        return expired

    def __len__(self) -> int:
        return len(self._quotes)
