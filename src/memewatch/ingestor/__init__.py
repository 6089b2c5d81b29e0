"""Data ingestion layer - Swap event streaming, normalization and market lookups."""

from memewatch.ingestor.base_stream import BaseSwapStream
from memewatch.ingestor.cache import TTLCache
from memewatch.ingestor.errors import (
    DecodeError,
    FatalStartupError,
    MemewatchError,
    ProviderError,
    ProviderTimeout,
)
from memewatch.ingestor.market_data import MarketDataProvider, MetadataCache
from memewatch.ingestor.models import (
    AssetMetadata,
    MarketStats,
    NetworkId,
    PriceQuote,
    QualifiedBuy,
    SwapEvent,
)
from memewatch.ingestor.normalizer import SwapClassifier
from memewatch.ingestor.price_feed import PriceFeed
from memewatch.ingestor.solana_poller import SolanaSwapPoller

__all__ = [
    "AssetMetadata",
    "BaseSwapStream",
    "DecodeError",
    "FatalStartupError",
    "MarketDataProvider",
    "MarketStats",
    "MemewatchError",
    "MetadataCache",
    "NetworkId",
    "PriceFeed",
    "PriceQuote",
    "ProviderError",
    "ProviderTimeout",
    "QualifiedBuy",
    "SolanaSwapPoller",
    "SwapClassifier",
    "SwapEvent",
    "TTLCache",
]
