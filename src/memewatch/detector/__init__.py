"""Detection layer - Whale windows, trigger policy, safety cascade and dedup."""

from memewatch.detector.cascade import SafetyCascade, composite_score
from memewatch.detector.dedup import DedupStore, InMemoryDedupStore, RedisDedupStore
from memewatch.detector.market_filter import MarketBounds, MarketFilter
from memewatch.detector.models import (
    AlphaScore,
    CheckResult,
    SafetyReport,
    SafetyVerdict,
    TriggerDecision,
    TriggerReason,
    ValidationFailure,
    WhaleAlert,
    WindowSnapshot,
)
from memewatch.detector.serial_buyers import SerialBuyerTracker
from memewatch.detector.trigger import TriggerPolicy
from memewatch.detector.window import WhaleWindowAggregator

__all__ = [
    "AlphaScore",
    "CheckResult",
    "DedupStore",
    "InMemoryDedupStore",
    "MarketBounds",
    "MarketFilter",
    "RedisDedupStore",
    "SafetyCascade",
    "SafetyReport",
    "SafetyVerdict",
    "SerialBuyerTracker",
    "TriggerDecision",
    "TriggerPolicy",
    "TriggerReason",
    "ValidationFailure",
    "WhaleAlert",
    "WhaleWindowAggregator",
    "WindowSnapshot",
    "composite_score",
]
