"""Tests for serial buyer tracking."""

from __future__ import annotations

from conftest import FakeClock
from memewatch.detector.serial_buyers import SerialBuyerTracker


class TestSerialBuyerTracker:
    def test_flagged_once_at_threshold(self, clock: FakeClock) -> None:
        tracker = SerialBuyerTracker(min_assets=3, clock=clock)
        assert tracker.record("w", "a1") is False
        assert tracker.record("w", "a2") is False
        assert tracker.record("w", "a3") is True
        assert tracker.record("w", "a4") is False
        assert tracker.is_sniper("w")
        assert tracker.asset_count("w") == 4

    def test_repeat_buys_of_same_asset_do_not_count(self, clock: FakeClock) -> None:
        tracker = SerialBuyerTracker(min_assets=2, clock=clock)
        tracker.record("w", "a1")
        assert tracker.record("w", "a1") is False
        assert not tracker.is_sniper("w")

    def test_sniper_count(self, clock: FakeClock) -> None:
        tracker = SerialBuyerTracker(min_assets=2, clock=clock)
        tracker.record("s", "a1")
        tracker.record("s", "a2")
        tracker.record("n", "a1")
        assert tracker.sniper_count(["s", "n", "x"]) == 1

    def test_records_expire(self, clock: FakeClock) -> None:
        tracker = SerialBuyerTracker(min_assets=2, ttl_seconds=60, clock=clock)
        tracker.record("w", "a1")
        tracker.record("w", "a2")
        clock.advance(61)
        assert tracker.sweep() == 2
        assert not tracker.is_sniper("w")
        assert tracker.asset_count("w") == 0
