"""Tests for the trigger policy."""

from __future__ import annotations

from decimal import Decimal

import pytest

from memewatch.detector.models import TriggerReason
from memewatch.detector.trigger import TriggerPolicy


@pytest.fixture
def policy() -> TriggerPolicy:
    return TriggerPolicy(big_buy_usd=2000, min_whales=2)


class TestTriggerPolicy:
    def test_big_first_buy_fires(self, policy: TriggerPolicy) -> None:
        decision = policy.evaluate(Decimal("2500"), unique_buyers=1)
        assert decision.fired
        assert decision.reason == TriggerReason.BIG_SINGLE_BUY

    def test_big_buy_threshold_is_inclusive(self, policy: TriggerPolicy) -> None:
        assert policy.evaluate(Decimal("2000"), unique_buyers=1).fired

    def test_small_first_buy_does_not_fire(self, policy: TriggerPolicy) -> None:
        decision = policy.evaluate(Decimal("1999.99"), unique_buyers=1)
        assert not decision.fired
        assert decision.reason is None

    def test_second_whale_fires_multi_whale(self, policy: TriggerPolicy) -> None:
        decision = policy.evaluate(Decimal("300"), unique_buyers=2)
        assert decision.fired
        assert decision.reason == TriggerReason.MULTI_WHALE

    def test_multi_whale_takes_precedence_over_big_buy(self, policy: TriggerPolicy) -> None:
        decision = policy.evaluate(Decimal("5000"), unique_buyers=3)
        assert decision.reason == TriggerReason.MULTI_WHALE

    def test_big_buy_only_counts_for_sole_buyer(self) -> None:
        policy = TriggerPolicy(big_buy_usd=2000, min_whales=3)
        assert not policy.evaluate(Decimal("5000"), unique_buyers=2).fired

    def test_accepts_float_amounts(self, policy: TriggerPolicy) -> None:
        assert policy.evaluate(2500.0, unique_buyers=1).fired
