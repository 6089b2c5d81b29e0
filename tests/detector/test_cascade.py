"""Tests for the safety cascade, the check runner and the composite score."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import BASE_TOKEN, FakeClock, make_metadata
from memewatch.detector.cascade import SafetyCascade, composite_score
from memewatch.detector.checks import HoneypotIsCheck
from memewatch.detector.checks.base import CheckContext, CheckRunner, SafetyCheck
from memewatch.detector.market_filter import MarketBounds, MarketFilter
from memewatch.detector.models import CheckResult, CheckStage
from memewatch.ingestor.errors import ProviderError
from memewatch.ingestor.models import NetworkId


class StubCheck(SafetyCheck):
    """Returns a fixed result, optionally after a delay or with an error."""

    def __init__(
        self,
        name: str,
        *,
        score: float | None = 80.0,
        weight: float = 0.2,
        stage: CheckStage = CheckStage.DEEP,
        blocker: bool = False,
        delay: float = 0.0,
        error: BaseException | None = None,
        networks: frozenset[NetworkId] = frozenset(NetworkId),
    ) -> None:
        super().__init__(weight=weight)
        self.name = name
        self.stage = stage
        self.networks = networks
        self._score = score
        self._blocker = blocker
        self._delay = delay
        self._error = error
        self.calls = 0

    async def check(self, ctx: CheckContext) -> CheckResult:
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return CheckResult(
            name=self.name,
            score=self._score,
            passed=not self._blocker,
            reason="blocked" if self._blocker else "ok",
            blocker=self._blocker,
        )


@pytest.fixture
def metadata_cache() -> MagicMock:
    cache = MagicMock()
    cache.get_asset_metadata = AsyncMock(return_value=make_metadata())
    return cache


@pytest.fixture
def market_filter() -> MarketFilter:
    return MarketFilter({NetworkId.BASE: MarketBounds(5_000, 500_000, 10_000, 5_000_000)})


def _cascade(
    metadata_cache: MagicMock,
    market_filter: MarketFilter,
    checks: list[SafetyCheck],
    *,
    deep: bool = True,
    timeout: float = 1.0,
    min_score: float = 50.0,
) -> SafetyCascade:
    runner = CheckRunner(timeout_seconds=timeout, neutral_score=50.0)
    return SafetyCascade(metadata_cache, market_filter, runner, checks, min_score=min_score, deep_analysis=deep)


class TestCompositeScore:
    def test_weighted_average(self) -> None:
        results = [
            CheckResult("a", 100.0, True, "ok"),
            CheckResult("b", 40.0, True, "ok"),
        ]
        assert composite_score(results, {"a": 0.3, "b": 0.1}, default=50) == 85.0

    def test_renormalizes_over_scoreable_checks(self) -> None:
        results = [
            CheckResult("a", 90.0, True, "ok"),
            CheckResult("b", None, True, "not applicable"),
            CheckResult("c", 10.0, True, "ok"),
        ]
        assert composite_score(results, {"a": 0.2, "b": 0.5, "c": 0.0}, default=50) == 90.0

    def test_default_when_nothing_scoreable(self) -> None:
        assert composite_score([CheckResult("a", None, True, "n/a")], {"a": 1.0}, default=50) == 50


class TestCheckRunner:
    @pytest.mark.asyncio
    async def test_timeout_yields_neutral(self) -> None:
        runner = CheckRunner(timeout_seconds=0.01, neutral_score=50)
        result = await runner.run(StubCheck("slow", delay=1.0), CheckContext(BASE_TOKEN, NetworkId.BASE))
        assert result.score == 50
        assert result.degraded
        assert result.passed
        assert result.reason == "timed out"

    @pytest.mark.asyncio
    async def test_provider_error_yields_neutral(self) -> None:
        runner = CheckRunner(neutral_score=50)
        check = StubCheck("flaky", error=ProviderError("honeypot.is", "HTTP 502"))
        result = await runner.run(check, CheckContext(BASE_TOKEN, NetworkId.BASE))
        assert result.score == 50
        assert result.reason == "unavailable"

    @pytest.mark.asyncio
    async def test_unexpected_error_yields_neutral(self) -> None:
        runner = CheckRunner(neutral_score=50)
        check = StubCheck("broken", error=ValueError("could not convert string to float: 'N/A'"))
        result = await runner.run(check, CheckContext(BASE_TOKEN, NetworkId.BASE))
        assert result.score == 50
        assert result.degraded
        assert result.passed
        assert result.reason == "check failed"

    @pytest.mark.asyncio
    async def test_malformed_honeypot_payload_yields_neutral(self) -> None:
        http = MagicMock()
        http.get_json = AsyncMock(return_value={"simulationResult": {"buyTax": "N/A"}})
        runner = CheckRunner(neutral_score=50)
        result = await runner.run(HoneypotIsCheck(http), CheckContext(BASE_TOKEN, NetworkId.BASE))
        assert result.score == 50
        assert result.degraded

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self) -> None:
        runner = CheckRunner()
        check = StubCheck("cancelled", error=asyncio.CancelledError())
        with pytest.raises(asyncio.CancelledError):
            await runner.run(check, CheckContext(BASE_TOKEN, NetworkId.BASE))

    @pytest.mark.asyncio
    async def test_unsupported_network_not_applicable(self) -> None:
        runner = CheckRunner()
        check = StubCheck("sol-only", networks=frozenset({NetworkId.SOLANA}))
        result = await runner.run(check, CheckContext(BASE_TOKEN, NetworkId.BASE))
        assert result.score is None
        assert check.calls == 0

    @pytest.mark.asyncio
    async def test_results_cached_until_ttl(self, clock: FakeClock) -> None:
        runner = CheckRunner(result_ttl_seconds=600, clock=clock)
        check = StubCheck("cached")
        ctx = CheckContext(BASE_TOKEN, NetworkId.BASE)
        await runner.run(check, ctx)
        await runner.run(check, ctx)
        assert check.calls == 1
        clock.advance(601)
        await runner.run(check, ctx)
        assert check.calls == 2

    @pytest.mark.asyncio
    async def test_degraded_results_not_cached(self) -> None:
        runner = CheckRunner()
        check = StubCheck("flaky", error=ProviderError("x", "down"))
        ctx = CheckContext(BASE_TOKEN, NetworkId.BASE)
        await runner.run(check, ctx)
        await runner.run(check, ctx)
        assert check.calls == 2


class TestSafetyCascade:
    @pytest.mark.asyncio
    async def test_stage_a_failure_skips_checks(self, metadata_cache: MagicMock, market_filter: MarketFilter) -> None:
        metadata_cache.get_asset_metadata.return_value = make_metadata(liquidity_usd=100.0)
        gate = StubCheck("honeypot", stage=CheckStage.GATE)
        verdict = await _cascade(metadata_cache, market_filter, [gate]).evaluate(BASE_TOKEN, NetworkId.BASE)
        assert not verdict.passed
        assert verdict.failure is not None
        assert verdict.failure.stage == "market"
        assert verdict.report is None
        assert gate.calls == 0

    @pytest.mark.asyncio
    async def test_missing_metadata_fails_closed(self, metadata_cache: MagicMock, market_filter: MarketFilter) -> None:
        metadata_cache.get_asset_metadata.return_value = None
        verdict = await _cascade(metadata_cache, market_filter, []).evaluate(BASE_TOKEN, NetworkId.BASE)
        assert not verdict.passed

    @pytest.mark.asyncio
    async def test_blocker_short_circuits(self, metadata_cache: MagicMock, market_filter: MarketFilter) -> None:
        gate = StubCheck("honeypot", score=0.0, stage=CheckStage.GATE, blocker=True)
        deep = StubCheck("holders")
        verdict = await _cascade(metadata_cache, market_filter, [gate, deep]).evaluate(BASE_TOKEN, NetworkId.BASE)
        assert not verdict.passed
        assert verdict.failure is not None
        assert verdict.failure.stage == "honeypot"
        assert deep.calls == 0

    @pytest.mark.asyncio
    async def test_gate_timeout_degrades_but_passes(
        self, metadata_cache: MagicMock, market_filter: MarketFilter
    ) -> None:
        gate = StubCheck("honeypot", stage=CheckStage.GATE, delay=1.0, weight=0.3)
        cascade = _cascade(metadata_cache, market_filter, [gate], deep=False, timeout=0.01)
        verdict = await cascade.evaluate(BASE_TOKEN, NetworkId.BASE)
        assert verdict.passed
        assert verdict.report is not None
        assert verdict.report.results["honeypot"].score == 50
        assert verdict.report.degraded_checks == ["honeypot"]
        assert verdict.report.composite_score == 50

    @pytest.mark.asyncio
    async def test_deep_checks_skipped_when_disabled(
        self, metadata_cache: MagicMock, market_filter: MarketFilter
    ) -> None:
        deep = StubCheck("holders")
        cascade = _cascade(metadata_cache, market_filter, [deep], deep=False)
        verdict = await cascade.evaluate(BASE_TOKEN, NetworkId.BASE)
        assert verdict.passed
        assert deep.calls == 0

    @pytest.mark.asyncio
    async def test_low_composite_rejected(self, metadata_cache: MagicMock, market_filter: MarketFilter) -> None:
        checks: list[SafetyCheck] = [
            StubCheck("honeypot", score=40.0, stage=CheckStage.GATE, weight=0.3),
            StubCheck("holders", score=20.0, weight=0.2),
        ]
        verdict = await _cascade(metadata_cache, market_filter, checks).evaluate(BASE_TOKEN, NetworkId.BASE)
        assert not verdict.passed
        assert verdict.failure is not None
        assert verdict.failure.stage == "composite"
        assert verdict.report is not None
        assert verdict.report.composite_score == 32.0

    @pytest.mark.asyncio
    async def test_zero_weight_check_reported_not_scored(
        self, metadata_cache: MagicMock, market_filter: MarketFilter
    ) -> None:
        checks: list[SafetyCheck] = [
            StubCheck("honeypot", score=90.0, stage=CheckStage.GATE, weight=0.3),
            StubCheck("momentum", score=None, weight=0.0),
        ]
        verdict = await _cascade(metadata_cache, market_filter, checks).evaluate(BASE_TOKEN, NetworkId.BASE)
        assert verdict.passed
        assert verdict.report is not None
        assert "momentum" in verdict.report.results
        assert verdict.report.composite_score == 90.0

    @pytest.mark.asyncio
    async def test_check_raising_parse_error_degrades(
        self, metadata_cache: MagicMock, market_filter: MarketFilter
    ) -> None:
        checks: list[SafetyCheck] = [
            StubCheck("honeypot", stage=CheckStage.GATE, weight=0.3, error=ValueError("bad payload")),
            StubCheck("holders", score=90.0, weight=0.3, error=KeyError("signature")),
        ]
        verdict = await _cascade(metadata_cache, market_filter, checks).evaluate(BASE_TOKEN, NetworkId.BASE)
        assert verdict.passed
        assert verdict.report is not None
        assert verdict.report.composite_score == 50
        assert sorted(verdict.report.degraded_checks) == ["holders", "honeypot"]
