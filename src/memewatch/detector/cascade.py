"""Safety filter cascade and composite safety score.

Order of evaluation for one triggered asset:

1. Stage A: market bounds on cached metadata. A failure stops here.
2. Gate checks (honeypot/tax), one after another. A blocker stops here.
3. Deep checks, concurrently, only when deep analysis is enabled.

Every check runs through ``CheckRunner``, so a slow or failing provider
yields a neutral sub-score instead of an exception. The composite is the
weighted average of the sub-scores that have a value, renormalized over the
weights of those checks.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from memewatch.detector.checks.base import CheckContext, CheckRunner, SafetyCheck
from memewatch.detector.market_filter import MarketFilter
from memewatch.detector.models import (
    CheckResult,
    CheckStage,
    SafetyReport,
    SafetyVerdict,
    ValidationFailure,
)
from memewatch.ingestor.market_data import MetadataCache
from memewatch.ingestor.models import NetworkId

logger = logging.getLogger(__name__)

DEFAULT_MIN_SAFETY_SCORE = 50.0


def composite_score(results: Sequence[CheckResult], weights: dict[str, float], *, default: float) -> float:
    """Weighted average over checks with a score and a positive weight.

    Returns ``default`` when nothing is scoreable.
    """
    total_weight = 0.0
    weighted = 0.0
    for result in results:
        weight = weights.get(result.name, 0.0)
        if result.score is None or weight <= 0:
            continue
        weighted += result.score * weight
        total_weight += weight
    if total_weight <= 0:
        return default
    return round(weighted / total_weight, 1)


class SafetyCascade:
    """Runs Stage A, the gate checks and the optional deep checks.

    Example:
        ```python
        cascade = SafetyCascade(metadata, market_filter, runner, checks)
        verdict = await cascade.evaluate(asset_id, NetworkId.BASE)
        if verdict.passed:
            ...
        ```
    """

    def __init__(
        self,
        metadata: MetadataCache,
        market_filter: MarketFilter,
        runner: CheckRunner,
        checks: Sequence[SafetyCheck],
        *,
        min_score: float = DEFAULT_MIN_SAFETY_SCORE,
        deep_analysis: bool = False,
        neutral_score: float = 50.0,
    ) -> None:
        self._metadata = metadata
        self._market_filter = market_filter
        self._runner = runner
        self._checks = tuple(checks)
        self._min_score = min_score
        self._deep_analysis = deep_analysis
        self._neutral = neutral_score

    @property
    def checks(self) -> tuple[SafetyCheck, ...]:
        return self._checks

    def _checks_for(self, network: NetworkId, stage: CheckStage) -> list[SafetyCheck]:
        return [c for c in self._checks if c.stage == stage and c.supports(network)]

    async def evaluate(self, asset_id: str, network: NetworkId) -> SafetyVerdict:
        metadata = await self._metadata.get_asset_metadata(asset_id, network)
        failure = self._market_filter.evaluate(network, metadata)
        if failure is not None:
            return SafetyVerdict(passed=False, metadata=metadata, failure=failure)

        ctx = CheckContext(asset_id=asset_id, network=network, metadata=metadata)
        results: dict[str, CheckResult] = {}
        weights: dict[str, float] = {}

        for check in self._checks_for(network, CheckStage.GATE):
            result = await self._runner.run(check, ctx)
            results[result.name] = result
            weights[result.name] = check.weight
            if result.blocker:
                report = SafetyReport(results=results, composite_score=0.0, weights=weights)
                return SafetyVerdict(
                    passed=False,
                    metadata=metadata,
                    report=report,
                    failure=ValidationFailure(result.name, result.reason),
                )

        if self._deep_analysis:
            deep = self._checks_for(network, CheckStage.DEEP)
            deep_results = await asyncio.gather(*(self._runner.run(c, ctx) for c in deep))
            for check, result in zip(deep, deep_results, strict=True):
                results[result.name] = result
                weights[result.name] = check.weight

        score = composite_score(list(results.values()), weights, default=self._neutral)
        report = SafetyReport(results=results, composite_score=score, weights=weights)
        if report.degraded_checks:
            logger.debug("Degraded checks for %s: %s", asset_id, ", ".join(report.degraded_checks))
        if score < self._min_score:
            return SafetyVerdict(
                passed=False,
                metadata=metadata,
                report=report,
                failure=ValidationFailure("composite", f"safety score {score:.0f} below {self._min_score:.0f}"),
            )
        return SafetyVerdict(passed=True, metadata=metadata, report=report)
