"""Data models for the detector module."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from memewatch.ingestor.models import AssetMetadata, QualifiedBuy


class TriggerReason(str, Enum):
    """Why a window was sent for review."""

    BIG_SINGLE_BUY = "big_single_buy"
    MULTI_WHALE = "multi_whale"


class CheckStage(str, Enum):
    """Where a safety check runs in the cascade."""

    GATE = "gate"  # sequential, blockers short-circuit
    DEEP = "deep"  # concurrent, optional


@dataclass(frozen=True)
class WindowSnapshot:
    """Window state returned by every recorded buy.

    Attributes:
        asset_id: Asset the window belongs to.
        unique_buyers: Distinct buyers since the window anchor.
        total_volume_usd: Cumulative USD bought since the anchor.
        anchor: Timestamp (seconds) the window was anchored at.
        was_reset: True if this buy expired and reset the previous window.
    """

    asset_id: str
    unique_buyers: int
    total_volume_usd: Decimal
    anchor: float
    was_reset: bool = False


@dataclass(frozen=True)
class TriggerDecision:
    fired: bool
    reason: TriggerReason | None = None


@dataclass(frozen=True)
class ValidationFailure:
    """Normal negative outcome: the asset failed a hard threshold.

    Not an exception. Stage A and the cascade return it.
    """

    stage: str
    reason: str


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one safety check.

    Attributes:
        name: Check name.
        score: Sub-score 0-100, or None when the check does not apply.
        passed: False only when the check found a hard problem.
        reason: Human-readable summary.
        blocker: Absolute blocker; the asset must not alert.
        degraded: The provider failed and ``score`` is the neutral default.
        details: Extra display values (tax, grade, labels).
    """

    name: str
    score: float | None
    passed: bool
    reason: str
    blocker: bool = False
    degraded: bool = False
    details: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SafetyReport:
    """Per-check results plus the weighted composite."""

    results: dict[str, CheckResult]
    composite_score: float
    weights: dict[str, float] = field(default_factory=dict)

    @property
    def blockers(self) -> list[CheckResult]:
        return [r for r in self.results.values() if r.blocker]

    @property
    def has_blocker(self) -> bool:
        return any(r.blocker for r in self.results.values())

    @property
    def degraded_checks(self) -> list[str]:
        return [name for name, r in self.results.items() if r.degraded]


@dataclass(frozen=True)
class SafetyVerdict:
    """Final cascade decision for one review.

    ``failure`` is set when Stage A or a blocker rejected the asset, or when
    the composite fell short. ``report`` is absent when Stage A rejected
    before any check ran.
    """

    passed: bool
    metadata: AssetMetadata | None
    report: SafetyReport | None = None
    failure: ValidationFailure | None = None


@dataclass(frozen=True)
class AlphaScore:
    score: int
    risk_level: str
    components: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class WhaleAlert:
    """Everything the formatter needs to render one alert.

    Attributes:
        buy: The buy that fired the trigger.
        window: Window state after that buy.
        reason: Which trigger path fired.
        verdict: Passing cascade verdict (carries metadata and report).
        alpha: Alpha score and risk level.
        sniper_count: Window buyers flagged as serial buyers.
    """

    buy: QualifiedBuy
    window: WindowSnapshot
    reason: TriggerReason
    verdict: SafetyVerdict
    alpha: AlphaScore
    sniper_count: int = 0

    @property
    def asset_id(self) -> str:
        return self.buy.asset_id
