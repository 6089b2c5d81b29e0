"""Alpha scorer: banded quality score for an alerting asset.

Components:
    whale count   up to 35
    liquidity     up to 30
    market cap    up to 20
    snipers       up to 15 (fewer is better)

Bonuses: +5 when whales >= 5 and liquidity >= 25k; +5 when whales >= 3 and
10k < market cap < 100k. The total is capped at 100.
"""

from __future__ import annotations

from memewatch.detector.models import AlphaScore

DEFAULT_ALERT_SCORE = 75


def _whale_points(whale_count: int) -> int:
    if whale_count >= 10:
        return 35
    if whale_count >= 5:
        return 28
    if whale_count >= 3:
        return 20
    if whale_count >= 2:
        return 12
    return 5


def _liquidity_points(liquidity: float) -> int:
    if liquidity >= 100_000:
        return 30
    if liquidity >= 50_000:
        return 25
    if liquidity >= 25_000:
        return 20
    if liquidity >= 10_000:
        return 15
    if liquidity >= 5_000:
        return 10
    return 3


def _market_cap_points(market_cap: float) -> int:
    if market_cap >= 1_000_000:
        return 20
    if market_cap >= 500_000:
        return 17
    if market_cap >= 100_000:
        return 14
    if market_cap >= 50_000:
        return 10
    if market_cap >= 10_000:
        return 5
    return 2


def _sniper_points(sniper_count: int) -> int:
    if sniper_count == 0:
        return 15
    if sniper_count <= 2:
        return 12
    if sniper_count <= 5:
        return 8
    if sniper_count <= 10:
        return 4
    return 0


def _components(whale_count: int, liquidity: float, market_cap: float, sniper_count: int) -> dict[str, int]:
    bonus = 0
    if whale_count >= 5 and liquidity >= 25_000:
        bonus += 5
    if whale_count >= 3 and 10_000 < market_cap < 100_000:
        bonus += 5
    return {
        "whales": _whale_points(whale_count),
        "liquidity": _liquidity_points(liquidity),
        "market_cap": _market_cap_points(market_cap),
        "snipers": _sniper_points(sniper_count),
        "bonus": bonus,
    }


def score(whale_count: int, liquidity: float, market_cap: float, sniper_count: int) -> int:
    """Alpha score in [0, 100]. Pure and deterministic."""
    return min(sum(_components(whale_count, liquidity, market_cap, sniper_count).values()), 100)


def get_risk_level(alpha_score: int) -> str:
    if alpha_score >= 90:
        return "VERY LOW RISK"
    if alpha_score >= 80:
        return "LOW RISK"
    if alpha_score >= 70:
        return "MEDIUM RISK"
    if alpha_score >= 60:
        return "ELEVATED RISK"
    if alpha_score >= 50:
        return "HIGH RISK"
    return "EXTREME RISK"


def should_alert(alpha_score: int, min_score: int = DEFAULT_ALERT_SCORE) -> bool:
    return alpha_score >= min_score


def assess(whale_count: int, liquidity: float, market_cap: float, sniper_count: int) -> AlphaScore:
    """Score plus risk level and the per-component breakdown."""
    parts = _components(whale_count, liquidity, market_cap, sniper_count)
    total = min(sum(parts.values()), 100)
    return AlphaScore(score=total, risk_level=get_risk_level(total), components=parts)
