"""Social presence check from DexScreener listing info and boosts."""

from __future__ import annotations

import logging

from memewatch.detector.checks.base import CheckContext, SafetyCheck, clamp_score
from memewatch.detector.models import CheckResult, CheckStage
from memewatch.ingestor.errors import ProviderError
from memewatch.ingestor.market_data import MetadataCache

logger = logging.getLogger(__name__)


def social_score(socials: tuple[str, ...], has_website: bool, trending: bool) -> float:
    score = 50.0
    if "twitter" in socials:
        score += 10
    if "telegram" in socials:
        score += 10
    if has_website:
        score += 5
    if trending:
        score += 20
    return clamp_score(score)


class SocialSentimentCheck(SafetyCheck):
    name = "social"
    stage = CheckStage.DEEP

    def __init__(self, metadata: MetadataCache, *, weight: float = 0.15) -> None:
        super().__init__(weight=weight)
        self._metadata = metadata

    async def check(self, ctx: CheckContext) -> CheckResult:
        if ctx.metadata is None:
            raise ProviderError("dexscreener", "no listing data")
        market = ctx.metadata.market
        try:
            trending = await self._metadata.is_trending(ctx.asset_id, ctx.network)
        except ProviderError as e:
            # The boost list is a bonus; the listing alone still scores.
            logger.debug("Trending list unavailable: %s", e)
            trending = False

        score = social_score(market.socials, market.has_website, trending)
        found = [s for s in ("twitter", "telegram") if s in market.socials]
        if market.has_website:
            found.append("website")
        if trending:
            found.append("trending")
        reason = ", ".join(found) if found else "no socials"
        return CheckResult(self.name, score, True, reason)
