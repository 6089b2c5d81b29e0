"""LP lock checks: lock-contract balances on Base, RugCheck markets on Solana."""

from __future__ import annotations

from typing import Any

from memewatch.detector.checks.base import CheckContext, SafetyCheck, clamp_score
from memewatch.detector.models import CheckResult, CheckStage
from memewatch.ingestor.base_chain import BaseChainClient
from memewatch.ingestor.errors import ProviderError
from memewatch.ingestor.http import HttpClient
from memewatch.ingestor.models import NetworkId

DEEP_LIQUIDITY_USD = 50_000.0


def lock_score(locked_percent: float, liquidity_usd: float) -> float:
    score = 0.0
    if locked_percent > 0:
        score += 50
    if locked_percent >= 90:
        score += 20
    if liquidity_usd >= DEEP_LIQUIDITY_USD:
        score += 10
    return clamp_score(score)


def _result(name: str, locked: float, liquidity: float) -> CheckResult:
    score = lock_score(locked, liquidity)
    reason = f"{locked:.0f}% LP locked" if locked > 0 else "LP not locked"
    return CheckResult(name, score, locked > 0, reason, details={"locked": f"{locked:.0f}%"})


class BaseLpLockCheck(SafetyCheck):
    """Share of pair LP tokens held by known lockers."""

    name = "lp_lock"
    stage = CheckStage.DEEP
    networks = frozenset({NetworkId.BASE})

    def __init__(self, chain: BaseChainClient, *, weight: float = 0.20) -> None:
        super().__init__(weight=weight)
        self._chain = chain

    async def check(self, ctx: CheckContext) -> CheckResult:
        market = ctx.metadata.market if ctx.metadata is not None else None
        if market is None or not market.pair_address:
            raise ProviderError("base-rpc", "no pair address to inspect")
        locked = await self._chain.get_locked_lp_percent(market.pair_address)
        return _result(self.name, locked, market.liquidity_usd)


class RugCheckLpLockCheck(SafetyCheck):
    """Locked LP share from the RugCheck full report."""

    name = "lp_lock"
    stage = CheckStage.DEEP
    networks = frozenset({NetworkId.SOLANA})

    def __init__(
        self,
        http: HttpClient,
        *,
        base_url: str = "https://api.rugcheck.xyz/v1",
        weight: float = 0.20,
    ) -> None:
        super().__init__(weight=weight)
        self._http = http
        self._base_url = base_url.rstrip("/")

    async def check(self, ctx: CheckContext) -> CheckResult:
        data = await self._http.get_json(f"{self._base_url}/tokens/{ctx.asset_id}/report")
        if not isinstance(data, dict):
            raise ProviderError("rugcheck", "unexpected response shape")
        locked = self.max_locked_percent(data.get("markets") or [])
        liquidity = ctx.metadata.liquidity_usd if ctx.metadata is not None else 0.0
        return _result(self.name, locked, liquidity)

    @staticmethod
    def max_locked_percent(markets: list[Any]) -> float:
        best = 0.0
        for market in markets:
            if not isinstance(market, dict):
                continue
            try:
                pct = float((market.get("lp") or {}).get("lpLockedPct") or 0)
            except (TypeError, ValueError):
                continue
            best = max(best, pct)
        return min(best, 100.0)
