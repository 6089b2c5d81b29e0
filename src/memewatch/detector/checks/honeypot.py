"""Stage B gate checks: honeypot.is on Base, RugCheck summary on Solana."""

from __future__ import annotations

import logging
from typing import Any

from memewatch.detector.checks.base import CheckContext, SafetyCheck, clamp_score
from memewatch.detector.models import CheckResult, CheckStage
from memewatch.ingestor.errors import ProviderError
from memewatch.ingestor.http import HttpClient
from memewatch.ingestor.models import NetworkId

logger = logging.getLogger(__name__)

DEFAULT_MAX_TAX_PERCENT = 10.0

# RugCheck risk names that block outright regardless of level.
CRITICAL_RUGCHECK_RISKS = ("freeze authority", "mint authority", "honeypot")


def _security_grade(score: float) -> str:
    if score >= 95:
        return "A+"
    if score >= 85:
        return "A"
    if score >= 70:
        return "B"
    if score >= 50:
        return "C"
    if score >= 30:
        return "D"
    return "F"


class HoneypotIsCheck(SafetyCheck):
    """Simulated buy/sell through honeypot.is (Base)."""

    name = "honeypot"
    stage = CheckStage.GATE
    networks = frozenset({NetworkId.BASE})

    def __init__(
        self,
        http: HttpClient,
        *,
        base_url: str = "https://api.honeypot.is/v2",
        chain_id: int = 8453,
        max_tax_percent: float = DEFAULT_MAX_TAX_PERCENT,
        weight: float = 0.30,
    ) -> None:
        super().__init__(weight=weight)
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._chain_id = chain_id
        self._max_tax = max_tax_percent

    async def check(self, ctx: CheckContext) -> CheckResult:
        data = await self._http.get_json(
            f"{self._base_url}/IsHoneypot",
            params={"address": ctx.asset_id, "chainID": self._chain_id},
        )
        if not isinstance(data, dict):
            raise ProviderError("honeypot.is", "unexpected response shape")

        simulation = data.get("simulationResult")
        is_honeypot = bool((data.get("honeypotResult") or {}).get("isHoneypot"))
        if simulation is None and not is_honeypot:
            raise ProviderError("honeypot.is", "simulation unavailable")

        simulation = simulation or {}
        buy_tax = float(simulation.get("buyTax") or 0)
        sell_tax = float(simulation.get("sellTax") or 0)
        details = {"buy_tax": f"{buy_tax:.1f}%", "sell_tax": f"{sell_tax:.1f}%"}

        if is_honeypot:
            return CheckResult(self.name, 0.0, False, "HONEYPOT detected, cannot sell", blocker=True, details=details)
        if buy_tax > self._max_tax or sell_tax > self._max_tax:
            return CheckResult(
                self.name,
                clamp_score(100 - 2 * (buy_tax + sell_tax)),
                False,
                f"tax above {self._max_tax:.0f}% (buy {buy_tax:.1f}%, sell {sell_tax:.1f}%)",
                blocker=True,
                details=details,
            )

        score = clamp_score(100 - 2 * (buy_tax + sell_tax))
        details["grade"] = _security_grade(score)
        return CheckResult(
            self.name,
            score,
            True,
            f"not a honeypot, tax {buy_tax:.1f}%/{sell_tax:.1f}%",
            details=details,
        )


def _rugcheck_grade(score: float) -> str:
    if score >= 95:
        return "A+"
    if score >= 85:
        return "A"
    if score >= 75:
        return "B"
    if score >= 65:
        return "C"
    if score >= 50:
        return "D"
    return "F"


class RugCheckSummaryCheck(SafetyCheck):
    """RugCheck risk summary (Solana)."""

    name = "honeypot"
    stage = CheckStage.GATE
    networks = frozenset({NetworkId.SOLANA})

    def __init__(
        self,
        http: HttpClient,
        *,
        base_url: str = "https://api.rugcheck.xyz/v1",
        weight: float = 0.30,
    ) -> None:
        super().__init__(weight=weight)
        self._http = http
        self._base_url = base_url.rstrip("/")

    async def check(self, ctx: CheckContext) -> CheckResult:
        data = await self._http.get_json(f"{self._base_url}/tokens/{ctx.asset_id}/report/summary")
        if not isinstance(data, dict):
            raise ProviderError("rugcheck", "unexpected response shape")
        return self.score_summary(data)

    def score_summary(self, data: dict[str, Any]) -> CheckResult:
        score = 100.0
        dangers: list[str] = []
        warnings: list[str] = []
        critical: list[str] = []
        for risk in data.get("risks") or []:
            if not isinstance(risk, dict):
                continue
            name = str(risk.get("name") or "")
            level = risk.get("level")
            if level == "danger":
                score -= 25
                dangers.append(name)
            elif level == "warning":
                score -= 10
                warnings.append(name)
            if any(c in name.lower() for c in CRITICAL_RUGCHECK_RISKS):
                critical.append(name)

        score = clamp_score(score)
        details = {"grade": _rugcheck_grade(score)}
        if critical:
            return CheckResult(
                self.name, score, False, f"CRITICAL: {', '.join(critical)}", blocker=True, details=details
            )
        if dangers:
            reason = f"danger: {', '.join(dangers)}"
        elif warnings:
            reason = f"warnings: {', '.join(warnings)}"
        else:
            reason = "no major risks"
        return CheckResult(self.name, score, not dangers, reason, details=details)
