"""Holder concentration checks for Solana and Base."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from memewatch.detector.checks.base import CheckContext, SafetyCheck, clamp_score
from memewatch.detector.models import CheckResult, CheckStage
from memewatch.ingestor.base_chain import BaseChainClient
from memewatch.ingestor.errors import ProviderError
from memewatch.ingestor.http import HttpClient
from memewatch.ingestor.models import NetworkId
from memewatch.ingestor.solana_rpc import SolanaRpcClient

DEFAULT_BLOCKSCOUT_URL = "https://base.blockscout.com/api/v2"
TOP_HOLDERS = 10

BURN_ADDRESSES = (
    "0x0000000000000000000000000000000000000000",
    "0x000000000000000000000000000000000000dead",
)


def concentration_risk(top1_percent: float, top10_percent: float) -> tuple[int, str]:
    """Map holder shares to a 0-100 risk and a short reason."""
    if top1_percent > 50:
        risk, reason = 95, "top holder owns >50%"
    elif top1_percent > 30:
        risk, reason = 80, "top holder owns >30%"
    elif top1_percent > 20:
        risk, reason = 60, "top holder owns >20%"
    elif top1_percent > 10:
        risk, reason = 40, "top holder owns >10%"
    else:
        risk, reason = 20, "well distributed"
    if top10_percent > 80:
        risk = max(risk, 70)
        reason += ", top 10 own >80%"
    return risk, reason


def _concentration_result(name: str, amounts: Sequence[float], total: float) -> CheckResult:
    ranked = sorted(amounts, reverse=True)
    top1 = ranked[0] * 100 / total
    top10 = sum(ranked[:TOP_HOLDERS]) * 100 / total
    risk, reason = concentration_risk(top1, top10)
    return CheckResult(
        name,
        clamp_score(100 - risk),
        risk <= 60,
        reason,
        details={"top1": f"{top1:.1f}%", "top10": f"{top10:.1f}%"},
    )


class HolderDistributionCheck(SafetyCheck):
    name = "holders"
    stage = CheckStage.DEEP
    networks = frozenset({NetworkId.SOLANA})

    def __init__(self, rpc: SolanaRpcClient, *, weight: float = 0.20) -> None:
        super().__init__(weight=weight)
        self._rpc = rpc

    async def check(self, ctx: CheckContext) -> CheckResult:
        accounts = await self._rpc.get_token_largest_accounts(ctx.asset_id)
        if not accounts:
            return CheckResult(self.name, 0.0, False, "no holders found")

        supply = await self._rpc.get_token_supply(ctx.asset_id)
        try:
            total = float(supply["amount"])
            amounts = [float(a.get("amount") or 0) for a in accounts]
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError("solana-rpc", f"bad holder payload: {e}") from e
        if total <= 0:
            raise ProviderError("solana-rpc", "token supply is zero")
        return _concentration_result(self.name, amounts, total)


class BaseHolderDistributionCheck(SafetyCheck):
    """Holder concentration on Base.

    ERC-20 holders cannot be enumerated over JSON-RPC, so the ranked holder
    list comes from the Blockscout index. Balances and total supply are then
    read on-chain. The asset's pool and the burn addresses are not holders,
    and burned tokens are left out of the circulating supply.
    """

    name = "holders"
    stage = CheckStage.DEEP
    networks = frozenset({NetworkId.BASE})

    def __init__(
        self,
        chain: BaseChainClient,
        http: HttpClient,
        *,
        base_url: str = DEFAULT_BLOCKSCOUT_URL,
        weight: float = 0.20,
    ) -> None:
        super().__init__(weight=weight)
        self._chain = chain
        self._http = http
        self._base_url = base_url.rstrip("/")

    async def _ranked_holders(self, ctx: CheckContext) -> list[str]:
        data: Any = await self._http.get_json(f"{self._base_url}/tokens/{ctx.asset_id}/holders")
        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise ProviderError("blockscout", "unexpected response shape")

        pool = ""
        if ctx.metadata is not None and ctx.metadata.market.pair_address:
            pool = ctx.metadata.market.pair_address.lower()
        holders: list[str] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            address = str((item.get("address") or {}).get("hash") or "").lower()
            if not address or address == pool or address in BURN_ADDRESSES or address in holders:
                continue
            holders.append(address)
        return holders[:TOP_HOLDERS]

    async def check(self, ctx: CheckContext) -> CheckResult:
        holders = await self._ranked_holders(ctx)
        if not holders:
            return CheckResult(self.name, 0.0, False, "no holders found")

        supply, balances = await self._chain.get_token_balances(ctx.asset_id, [*holders, *BURN_ADDRESSES])
        circulating = supply - sum(balances.get(a, 0) for a in BURN_ADDRESSES)
        if circulating <= 0:
            raise ProviderError("base-rpc", "circulating supply is zero")
        return _concentration_result(self.name, [balances.get(h, 0) for h in holders], circulating)
