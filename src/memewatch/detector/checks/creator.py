"""Creator wallet history check (Solana).

The creator is taken to be the mint authority. Its recent transactions are
scanned for ``initializeMint`` instructions (tokens launched) and failures.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

from memewatch.detector.checks.base import CheckContext, SafetyCheck, clamp_score
from memewatch.detector.models import CheckResult, CheckStage
from memewatch.ingestor.errors import ProviderError
from memewatch.ingestor.models import NetworkId
from memewatch.ingestor.solana_rpc import SolanaRpcClient

SIGNATURE_SCAN_LIMIT = 100
DEFAULT_TX_SCAN_LIMIT = 20
SECONDS_PER_DAY = 86_400


def trust_grade(score: float) -> str:
    if score >= 90:
        return "A+"
    if score >= 80:
        return "A"
    if score >= 70:
        return "B"
    if score >= 60:
        return "C"
    if score >= 50:
        return "D"
    return "F"


def trust_score(mints: int, failed: int, wallet_age_days: float | None) -> tuple[float, list[str]]:
    score = 100.0
    reasons: list[str] = []
    if mints > 10:
        score -= 40
        reasons.append(f"created {mints} tokens (serial launcher)")
    elif mints > 5:
        score -= 20
        reasons.append(f"created {mints} tokens")
    elif mints == 1:
        score += 10
        reasons.append("first-time creator")

    if failed > 10:
        score -= 30
        reasons.append("high failed transaction rate")

    if wallet_age_days is not None:
        if wallet_age_days < 7 and mints > 3:
            score -= 30
            reasons.append("new wallet launching multiple tokens")
        elif wallet_age_days > 180:
            score += 10
            reasons.append("established wallet")
    return clamp_score(score), reasons


def _count_mints(tx: dict[str, Any]) -> int:
    message = (tx.get("transaction") or {}).get("message") or {}
    count = 0
    for ix in message.get("instructions") or []:
        if not isinstance(ix, dict) or ix.get("program") != "spl-token":
            continue
        if (ix.get("parsed") or {}).get("type") in ("initializeMint", "initializeMint2"):
            count += 1
    return count


class CreatorTrustCheck(SafetyCheck):
    name = "creator"
    stage = CheckStage.DEEP
    networks = frozenset({NetworkId.SOLANA})

    def __init__(
        self,
        rpc: SolanaRpcClient,
        *,
        scan_limit: int = DEFAULT_TX_SCAN_LIMIT,
        neutral_score: float = 50.0,
        weight: float = 0.15,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(weight=weight)
        self._rpc = rpc
        self._scan_limit = scan_limit
        self._neutral = neutral_score
        self._clock = clock

    async def _creator(self, mint: str) -> str | None:
        account = await self._rpc.get_parsed_account_info(mint)
        if account is None:
            raise ProviderError("solana-rpc", f"mint account {mint} not found")
        data = account.get("data")
        info = ((data or {}).get("parsed") or {}).get("info") if isinstance(data, dict) else None
        if not isinstance(info, dict):
            raise ProviderError("solana-rpc", "mint account is not jsonParsed")
        authority = info.get("mintAuthority")
        return str(authority) if authority else None

    async def check(self, ctx: CheckContext) -> CheckResult:
        creator = await self._creator(ctx.asset_id)
        if creator is None:
            return CheckResult(self.name, self._neutral, True, "mint authority renounced")

        signatures = await self._rpc.get_signatures_for_address(creator, limit=SIGNATURE_SCAN_LIMIT)
        txs = await asyncio.gather(
            *(self._rpc.get_transaction(str(s["signature"])) for s in signatures[: self._scan_limit]),
            return_exceptions=True,
        )

        mints = failed = 0
        for tx in txs:
            if not isinstance(tx, dict) or not tx.get("meta"):
                continue
            mints += _count_mints(tx)
            if tx["meta"].get("err") is not None:
                failed += 1

        age_days = None
        oldest = signatures[-1].get("blockTime") if signatures else None
        if oldest:
            age_days = (self._clock() - float(oldest)) / SECONDS_PER_DAY

        score, reasons = trust_score(mints, failed, age_days)
        return CheckResult(
            self.name,
            score,
            score >= 40,
            ", ".join(reasons) or "normal activity",
            details={"grade": trust_grade(score), "creator": creator, "tokens_created": str(mints)},
        )
