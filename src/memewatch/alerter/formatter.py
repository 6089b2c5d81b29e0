"""Alert message formatter.

Turns a WhaleAlert into the plain-text message sent to Telegram, and builds
the lifecycle and serial-buyer notices.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from memewatch.detector.models import CheckResult, TriggerReason, WhaleAlert
from memewatch.ingestor.models import AssetMetadata, NetworkId

BASE_LINKS = {
    "DexScreener": "https://dexscreener.com/base/{asset}",
    "DexTools": "https://www.dextools.io/app/en/base/pair-explorer/{pair}",
    "BaseScan": "https://basescan.org/token/{asset}",
}

SOLANA_LINKS = {
    "DexScreener": "https://dexscreener.com/solana/{asset}",
    "Birdeye": "https://birdeye.so/token/{asset}?chain=solana",
    "RugCheck": "https://rugcheck.xyz/tokens/{asset}",
    "Photon": "https://photon-sol.tinyastro.io/en/lp/{pair}",
}

NETWORK_LINKS = {NetworkId.BASE: BASE_LINKS, NetworkId.SOLANA: SOLANA_LINKS}

NETWORK_ICONS = {NetworkId.BASE: "🔵", NetworkId.SOLANA: "🟣"}


def truncate_address(address: str, chars: int = 4) -> str:
    """Truncate an address to 0x1234...5678 form."""
    if len(address) < chars * 2 + 4:
        return address
    prefix = chars + 2 if address.startswith("0x") else chars
    return f"{address[:prefix]}...{address[-chars:]}"


def format_usd(amount: Decimal | float) -> str:
    """Format a USD amount; large values get a k/M suffix."""
    value = float(amount)
    if value >= 1_000_000:
        return f"${value / 1_000_000:.2f}M"
    if value >= 10_000:
        return f"${value / 1_000:.1f}k"
    return f"${value:,.0f}"


def format_age(age_hours: float | None) -> str:
    if age_hours is None:
        return "unknown"
    if age_hours < 1:
        return f"{int(age_hours * 60)}m"
    if age_hours < 48:
        return f"{age_hours:.1f}h"
    return f"{age_hours / 24:.0f}d"


def score_emoji(score: float) -> str:
    if score >= 85:
        return "✅"
    if score >= 70:
        return "🟢"
    if score >= 50:
        return "🟡"
    if score >= 30:
        return "🟠"
    return "🔴"


def buy_pressure(buys: int, sells: int) -> str:
    total = buys + sells
    if total == 0:
        return "no trades (5m)"
    ratio = buys / total
    label = "BUY PRESSURE" if ratio >= 0.6 else "SELL PRESSURE" if ratio <= 0.4 else "BALANCED"
    return f"{label} {buys}B/{sells}S (5m)"


class AlertFormatter:
    """Formats alerts and notices as plain text."""

    def __init__(self, *, window_minutes: int = 5) -> None:
        self.window_minutes = window_minutes

    def format(self, alert: WhaleAlert) -> str:
        buy = alert.buy
        network = buy.network
        meta = alert.verdict.metadata
        report = alert.verdict.report

        lines = [f"{NETWORK_ICONS.get(network, '')} {network.display_name.upper()} {self._headline(alert)}", ""]
        lines.extend(self._token_lines(buy.asset_id, meta))
        lines.append("")
        lines.append(f"Latest buy: {format_usd(buy.usd_amount)} in {buy.base_asset} by {truncate_address(buy.buyer)}")
        lines.append(
            f"Window: {alert.window.unique_buyers} whales, {format_usd(alert.window.total_volume_usd)} volume"
        )
        if alert.sniper_count:
            lines.append(f"Serial buyers in window: {alert.sniper_count}")

        if meta is not None:
            lines.append("")
            lines.append(
                f"Liquidity: {format_usd(meta.liquidity_usd)} | MC: {format_usd(meta.market_cap_usd)}"
                f" | Age: {format_age(meta.age_hours)}"
            )
            market = meta.market
            momentum = report.results.get("momentum") if report is not None else None
            label = momentum.details.get("label") if momentum is not None else None
            change = f"5m {market.price_change_5m:+.1f}% | 1h {market.price_change_1h:+.1f}%"
            lines.append(f"Momentum: {label} ({change})" if label else f"Momentum: {change}")
            lines.append(f"Pressure: {buy_pressure(market.buys_5m, market.sells_5m)}")

        if report is not None:
            lines.append("")
            lines.append(f"{score_emoji(report.composite_score)} Safety: {report.composite_score:.0f}/100")
            lines.extend(self._check_lines(report.results.values()))

        lines.append("")
        lines.append(f"⭐ Alpha: {alert.alpha.score}/100 ({alert.alpha.risk_level})")
        lines.append("")
        lines.append(self._links(network, buy.asset_id, meta))
        return "\n".join(lines)

    def _headline(self, alert: WhaleAlert) -> str:
        if alert.reason == TriggerReason.BIG_SINGLE_BUY:
            return f"🐳 BIG SINGLE BUY ({format_usd(alert.buy.usd_amount)})"
        return f"🐋 {alert.window.unique_buyers} WHALES IN {self.window_minutes} MIN"

    @staticmethod
    def _token_lines(asset_id: str, meta: AssetMetadata | None) -> list[str]:
        if meta is None:
            return [f"Token: {asset_id}"]
        return [f"Token: {meta.name} (${meta.symbol})", f"CA: {asset_id}"]

    @staticmethod
    def _check_lines(results: Iterable[CheckResult]) -> list[str]:
        lines = []
        for result in results:
            if result.name == "momentum":
                continue
            if result.score is None:
                continue
            extra = []
            if "grade" in result.details:
                extra.append(f"grade {result.details['grade']}")
            if "buy_tax" in result.details:
                extra.append(f"tax {result.details['buy_tax']}/{result.details['sell_tax']}")
            suffix = f" [{', '.join(extra)}]" if extra else ""
            marker = "⚪" if result.degraded else "•"
            lines.append(f"{marker} {result.name}: {result.score:.0f} ({result.reason}){suffix}")
        return lines

    @staticmethod
    def _links(network: NetworkId, asset_id: str, meta: AssetMetadata | None) -> str:
        pair = meta.market.pair_address if meta is not None and meta.market.pair_address else asset_id
        templates = NETWORK_LINKS.get(network, {})
        return " | ".join(f"{name}: {url.format(asset=asset_id, pair=pair)}" for name, url in templates.items())

    @staticmethod
    def format_startup(networks: Iterable[NetworkId], *, dry_run: bool = False) -> str:
        names = ", ".join(n.display_name for n in networks) or "none"
        mode = " (dry run)" if dry_run else ""
        return f"🚀 memewatch started{mode}\nWatching: {names}"

    @staticmethod
    def format_startup_failure(network: str, reason: str) -> str:
        return f"⚠️ {network} detector startup failed: {reason}"

    @staticmethod
    def format_serial_buyer(network: NetworkId, wallet: str, asset_count: int) -> str:
        return (
            f"🎯 SERIAL BUYER DETECTED ({network.display_name})\n\n"
            f"Wallet: {wallet}\n"
            f"Distinct tokens bought: {asset_count}\n\n"
            "This wallet is early-buying multiple launches."
        )
