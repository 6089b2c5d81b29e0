"""Event normalization and buy classification.

Raw chain payloads are decoded into ``SwapEvent`` records, then classified:
only swaps that spend a recognized base asset (native or stable) to acquire
a non-base asset count as buys. Token-to-token swaps and anything that fails
to decode are dropped without propagating an error.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from memewatch.ingestor.errors import DecodeError
from memewatch.ingestor.models import NetworkId, QualifiedBuy, SwapEvent
from memewatch.ingestor.price_feed import PriceFeed

logger = logging.getLogger(__name__)

# keccak("Swap(address,uint256,uint256,uint256,uint256,address)")
V2_SWAP_TOPIC = "0xd78ad95fa46c994b6551d0da85fc275fe613ce37657fb8d5e3d130840159d822"

WRAPPED_SOL_MINT = "So11111111111111111111111111111111111111112"


@dataclass(frozen=True)
class BaseAsset:
    """An asset buyers spend: the network's native asset or a stablecoin."""

    address: str
    symbol: str
    decimals: int
    is_native: bool = False


DEFAULT_BASE_ASSETS: dict[NetworkId, tuple[BaseAsset, ...]] = {
    NetworkId.BASE: (
        BaseAsset("0x4200000000000000000000000000000000000006", "WETH", 18, is_native=True),
        BaseAsset("0x833589fcd6edb6e08f4c7c32d4f71b54bda02913", "USDC", 6),
        BaseAsset("0xd9aaec86b65d86f6a7b5b1b0c42ffa531710b6ca", "USDbC", 6),
        BaseAsset("0x50c5725949a6f0c72e6c4a641f24049a917db0cb", "DAI", 18),
    ),
    NetworkId.SOLANA: (
        BaseAsset(WRAPPED_SOL_MINT, "SOL", 9, is_native=True),
        BaseAsset("EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v", "USDC", 6),
    ),
}


def _key(network: NetworkId, address: str) -> str:
    # EVM addresses are case-insensitive; Solana base58 ids are not.
    return address.lower() if network == NetworkId.BASE else address


class BaseAssetRegistry:
    """Lookup of base assets per network."""

    def __init__(self, assets: Mapping[NetworkId, Iterable[BaseAsset]] | None = None) -> None:
        source = DEFAULT_BASE_ASSETS if assets is None else assets
        self._assets: dict[NetworkId, dict[str, BaseAsset]] = {
            network: {_key(network, a.address): a for a in items} for network, items in source.items()
        }

    def get(self, network: NetworkId, address: str) -> BaseAsset | None:
        return self._assets.get(network, {}).get(_key(network, address))

    def is_base(self, network: NetworkId, address: str) -> bool:
        return self.get(network, address) is not None

    def native(self, network: NetworkId) -> BaseAsset | None:
        for asset in self._assets.get(network, {}).values():
            if asset.is_native:
                return asset
        return None


def _hex_to_int(value: str) -> int:
    return int(value, 16)


def _topic_to_address(topic: str) -> str:
    raw = topic[2:] if topic.startswith("0x") else topic
    if len(raw) != 64:
        raise DecodeError(f"Topic is not a 32-byte word: {topic!r}")
    return "0x" + raw[-40:].lower()


def decode_v2_swap_log(
    log: Mapping[str, Any],
    token0: str,
    token1: str,
    *,
    received_at: datetime | None = None,
) -> SwapEvent:
    """Decode a Uniswap V2 style ``Swap`` log into a SwapEvent.

    Args:
        log: Log object as delivered by ``eth_subscribe("logs")``.
        token0: Pair's token0 address.
        token1: Pair's token1 address.
        received_at: Timestamp to stamp (logs carry no block time).

    Raises:
        DecodeError: If the log is not a well-formed V2 swap.
    """
    try:
        topics = log["topics"]
        if not topics or str(topics[0]).lower() != V2_SWAP_TOPIC:
            raise DecodeError("Not a V2 Swap log")
        if len(topics) < 3:
            raise DecodeError("Swap log is missing indexed topics")
        data = str(log["data"])
        data = data[2:] if data.startswith("0x") else data
        if len(data) < 256:
            raise DecodeError("Swap log data too short")
        words = [int(data[i : i + 64], 16) for i in range(0, 256, 64)]
        amount0_in, amount1_in, amount0_out, amount1_out = words
        recipient = _topic_to_address(str(topics[2]))
        event_id = f"{str(log['transactionHash']).lower()}:{_hex_to_int(str(log['logIndex']))}"
        pool_id = str(log["address"]).lower()
    except DecodeError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise DecodeError(f"Malformed swap log: {e}") from e

    if amount0_in > 0 and amount1_out > 0:
        asset_in, amount_in, asset_out, amount_out = token0, amount0_in, token1, amount1_out
    elif amount1_in > 0 and amount0_out > 0:
        asset_in, amount_in, asset_out, amount_out = token1, amount1_in, token0, amount0_out
    else:
        raise DecodeError("Swap has no in/out leg")

    return SwapEvent(
        network=NetworkId.BASE,
        event_id=event_id,
        timestamp=received_at or datetime.now(UTC),
        pool_id=pool_id,
        asset_in=asset_in.lower(),
        asset_out=asset_out.lower(),
        amount_in=amount_in,
        amount_out=amount_out,
        taker=recipient,
    )


def _account_key(entry: Any) -> str:
    if isinstance(entry, dict):
        return str(entry["pubkey"])
    return str(entry)


def _received_token(
    taker: str,
    post_balances: list[dict[str, Any]],
    pre_balances: list[dict[str, Any]],
) -> tuple[str | None, int]:
    for bal in post_balances:
        ui = bal.get("uiTokenAmount") or {}
        if bal.get("owner") != taker or bal.get("mint") == WRAPPED_SOL_MINT:
            continue
        if float(ui.get("uiAmount") or 0) <= 0:
            continue
        post_raw = int(ui.get("amount") or 0)
        pre_raw = next(
            (
                int((p.get("uiTokenAmount") or {}).get("amount") or 0)
                for p in pre_balances
                if p.get("accountIndex") == bal.get("accountIndex")
            ),
            0,
        )
        return str(bal["mint"]), max(post_raw - pre_raw, 0) or post_raw
    return None, 0


def decode_solana_transaction(
    signature: str,
    tx: Mapping[str, Any],
    *,
    program_id: str,
) -> SwapEvent:
    """Decode a jsonParsed Solana transaction into a SOL-for-token SwapEvent.

    The fee payer is the taker, the input is the SOL it spent, and the output
    is the first token balance it holds after the transaction.

    Raises:
        DecodeError: If the transaction failed or is not a SOL-for-token buy.
    """
    try:
        meta = tx["meta"]
        if meta is None or meta.get("err") is not None:
            raise DecodeError("Transaction failed or has no meta")
        keys = tx["transaction"]["message"]["accountKeys"]
        taker = _account_key(keys[0])
        spent = int(meta["preBalances"][0]) - int(meta["postBalances"][0])
        post_balances = meta.get("postTokenBalances") or []
        pre_balances = meta.get("preTokenBalances") or []
        block_time = tx.get("blockTime")
    except DecodeError:
        raise
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise DecodeError(f"Malformed transaction {signature}: {e}") from e

    if spent <= 0:
        raise DecodeError("Fee payer did not spend SOL")

    try:
        mint, amount_out = _received_token(taker, post_balances, pre_balances)
    except (KeyError, TypeError, ValueError) as e:
        raise DecodeError(f"Malformed token balances in {signature}: {e}") from e

    if mint is None:
        raise DecodeError("No token received by fee payer")

    timestamp = datetime.fromtimestamp(block_time, tz=UTC) if block_time else datetime.now(UTC)
    return SwapEvent(
        network=NetworkId.SOLANA,
        event_id=signature,
        timestamp=timestamp,
        pool_id=program_id,
        asset_in=WRAPPED_SOL_MINT,
        asset_out=mint,
        amount_in=spent,
        amount_out=amount_out,
        taker=taker,
    )


def token_decimals(tx: Mapping[str, Any], mint: str) -> int | None:
    """Decimals of ``mint`` as reported in the transaction's token balances."""
    meta = tx.get("meta") or {}
    for bal in meta.get("postTokenBalances") or []:
        if bal.get("mint") == mint:
            decimals = (bal.get("uiTokenAmount") or {}).get("decimals")
            if decimals is not None:
                return int(decimals)
    return None


class SwapClassifier:
    """Turns SwapEvents into QualifiedBuys.

    A swap qualifies when it spends a base asset for a non-base asset and the
    spent amount, converted to USD, reaches the network's whale floor.
    """

    def __init__(
        self,
        price_feed: PriceFeed,
        *,
        min_buy_usd: Mapping[NetworkId, float],
        registry: BaseAssetRegistry | None = None,
    ) -> None:
        self._price_feed = price_feed
        self._min_buy_usd = dict(min_buy_usd)
        self._registry = registry or BaseAssetRegistry()

    @property
    def registry(self) -> BaseAssetRegistry:
        return self._registry

    async def usd_value(self, network: NetworkId, base: BaseAsset, amount: int) -> Decimal:
        units = Decimal(amount) / (Decimal(10) ** base.decimals)
        if not base.is_native:
            return units
        price = await self._price_feed.get_native_usd(network)
        return units * Decimal(str(price))

    async def classify(self, event: SwapEvent) -> QualifiedBuy | None:
        """Return a QualifiedBuy, or None if the swap is not a whale buy."""
        base = self._registry.get(event.network, event.asset_in)
        if base is None:
            return None
        if self._registry.is_base(event.network, event.asset_out):
            return None
        if event.amount_in <= 0:
            return None

        usd = await self.usd_value(event.network, base, event.amount_in)
        if usd < Decimal(str(self._min_buy_usd.get(event.network, 0.0))):
            return None

        return QualifiedBuy(
            event=event,
            asset_id=event.asset_out,
            buyer=event.taker,
            usd_amount=usd,
            base_asset=base.symbol,
        )
