"""Base (EVM) contract reads via web3.

Covers the on-chain lookups the pipeline needs on Base: pool token pairs
and the locked LP share, plus ERC-20 supply and holder balances for the
holder concentration check.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from web3 import AsyncWeb3
from web3.exceptions import Web3Exception
from web3.providers import AsyncHTTPProvider

from memewatch.ingestor.cache import TTLCache
from memewatch.ingestor.errors import ProviderError, ProviderTimeout
from memewatch.ingestor.http import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_PAIR_CACHE_SIZE = 5000
DEFAULT_CALL_TIMEOUT_SECONDS = 5.0
DEFAULT_MIN_INTERVAL_SECONDS = 0.05

# Team Finance, UNCX, PinkLock
DEFAULT_LOCK_CONTRACTS = (
    "0xC77aab3c6D7dAb46248F3CC3033C856171878BD5",
    "0x231278eDd38B00B07fBd52120CEf685B9BaEBCC1",
    "0x71B5759d73262FBb223956913ecF4ecC51057641",
)

PAIR_ABI: list[dict[str, Any]] = [
    {
        "constant": True,
        "inputs": [],
        "name": "token0",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "token1",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "totalSupply",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]


# Pair pools are ERC-20 LP tokens, so the supply and balance entries double as the token ABI.
ERC20_ABI = [entry for entry in PAIR_ABI if entry["name"] in ("totalSupply", "balanceOf")]


class BaseChainClient:
    """Async web3 client for Base contract reads with a pair-token cache.

    Example:
        ```python
        client = BaseChainClient("https://mainnet.base.org")
        token0, token1 = await client.get_pair_tokens("0x...")
        await client.aclose()
        ```
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        pair_cache_size: int = DEFAULT_PAIR_CACHE_SIZE,
        call_timeout_seconds: float = DEFAULT_CALL_TIMEOUT_SECONDS,
        min_interval_seconds: float = DEFAULT_MIN_INTERVAL_SECONDS,
        lock_contracts: tuple[str, ...] = DEFAULT_LOCK_CONTRACTS,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        self._rpc_url = rpc_url
        self._w3 = w3 or AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self._timeout = call_timeout_seconds
        self._rate_limiter = RateLimiter(min_interval_seconds)
        self._lock_contracts = lock_contracts
        self._pairs: TTLCache[str, tuple[str, str]] = TTLCache(max_size=pair_cache_size, name="pairs")

    @property
    def pair_cache(self) -> TTLCache[str, tuple[str, str]]:
        return self._pairs

    async def _call(self, label: str, awaitable: Any) -> Any:
        await self._rate_limiter.acquire()
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except TimeoutError as e:
            raise ProviderTimeout("base-rpc", f"{label} timed out") from e
        except (Web3Exception, ValueError, OSError) as e:
            raise ProviderError("base-rpc", f"{label} failed: {e}") from e

    def _pair_contract(self, pair_address: str) -> Any:
        return self._w3.eth.contract(address=AsyncWeb3.to_checksum_address(pair_address), abi=PAIR_ABI)

    async def get_chain_id(self) -> int:
        """Read the chain id; used as a startup connectivity check."""
        return int(await self._call("eth_chainId", self._w3.eth.chain_id))

    async def get_pair_tokens(self, pair_address: str) -> tuple[str, str]:
        """Get (token0, token1) for a pool, lowercased. Cached without TTL.

        Raises:
            ProviderError: If the pool cannot be read.
        """
        key = pair_address.lower()
        cached = self._pairs.get(key)
        if cached is not None:
            return cached

        pair = self._pair_contract(pair_address)
        token0, token1 = await asyncio.gather(
            self._call("token0", pair.functions.token0().call()),
            self._call("token1", pair.functions.token1().call()),
        )
        tokens = (str(token0).lower(), str(token1).lower())
        self._pairs.set(key, tokens)
        return tokens

    async def get_locked_lp_percent(self, pair_address: str) -> float:
        """Percent of the pool's LP supply held by known lock contracts.

        Raises:
            ProviderError: If the pool cannot be read.
        """
        pair = self._pair_contract(pair_address)
        total = int(await self._call("totalSupply", pair.functions.totalSupply().call()))
        if total <= 0:
            return 0.0
        balances = await asyncio.gather(
            *(
                self._call("balanceOf", pair.functions.balanceOf(AsyncWeb3.to_checksum_address(locker)).call())
                for locker in self._lock_contracts
            )
        )
        locked = sum(int(b) for b in balances)
        return min(100.0, locked * 100.0 / total)

    async def get_token_balances(self, token: str, holders: Sequence[str]) -> tuple[int, dict[str, int]]:
        """Total supply of an ERC-20 and the balance of each holder, keyed lowercased.

        Raises:
            ProviderError: If the token cannot be read.
        """
        contract = self._w3.eth.contract(address=AsyncWeb3.to_checksum_address(token), abi=ERC20_ABI)
        total, *balances = await asyncio.gather(
            self._call("totalSupply", contract.functions.totalSupply().call()),
            *(
                self._call("balanceOf", contract.functions.balanceOf(AsyncWeb3.to_checksum_address(h)).call())
                for h in holders
            ),
        )
        return int(total), {h.lower(): int(b) for h, b in zip(holders, balances, strict=True)}

    async def aclose(self) -> None:
        """Close the async HTTP provider session."""
        disconnect = getattr(self._w3.provider, "disconnect", None)
        if not callable(disconnect):
            return
        try:
            result = disconnect()
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.warning("Failed to close RPC provider session: %s", e)
