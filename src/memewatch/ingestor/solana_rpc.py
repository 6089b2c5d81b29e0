"""Solana JSON-RPC client.

Covers the handful of methods the poller and the Solana safety checks need.
Transport failures and JSON-RPC error objects both surface as
``ProviderError``.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any

from memewatch.ingestor.errors import ProviderError, ProviderTimeout
from memewatch.ingestor.http import HttpClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 2
DEFAULT_RETRY_DELAY_SECONDS = 1.0


class SolanaRpcClient:
    """Thin JSON-RPC wrapper over the shared HTTP client.

    Example:
        ```python
        rpc = SolanaRpcClient(http, "https://api.mainnet-beta.solana.com")
        sigs = await rpc.get_signatures_for_address(program_id, limit=10)
        ```
    """

    def __init__(
        self,
        http: HttpClient,
        rpc_url: str,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
    ) -> None:
        self._http = http
        self._rpc_url = rpc_url
        self._max_retries = max_retries
        self._retry_delay = retry_delay_seconds
        self._ids = itertools.count(1)

    async def _call(self, method: str, params: list[Any] | None = None) -> Any:
        """Execute one JSON-RPC call, retrying transient transport failures.

        Raises:
            ProviderError: On an RPC error object or once retries run out.
        """
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or []}
        delay = self._retry_delay
        last_error: ProviderError | None = None
        for attempt in range(self._max_retries + 1):
            try:
                data = await self._http.post_json(self._rpc_url, payload)
            except ProviderTimeout:
                raise
            except ProviderError as e:
                last_error = e
                if attempt < self._max_retries:
                    logger.debug(
                        "Solana RPC %s failed (attempt %d/%d): %s",
                        method,
                        attempt + 1,
                        self._max_retries + 1,
                        e,
                    )
                    await asyncio.sleep(delay)
                    delay *= 2
                continue

            if not isinstance(data, dict):
                raise ProviderError("solana-rpc", f"{method}: unexpected response")
            if data.get("error"):
                error = data["error"]
                message = error.get("message") if isinstance(error, dict) else str(error)
                raise ProviderError("solana-rpc", f"{method}: {message}")
            return data.get("result")

        assert last_error is not None
        raise last_error

    async def get_health(self) -> str:
        """Return "ok" or raise. Used as the startup health check."""
        result = await self._call("getHealth")
        return str(result)

    async def get_signatures_for_address(
        self,
        address: str,
        *,
        limit: int,
        until: str | None = None,
        before: str | None = None,
    ) -> list[dict[str, Any]]:
        """Signatures for an address, newest first.

        ``until`` stops the scan at (and excludes) that signature.
        """
        options: dict[str, Any] = {"limit": limit}
        if until:
            options["until"] = until
        if before:
            options["before"] = before
        result = await self._call("getSignaturesForAddress", [address, options])
        return [r for r in result or [] if isinstance(r, dict)]

    async def get_transaction(self, signature: str) -> dict[str, Any] | None:
        return await self._call(
            "getTransaction",
            [signature, {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0}],
        )

    async def get_token_largest_accounts(self, mint: str) -> list[dict[str, Any]]:
        result = await self._call("getTokenLargestAccounts", [mint])
        return list((result or {}).get("value") or [])

    async def get_token_supply(self, mint: str) -> dict[str, Any]:
        result = await self._call("getTokenSupply", [mint])
        value = (result or {}).get("value")
        if not isinstance(value, dict):
            raise ProviderError("solana-rpc", f"getTokenSupply: no supply for {mint}")
        return value

    async def get_parsed_account_info(self, address: str) -> dict[str, Any] | None:
        result = await self._call("getAccountInfo", [address, {"encoding": "jsonParsed"}])
        value = (result or {}).get("value")
        return value if isinstance(value, dict) else None
