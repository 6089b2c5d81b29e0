"""Shared HTTP JSON client with per-provider throttling and fixed timeouts."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any
from urllib.parse import urlsplit

import aiohttp

from memewatch.ingestor.errors import ProviderError, ProviderTimeout

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 4.0
DEFAULT_MIN_INTERVAL_SECONDS = 0.2
USER_AGENT = "memewatch/0.1"


class RateLimiter:
    """Serializes calls so consecutive ones are at least ``min_interval`` apart."""

    def __init__(self, min_interval: float = DEFAULT_MIN_INTERVAL_SECONDS) -> None:
        self._min_interval = min_interval
        self._last_request_time: float = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until a request slot is available."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request_time
            if elapsed < self._min_interval:
                await asyncio.sleep(self._min_interval - elapsed)
            self._last_request_time = time.monotonic()


class HttpClient:
    """Thin aiohttp wrapper used by every REST provider.

    One ``RateLimiter`` is kept per host, so a slow provider never delays
    calls to another. Every failure surfaces as ``ProviderError`` (or
    ``ProviderTimeout``), which callers turn into a neutral default.

    Example:
        ```python
        async with HttpClient() as http:
            data = await http.get_json("https://api.dexscreener.com/latest/dex/tokens/0x...")
        ```
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        min_interval_seconds: float = DEFAULT_MIN_INTERVAL_SECONDS,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._min_interval = min_interval_seconds
        self._session = session
        self._owns_session = session is None
        self._limiters: dict[str, RateLimiter] = {}

    async def __aenter__(self) -> HttpClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            )
            self._owns_session = True
        return self._session

    def _limiter_for(self, url: str) -> RateLimiter:
        host = urlsplit(url).netloc
        limiter = self._limiters.get(host)
        if limiter is None:
            limiter = RateLimiter(self._min_interval)
            self._limiters[host] = limiter
        return limiter

    async def get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        return await self._request("GET", url, params=params, timeout=timeout)

    async def post_json(
        self,
        url: str,
        payload: Any,
        *,
        timeout: float | None = None,
        throttle: bool = True,
    ) -> Any:
        return await self._request("POST", url, json=payload, timeout=timeout, throttle=throttle)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        timeout: float | None = None,
        throttle: bool = True,
    ) -> Any:
        host = urlsplit(url).netloc or url
        if throttle:
            await self._limiter_for(url).acquire()
        request_timeout = aiohttp.ClientTimeout(total=timeout) if timeout is not None else self._timeout
        try:
            async with self._get_session().request(
                method,
                url,
                params=params,
                json=json,
                timeout=request_timeout,
            ) as resp:
                if resp.status == 429:
                    raise ProviderError(host, "rate limited (429)")
                if resp.status >= 400:
                    body = await resp.text()
                    raise ProviderError(host, f"HTTP {resp.status}: {body[:200]}")
                return await resp.json(content_type=None)
        except TimeoutError as e:
            raise ProviderTimeout(host, f"{method} timed out") from e
        except aiohttp.ClientError as e:
            raise ProviderError(host, str(e) or type(e).__name__) from e
        except ValueError as e:
            raise ProviderError(host, f"invalid JSON: {e}") from e

    async def aclose(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
