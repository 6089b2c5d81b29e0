"""Bounded in-process caches built on cachetools.

Every cache in the pipeline (metadata, pair tokens, safety results, seen
event ids, wallet records) is one of these, so housekeeping can sweep them
uniformly.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Hashable
from typing import Any, Generic, TypeVar

import cachetools

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], float]


class TTLCache(Generic[K, V]):
    """Size-bounded LRU mapping with optional per-entry expiry.

    Backed by ``cachetools.TTLCache``, or ``cachetools.LRUCache`` when
    ``ttl_seconds`` is ``None``. Inserting past ``max_size`` evicts the least
    recently used entry. Expired entries are invisible to reads and are
    removed in bulk by ``sweep()``.

    Example:
        ```python
        seen = TTLCache[str, bool](max_size=10_000, name="solana-seen")
        if seen.add(signature, True):
            process(signature)
        ```
    """

    def __init__(
        self,
        *,
        max_size: int,
        ttl_seconds: float | None = None,
        clock: Clock = time.monotonic,
        name: str = "cache",
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.name = name
        self._ttl = ttl_seconds
        self._data: cachetools.Cache[Any, Any]
        if ttl_seconds is None:
            self._data = cachetools.LRUCache(maxsize=max_size)
        else:
            self._data = cachetools.TTLCache(maxsize=max_size, ttl=ttl_seconds, timer=clock)

    def __len__(self) -> int:
        if isinstance(self._data, cachetools.TTLCache):
            self._data.expire()
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    @property
    def max_size(self) -> int:
        return int(self._data.maxsize)

    def get(self, key: K) -> V | None:
        """Return a live value and mark it recently used."""
        value: V | None = self._data.get(key)
        return value

    def set(self, key: K, value: V) -> None:
        self._data[key] = value

    def add(self, key: K, value: V) -> bool:
        """Insert only if absent or expired. Returns True if inserted."""
        if key in self._data:
            return False
        self._data[key] = value
        return True

    def pop(self, key: K) -> V | None:
        value: V | None = self._data.pop(key, None)
        return value

    def clear(self) -> None:
        self._data.clear()

    def sweep(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        if not isinstance(self._data, cachetools.TTLCache):
            return 0
        return len(self._data.expire())
