"""Alerted-asset dedup set.

``try_mark`` is an atomic test-and-set: of any number of concurrent callers
for the same asset, exactly one gets True. The pipeline calls it right
before enqueueing, so an asset alerts at most once while its entry exists.
Entries are only removed by the wholesale size-bound clear.
"""

from __future__ import annotations

import logging
from typing import Protocol

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

DEFAULT_REDIS_KEY = "alerted"


class DedupStore(Protocol):
    async def contains(self, asset_id: str) -> bool: ...

    async def try_mark(self, asset_id: str) -> bool: ...

    async def size(self) -> int: ...

    async def clear_if_exceeds(self, max_size: int) -> int: ...


class InMemoryDedupStore:
    """Process-local dedup set.

    No await happens between the membership test and the insert, so
    ``try_mark`` is atomic under cooperative scheduling.
    """

    def __init__(self) -> None:
        self._alerted: set[str] = set()

    def __len__(self) -> int:
        return len(self._alerted)

    async def contains(self, asset_id: str) -> bool:
        return asset_id in self._alerted

    async def try_mark(self, asset_id: str) -> bool:
        if asset_id in self._alerted:
            return False
        self._alerted.add(asset_id)
        return True

    async def size(self) -> int:
        return len(self._alerted)

    async def clear_if_exceeds(self, max_size: int) -> int:
        """Clear the whole set once it exceeds ``max_size``. Returns entries removed."""
        count = len(self._alerted)
        if count <= max_size:
            return 0
        self._alerted.clear()
        logger.info("Cleared dedup set (%d entries)", count)
        return count


class RedisDedupStore:
    """Dedup set held in a Redis set; SADD gives the atomic test-and-set.

    Example:
        ```python
        redis = Redis.from_url("redis://localhost:6379")
        dedup = RedisDedupStore(redis, key_prefix="memewatch:")
        if await dedup.try_mark(mint):
            queue.queue_alert(text)
        ```
    """

    def __init__(self, redis: Redis, *, key_prefix: str = "memewatch:") -> None:
        self._redis = redis
        self._key = f"{key_prefix}{DEFAULT_REDIS_KEY}"

    async def contains(self, asset_id: str) -> bool:
        return bool(await self._redis.sismember(self._key, asset_id))

    async def try_mark(self, asset_id: str) -> bool:
        added = await self._redis.sadd(self._key, asset_id)
        return int(added) == 1

    async def size(self) -> int:
        return int(await self._redis.scard(self._key))

    async def clear_if_exceeds(self, max_size: int) -> int:
        count = await self.size()
        if count <= max_size:
            return 0
        await self._redis.delete(self._key)
        logger.info("Cleared dedup set (%d entries)", count)
        return count
