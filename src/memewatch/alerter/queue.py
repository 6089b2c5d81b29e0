"""Rate-limited, single-in-flight alert queue.

``queue_alert`` never blocks and never raises. One drain task at a time pops
messages in FIFO order, hands each to the transport, then waits
``min_delay_seconds`` before the next, so a burst of producers cannot turn
into a burst of deliveries. A failed delivery is logged and dropped.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable

from memewatch.alerter.models import AlertRecord, QueueStats
from memewatch.alerter.telegram import AlertTransport, DeliveryFailure

logger = logging.getLogger(__name__)

DEFAULT_MIN_DELAY_SECONDS = 3.0


class AlertQueue:
    """FIFO alert egress with a fixed minimum gap between deliveries.

    Example:
        ```python
        queue = AlertQueue(TelegramTransport(http, bot_token=token, chat_id=chat))
        queue.queue_alert("🐋 3 WHALES IN 5 MIN ...")
        await queue.join()
        ```
    """

    def __init__(
        self,
        transport: AlertTransport,
        *,
        min_delay_seconds: float = DEFAULT_MIN_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._transport = transport
        self._min_delay = min_delay_seconds
        self._sleep = sleep
        self._clock = clock
        self._pending: deque[AlertRecord] = deque()
        self._draining = False
        self._drain_task: asyncio.Task[None] | None = None
        self._stats = QueueStats()

    @property
    def stats(self) -> QueueStats:
        return self._stats

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def is_draining(self) -> bool:
        return self._draining

    def queue_alert(self, message: str) -> None:
        """Enqueue a message for asynchronous delivery. No delivery guarantee."""
        self._pending.append(AlertRecord(text=message, enqueued_at=self._clock()))
        self._stats.enqueued += 1
        if not self._draining:
            self._draining = True
            self._drain_task = asyncio.create_task(self._drain())

    async def _drain(self) -> None:
        try:
            while self._pending:
                record = self._pending.popleft()
                await self._deliver(record)
                await self._sleep(self._min_delay)
        finally:
            self._draining = False

    async def _deliver(self, record: AlertRecord) -> None:
        try:
            await self._transport.send(record.text)
        except DeliveryFailure as e:
            self._stats.failed += 1
            logger.warning("Alert delivery failed, dropping message: %s", e)
            return
        except Exception as e:
            self._stats.failed += 1
            logger.warning("Alert transport error, dropping message: %s", e)
            return
        self._stats.delivered += 1
        self._stats.last_delivery_at = self._clock()

    async def join(self) -> None:
        """Wait until every queued message has been handled."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)

    async def aclose(self, *, timeout: float | None = None) -> None:
        """Flush pending messages for up to ``timeout`` seconds, then cancel."""
        task = self._drain_task
        if task is None or task.done():
            return
        if timeout:
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        if not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._pending:
            logger.info("Dropping %d undelivered alerts on shutdown", len(self._pending))
            self._pending.clear()
