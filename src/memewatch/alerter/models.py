"""Data models for the alerter module."""

from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass(frozen=True)
class AlertRecord:
    """One pending message; consumed exactly once by the queue."""

    text: str
    enqueued_at: float = field(default_factory=time.monotonic)


@dataclass
class QueueStats:
    enqueued: int = 0
    delivered: int = 0
    failed: int = 0
    last_delivery_at: float | None = None
