"""Alerting layer - Message formatting and rate-limited delivery."""

from memewatch.alerter.formatter import AlertFormatter
from memewatch.alerter.models import AlertRecord, QueueStats
from memewatch.alerter.queue import AlertQueue
from memewatch.alerter.telegram import (
    AlertTransport,
    DeliveryFailure,
    LoggingTransport,
    TelegramTransport,
)

__all__ = [
    "AlertFormatter",
    "AlertQueue",
    "AlertRecord",
    "AlertTransport",
    "DeliveryFailure",
    "LoggingTransport",
    "QueueStats",
    "TelegramTransport",
]
