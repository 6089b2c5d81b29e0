"""Exception hierarchy shared by the ingestion layer and its providers."""

from __future__ import annotations


class MemewatchError(Exception):
    """Base exception for memewatch errors."""


class DecodeError(MemewatchError):
    """Raised when a raw chain event cannot be decoded into a SwapEvent.

    Expected at high frequency; callers drop the event and move on.
    """


class ProviderError(MemewatchError):
    """Raised when an external data provider call fails."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ProviderTimeout(ProviderError):
    """Raised when an external data provider call exceeds its timeout."""


class FatalStartupError(MemewatchError):
    """Raised when an ingestion adapter cannot initialize.

    Only the failing network halts; other adapters keep running.
    """

    def __init__(self, network: str, message: str) -> None:
        super().__init__(f"{network} startup failed: {message}")
        self.network = network
        self.reason = message
