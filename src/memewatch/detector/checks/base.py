"""Common safety check capability and the runner that bounds it."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

from memewatch.detector.models import CheckResult, CheckStage
from memewatch.ingestor.cache import TTLCache
from memewatch.ingestor.errors import ProviderError
from memewatch.ingestor.models import AssetMetadata, NetworkId

logger = logging.getLogger(__name__)

DEFAULT_CHECK_TIMEOUT_SECONDS = 5.0
DEFAULT_NEUTRAL_SCORE = 50.0
DEFAULT_RESULT_TTL_SECONDS = 600.0
DEFAULT_RESULT_CACHE_SIZE = 5000


@dataclass(frozen=True)
class CheckContext:
    """Inputs shared by every check for one review."""

    asset_id: str
    network: NetworkId
    metadata: AssetMetadata | None = None


class SafetyCheck(ABC):
    """One pluggable safety signal.

    Subclasses set ``name``, ``stage`` and ``networks`` and implement
    ``check()``. ``check()`` may raise ``ProviderError``; the runner turns
    that into the neutral default.
    """

    name: str = "check"
    stage: CheckStage = CheckStage.DEEP
    networks: frozenset[NetworkId] = frozenset(NetworkId)
    cacheable: bool = True

    def __init__(self, *, weight: float = 0.0) -> None:
        self.weight = weight

    def supports(self, network: NetworkId) -> bool:
        return network in self.networks

    @abstractmethod
    async def check(self, ctx: CheckContext) -> CheckResult:
        """Run the check."""

    def neutral(self, score: float, reason: str) -> CheckResult:
        return CheckResult(name=self.name, score=score, passed=True, reason=reason, degraded=True)


def clamp_score(value: float) -> float:
    return max(0.0, min(100.0, value))


class CheckRunner:
    """Runs checks with a timeout, a neutral fallback and a result cache."""

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_CHECK_TIMEOUT_SECONDS,
        neutral_score: float = DEFAULT_NEUTRAL_SCORE,
        result_ttl_seconds: float = DEFAULT_RESULT_TTL_SECONDS,
        max_entries: int = DEFAULT_RESULT_CACHE_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._timeout = timeout_seconds
        self._neutral = neutral_score
        self._results: TTLCache[tuple[str, NetworkId, str], CheckResult] = TTLCache(
            max_size=max_entries,
            ttl_seconds=result_ttl_seconds,
            clock=clock,
            name="safety-results",
        )

    @property
    def cache(self) -> TTLCache[tuple[str, NetworkId, str], CheckResult]:
        return self._results

    async def run(self, check: SafetyCheck, ctx: CheckContext) -> CheckResult:
        """Run one check. Never raises; any failure yields the neutral result."""
        if not check.supports(ctx.network):
            return CheckResult(name=check.name, score=None, passed=True, reason="not applicable")

        key = (check.name, ctx.network, ctx.asset_id)
        if check.cacheable:
            cached = self._results.get(key)
            if cached is not None:
                return cached

        try:
            result = await asyncio.wait_for(check.check(ctx), timeout=self._timeout)
        except TimeoutError:
            logger.debug("%s check timed out for %s", check.name, ctx.asset_id)
            return check.neutral(self._neutral, "timed out")
        except ProviderError as e:
            logger.debug("%s check unavailable for %s: %s", check.name, ctx.asset_id, e)
            return check.neutral(self._neutral, "unavailable")
        except Exception as e:
            # Malformed provider payloads surface here as parse errors.
            logger.debug("%s check failed for %s: %r", check.name, ctx.asset_id, e)
            return check.neutral(self._neutral, "check failed")

        if check.cacheable and not result.degraded:
            self._results.set(key, result)
        return result
