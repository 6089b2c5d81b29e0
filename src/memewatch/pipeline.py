"""Main pipeline orchestrator for memewatch.

This module provides the Pipeline class that wires together ingestion,
detection and alerting, and manages the event flow from swap to alert.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol

from redis.asyncio import Redis

from memewatch.alerter.formatter import AlertFormatter
from memewatch.alerter.queue import AlertQueue
from memewatch.alerter.telegram import AlertTransport, LoggingTransport, TelegramTransport
from memewatch.config import Settings, get_settings
from memewatch.detector import scorer
from memewatch.detector.cascade import SafetyCascade
from memewatch.detector.checks import (
    BaseHolderDistributionCheck,
    BaseLpLockCheck,
    CheckRunner,
    CreatorTrustCheck,
    HolderDistributionCheck,
    HoneypotIsCheck,
    MomentumCheck,
    RugCheckLpLockCheck,
    RugCheckSummaryCheck,
    SafetyCheck,
    SocialSentimentCheck,
)
from memewatch.detector.dedup import DedupStore, InMemoryDedupStore, RedisDedupStore
from memewatch.detector.market_filter import MarketBounds, MarketFilter
from memewatch.detector.models import WhaleAlert
from memewatch.detector.serial_buyers import SerialBuyerTracker
from memewatch.detector.trigger import TriggerPolicy
from memewatch.detector.window import WhaleWindowAggregator
from memewatch.housekeeping import Housekeeper
from memewatch.ingestor.base_chain import BaseChainClient
from memewatch.ingestor.base_stream import BaseSwapStream
from memewatch.ingestor.errors import FatalStartupError
from memewatch.ingestor.http import HttpClient
from memewatch.ingestor.market_data import MarketDataProvider, MetadataCache
from memewatch.ingestor.models import NetworkId, SwapEvent
from memewatch.ingestor.normalizer import SwapClassifier
from memewatch.ingestor.price_feed import PriceFeed
from memewatch.ingestor.solana_poller import SolanaSwapPoller
from memewatch.ingestor.solana_rpc import SolanaRpcClient

logger = logging.getLogger(__name__)

SHUTDOWN_FLUSH_SECONDS = 10.0


class PipelineState(str, Enum):
    """Pipeline lifecycle states."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


class IngestionAdapter(Protocol):
    async def initialize(self) -> None: ...

    async def run(self) -> None: ...

    async def stop(self) -> None: ...


@dataclass
class NetworkCounters:
    events: int = 0
    qualifying_buys: int = 0
    triggers: int = 0
    alerts_queued: int = 0


@dataclass
class PipelineStats:
    """Statistics for the pipeline."""

    started_at: datetime | None = None
    events_processed: int = 0
    qualifying_buys: int = 0
    triggers: int = 0
    suppressed: int = 0
    alerts_queued: int = 0
    errors: int = 0
    last_event_time: datetime | None = None
    last_error: str | None = None
    per_network: dict[str, NetworkCounters] = field(default_factory=dict)

    def network(self, network: NetworkId) -> NetworkCounters:
        counters = self.per_network.get(network.value)
        if counters is None:
            counters = NetworkCounters()
            self.per_network[network.value] = counters
        return counters


@dataclass(frozen=True)
class StatusSnapshot:
    """Point-in-time view for log lines and observability collaborators."""

    tracked_assets: int
    alerted_assets: int
    processed_events: int
    qualifying_buys: int
    triggers: int
    suppressed: int
    alerts_queued: int
    errors: int
    per_network: dict[str, dict[str, int]]
    uptime_seconds: float

    def summary_line(self) -> str:
        return f"{self.tracked_assets} tracked | {self.alerted_assets} alerted | {self.processed_events} events"


class Pipeline:
    """Main pipeline orchestrator for memewatch.

    Pipeline flow:
        Swap Stream / Poller -> Classifier -> Whale Window -> Trigger Policy
        -> Safety Cascade -> Alpha Score -> Dedup -> Alert Queue

    Every event is processed in its own task, so a failure or a slow
    provider lookup for one event never stalls ingestion.

    Example:
        ```python
        from memewatch.config import get_settings
        from memewatch.pipeline import Pipeline

        pipeline = Pipeline(get_settings())
        await pipeline.start()
        # Pipeline runs until stop() is called
        await pipeline.stop()
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        dry_run: bool | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Application settings. If not provided, uses get_settings().
            dry_run: If True, log alerts instead of sending. Overrides settings.dry_run.
            clock: Wall clock used for window timestamps.
        """
        self._settings = settings or get_settings()
        self._dry_run = dry_run if dry_run is not None else self._settings.dry_run
        self._clock = clock

        self._state = PipelineState.STOPPED
        self._stats = PipelineStats()

        # Components (initialized in start())
        self._http: HttpClient | None = None
        self._redis: Redis | None = None
        self._price_feed: PriceFeed | None = None
        self._metadata: MetadataCache | None = None
        self._classifier: SwapClassifier | None = None
        self._windows: WhaleWindowAggregator | None = None
        self._trigger: TriggerPolicy | None = None
        self._cascade: SafetyCascade | None = None
        self._check_runner: CheckRunner | None = None
        self._dedup: DedupStore | None = None
        self._serial_buyers: SerialBuyerTracker | None = None
        self._formatter: AlertFormatter | None = None
        self._queue: AlertQueue | None = None
        self._housekeeper: Housekeeper | None = None
        self._base_chain: BaseChainClient | None = None
        self._solana_rpc: SolanaRpcClient | None = None
        self._adapters: dict[NetworkId, IngestionAdapter] = {}

        # Synchronization
        self._stop_event: asyncio.Event | None = None
        self._adapter_tasks: dict[NetworkId, asyncio.Task[None]] = {}
        self._housekeeping_task: asyncio.Task[None] | None = None
        self._event_tasks: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> PipelineState:
        """Current pipeline state."""
        return self._state

    @property
    def stats(self) -> PipelineStats:
        """Current pipeline statistics."""
        return self._stats

    @property
    def is_running(self) -> bool:
        """Check if pipeline is running."""
        return self._state == PipelineState.RUNNING

    @property
    def active_networks(self) -> list[NetworkId]:
        return list(self._adapters)

    async def start(self) -> None:
        """Start the pipeline.

        Initializes all components and starts every enabled network. A
        network whose adapter fails to initialize is reported and skipped.

        Raises:
            RuntimeError: If the pipeline is already running, or if no
                network could be started.
        """
        if self._state != PipelineState.STOPPED:
            raise RuntimeError(f"Cannot start pipeline in state {self._state}")

        self._state = PipelineState.STARTING
        self._stop_event = asyncio.Event()
        logger.info("Starting pipeline...")

        try:
            await self._initialize_components()
            await self._initialize_adapters()
            if not self._adapters:
                raise RuntimeError("No ingestion adapter could be started")
            await self._start_background_services()
            self._stats.started_at = datetime.now(UTC)
            self._state = PipelineState.RUNNING
            if self._settings.alerts.startup_notice and self._queue and self._formatter:
                self._queue.queue_alert(self._formatter.format_startup(self._adapters, dry_run=self._dry_run))
            logger.info(
                "Pipeline started successfully (%s)",
                ", ".join(n.display_name for n in self._adapters),
            )
        except Exception as e:
            self._state = PipelineState.ERROR
            self._stats.last_error = str(e)
            logger.error("Failed to start pipeline: %s", e)
            await self._cleanup()
            raise

    async def stop(self) -> None:
        """Stop the pipeline gracefully.

        Stops all background services and cleans up resources.
        """
        if self._state == PipelineState.STOPPED:
            return

        self._state = PipelineState.STOPPING
        logger.info("Stopping pipeline...")

        if self._stop_event:
            self._stop_event.set()

        await self._stop_background_services()
        await self._cleanup()

        self._state = PipelineState.STOPPED
        logger.info("Pipeline stopped")

    async def _initialize_components(self) -> None:
        """Initialize detection and alerting components. No network I/O."""
        settings = self._settings

        logger.debug("Initializing HTTP client...")
        self._http = HttpClient(
            timeout_seconds=settings.providers.request_timeout_seconds,
            min_interval_seconds=settings.providers.min_request_interval_seconds,
        )

        if settings.redis.url:
            logger.debug("Initializing Redis connection...")
            self._redis = Redis.from_url(settings.redis.url)
            self._dedup = RedisDedupStore(self._redis, key_prefix=settings.redis.key_prefix)
        else:
            self._dedup = InMemoryDedupStore()

        self._price_feed = PriceFeed(
            self._http,
            base_url=settings.providers.coingecko_url,
            ttl_seconds=settings.cache.price_ttl_seconds,
            fallback_prices={
                NetworkId.BASE: settings.base.fallback_native_price_usd,
                NetworkId.SOLANA: settings.solana.fallback_native_price_usd,
            },
        )
        self._metadata = MetadataCache(
            MarketDataProvider(self._http, base_url=settings.providers.dexscreener_url),
            ttl_seconds=settings.cache.metadata_ttl_seconds,
            max_entries=settings.cache.max_entries,
        )
        self._classifier = SwapClassifier(
            self._price_feed,
            min_buy_usd={
                NetworkId.BASE: settings.base.min_buy_usd,
                NetworkId.SOLANA: settings.solana.min_buy_usd,
            },
        )
        self._windows = WhaleWindowAggregator(
            duration_seconds=settings.window.duration_seconds,
            idle_multiplier=settings.window.idle_multiplier,
        )
        self._trigger = TriggerPolicy(
            big_buy_usd=settings.window.big_buy_usd,
            min_whales=settings.window.min_whales,
        )
        self._serial_buyers = SerialBuyerTracker(
            min_assets=settings.sniper.min_assets,
            ttl_seconds=settings.sniper.ttl_seconds,
            max_wallets=settings.sniper.max_wallets,
        )

        if settings.base.enabled:
            self._base_chain = BaseChainClient(settings.base.rpc_url, pair_cache_size=settings.base.pair_cache_size)
        if settings.solana.enabled:
            self._solana_rpc = SolanaRpcClient(self._http, settings.solana.rpc_url)

        logger.debug("Initializing safety cascade...")
        self._check_runner = CheckRunner(
            timeout_seconds=settings.safety.check_timeout_seconds,
            neutral_score=settings.safety.neutral_score,
            result_ttl_seconds=settings.safety.result_ttl_seconds,
            max_entries=settings.cache.max_entries,
        )
        self._cascade = SafetyCascade(
            self._metadata,
            self._build_market_filter(),
            self._check_runner,
            self._build_checks(),
            min_score=settings.safety.min_score,
            deep_analysis=settings.safety.deep_analysis,
            neutral_score=settings.safety.neutral_score,
        )

        logger.debug("Initializing alerting components...")
        self._formatter = AlertFormatter(window_minutes=max(1, round(settings.window.duration_seconds / 60)))
        self._queue = AlertQueue(self._build_transport(), min_delay_seconds=settings.alerts.min_delay_seconds)

        self._housekeeper = Housekeeper(
            windows=self._windows,
            dedup=self._dedup,
            caches=[*self._metadata.caches, self._check_runner.cache],
            price_feed=self._price_feed,
            serial_buyers=self._serial_buyers,
            dedup_max_size=settings.housekeeping.dedup_max_size,
            clock=self._clock,
        )

    def _build_market_filter(self) -> MarketFilter:
        base = self._settings.base
        solana = self._settings.solana
        return MarketFilter(
            {
                NetworkId.BASE: MarketBounds(
                    base.min_liquidity_usd,
                    base.max_liquidity_usd,
                    base.min_market_cap_usd,
                    base.max_market_cap_usd,
                    base.max_age_hours,
                ),
                NetworkId.SOLANA: MarketBounds(
                    solana.min_liquidity_usd,
                    solana.max_liquidity_usd,
                    solana.min_market_cap_usd,
                    solana.max_market_cap_usd,
                    solana.max_age_hours,
                ),
            }
        )

    def _build_checks(self) -> list[SafetyCheck]:
        """Build the ordered check list for the enabled networks."""
        if self._http is None or self._metadata is None:
            return []
        safety = self._settings.safety
        providers = self._settings.providers
        checks: list[SafetyCheck] = []

        if self._settings.base.enabled:
            checks.append(
                HoneypotIsCheck(
                    self._http,
                    base_url=providers.honeypot_url,
                    chain_id=self._settings.base.chain_id,
                    max_tax_percent=safety.max_tax_percent,
                    weight=safety.weight_honeypot,
                )
            )
        if self._settings.solana.enabled:
            checks.append(
                RugCheckSummaryCheck(self._http, base_url=providers.rugcheck_url, weight=safety.weight_honeypot)
            )
        if self._solana_rpc is not None:
            checks.append(HolderDistributionCheck(self._solana_rpc, weight=safety.weight_holders))
        if self._base_chain is not None:
            checks.append(
                BaseHolderDistributionCheck(
                    self._base_chain,
                    self._http,
                    base_url=providers.blockscout_url,
                    weight=safety.weight_holders,
                )
            )
        if self._base_chain is not None:
            checks.append(BaseLpLockCheck(self._base_chain, weight=safety.weight_lp_lock))
        if self._settings.solana.enabled:
            checks.append(
                RugCheckLpLockCheck(self._http, base_url=providers.rugcheck_url, weight=safety.weight_lp_lock)
            )
        if self._solana_rpc is not None:
            checks.append(
                CreatorTrustCheck(
                    self._solana_rpc,
                    scan_limit=safety.creator_scan_limit,
                    neutral_score=safety.neutral_score,
                    weight=safety.weight_creator,
                )
            )
        checks.append(MomentumCheck(max_assets=self._settings.cache.max_entries))
        checks.append(SocialSentimentCheck(self._metadata, weight=safety.weight_social))
        return checks

    def _build_transport(self) -> AlertTransport:
        telegram = self._settings.telegram
        bot_token, chat_id = telegram.bot_token, telegram.chat_id
        if self._dry_run or bot_token is None or chat_id is None or self._http is None:
            if not self._dry_run:
                logger.warning("No alert transport configured, alerts will only be logged")
            return LoggingTransport()
        return TelegramTransport(
            self._http,
            bot_token=bot_token.get_secret_value(),
            chat_id=chat_id,
            api_url=telegram.api_url,
        )

    def _build_adapters(self) -> dict[NetworkId, IngestionAdapter]:
        adapters: dict[NetworkId, IngestionAdapter] = {}
        settings = self._settings
        if settings.base.enabled and self._base_chain is not None:
            adapters[NetworkId.BASE] = BaseSwapStream(
                ws_url=settings.base.ws_url,
                chain=self._base_chain,
                on_event=self._submit_event,
            )
        if settings.solana.enabled and self._solana_rpc is not None:
            adapters[NetworkId.SOLANA] = SolanaSwapPoller(
                rpc=self._solana_rpc,
                programs=settings.solana.programs,
                on_event=self._submit_event,
                metadata=self._metadata,
                poll_interval_seconds=settings.solana.poll_interval_seconds,
                signature_limit=settings.solana.signature_limit,
                max_pages_per_scan=settings.solana.max_pages_per_scan,
                request_delay_seconds=settings.solana.request_delay_seconds,
                program_delay_seconds=settings.solana.program_delay_seconds,
                max_event_age_seconds=settings.solana.max_event_age_seconds,
                seen_cache_size=settings.solana.seen_cache_size,
            )
        return adapters

    async def _initialize_adapters(self) -> None:
        """Initialize each network's adapter; a failure only drops that network."""
        for network, adapter in self._build_adapters().items():
            try:
                await adapter.initialize()
            except FatalStartupError as e:
                self._stats.errors += 1
                self._stats.last_error = str(e)
                logger.error("%s", e)
                if self._queue and self._formatter:
                    self._queue.queue_alert(self._formatter.format_startup_failure(e.network, e.reason))
                continue
            self._adapters[network] = adapter
            logger.info("%s ingestion initialized", network.display_name)

    async def _start_background_services(self) -> None:
        """Start background services."""
        for network, adapter in self._adapters.items():
            logger.debug("Starting %s ingestion...", network.display_name)
            self._adapter_tasks[network] = asyncio.create_task(self._run_adapter(network, adapter))

        logger.debug("Starting housekeeping loop...")
        self._housekeeping_task = asyncio.create_task(self._run_housekeeping_loop())

    async def _run_adapter(self, network: NetworkId, adapter: IngestionAdapter) -> None:
        """Run one ingestion adapter in a task."""
        try:
            await adapter.run()
        except asyncio.CancelledError:
            logger.debug("%s ingestion task cancelled", network.display_name)
        except Exception as e:
            logger.error("%s ingestion error: %s", network.display_name, e)
            self._stats.last_error = str(e)
            self._stats.errors += 1

    async def _run_housekeeping_loop(self) -> None:
        if not self._stop_event or not self._housekeeper:
            return

        interval = self._settings.housekeeping.interval_seconds
        while not self._stop_event.is_set():
            try:
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                    break
                except TimeoutError:
                    pass

                await self._housekeeper.sweep()
                snapshot = await self.status_snapshot()
                logger.info("%s", snapshot.summary_line())
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.warning("Housekeeping loop error: %s", e)

    async def _stop_background_services(self) -> None:
        """Stop background services."""
        for network, adapter in self._adapters.items():
            logger.debug("Stopping %s ingestion...", network.display_name)
            await adapter.stop()

        for task in self._adapter_tasks.values():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._adapter_tasks.clear()

        if self._housekeeping_task:
            self._housekeeping_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._housekeeping_task
            self._housekeeping_task = None

        for task in list(self._event_tasks):
            task.cancel()
        if self._event_tasks:
            await asyncio.gather(*self._event_tasks, return_exceptions=True)

    async def _cleanup(self) -> None:
        """Clean up resources."""
        if self._queue:
            await self._queue.aclose(timeout=SHUTDOWN_FLUSH_SECONDS)

        if self._base_chain:
            await self._base_chain.aclose()
            self._base_chain = None

        if self._http:
            await self._http.aclose()
            self._http = None

        # Close Redis connection
        if self._redis:
            await self._redis.aclose()
            self._redis = None

        self._adapters.clear()
        logger.debug("Resources cleaned up")

    async def _submit_event(self, event: SwapEvent) -> None:
        """Adapter callback: process the event in its own task."""
        task = asyncio.create_task(self._handle_event(event))
        self._event_tasks.add(task)
        task.add_done_callback(self._event_tasks.discard)

    async def _handle_event(self, event: SwapEvent) -> None:
        try:
            await self._process_event(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._stats.errors += 1
            self._stats.last_error = str(e)
            logger.exception("Error processing event %s: %s", event.event_id, e)

    async def _process_event(self, event: SwapEvent) -> bool:
        """Run one event through the pipeline. Returns True if an alert was queued."""
        if (
            not self._classifier
            or not self._windows
            or not self._trigger
            or not self._cascade
            or not self._dedup
            or not self._serial_buyers
            or not self._formatter
            or not self._queue
        ):
            raise RuntimeError("Pipeline components are not initialized")

        counters = self._stats.network(event.network)
        self._stats.events_processed += 1
        self._stats.last_event_time = datetime.now(UTC)
        counters.events += 1
        if self._stats.events_processed % self._settings.housekeeping.status_every_events == 0:
            logger.info("%s", (await self.status_snapshot()).summary_line())

        buy = await self._classifier.classify(event)
        if buy is None:
            return False
        self._stats.qualifying_buys += 1
        counters.qualifying_buys += 1

        asset_id = buy.asset_id
        if await self._dedup.contains(asset_id):
            return False

        window = self._windows.record_buy(asset_id, buy.buyer, buy.usd_amount, self._clock())
        if self._serial_buyers.record(buy.buyer, asset_id) and self._settings.sniper.alerts_enabled:
            self._queue.queue_alert(
                self._formatter.format_serial_buyer(
                    event.network, buy.buyer, self._serial_buyers.asset_count(buy.buyer)
                )
            )

        decision = self._trigger.evaluate(buy.usd_amount, window.unique_buyers)
        if not decision.fired or decision.reason is None:
            return False
        self._stats.triggers += 1
        counters.triggers += 1
        logger.debug(
            "Trigger %s for %s (%d buyers, $%s)",
            decision.reason.value,
            asset_id,
            window.unique_buyers,
            window.total_volume_usd,
        )

        verdict = await self._cascade.evaluate(asset_id, event.network)
        if not verdict.passed or verdict.metadata is None:
            self._stats.suppressed += 1
            reason = verdict.failure.reason if verdict.failure else "no market data"
            logger.info("Suppressed %s on %s: %s", asset_id, event.network.display_name, reason)
            return False

        sniper_count = self._serial_buyers.sniper_count(self._windows.buyers(asset_id))
        alpha = scorer.assess(
            window.unique_buyers,
            verdict.metadata.liquidity_usd,
            verdict.metadata.market_cap_usd,
            sniper_count,
        )
        min_alpha = self._settings.safety.min_alpha_score
        if min_alpha and not scorer.should_alert(alpha.score, min_alpha):
            self._stats.suppressed += 1
            logger.info("Suppressed %s: alpha score %d below %d", asset_id, alpha.score, min_alpha)
            return False

        if not await self._dedup.try_mark(asset_id):
            logger.debug("Asset %s already alerted", asset_id)
            return False

        alert = WhaleAlert(
            buy=buy,
            window=window,
            reason=decision.reason,
            verdict=verdict,
            alpha=alpha,
            sniper_count=sniper_count,
        )
        self._queue.queue_alert(self._formatter.format(alert))
        self._stats.alerts_queued += 1
        counters.alerts_queued += 1
        logger.info(
            "Alert queued: %s %s (%s, safety=%.0f, alpha=%d)",
            event.network.display_name,
            asset_id,
            decision.reason.value,
            verdict.report.composite_score if verdict.report else 0.0,
            alpha.score,
        )
        return True

    async def status_snapshot(self) -> StatusSnapshot:
        """Current tracked/alerted/processed counts."""
        started = self._stats.started_at
        uptime = (datetime.now(UTC) - started).total_seconds() if started else 0.0
        return StatusSnapshot(
            tracked_assets=len(self._windows) if self._windows is not None else 0,
            alerted_assets=await self._dedup.size() if self._dedup is not None else 0,
            processed_events=self._stats.events_processed,
            qualifying_buys=self._stats.qualifying_buys,
            triggers=self._stats.triggers,
            suppressed=self._stats.suppressed,
            alerts_queued=self._stats.alerts_queued,
            errors=self._stats.errors,
            per_network={
                name: {
                    "events": c.events,
                    "qualifying_buys": c.qualifying_buys,
                    "triggers": c.triggers,
                    "alerts_queued": c.alerts_queued,
                }
                for name, c in self._stats.per_network.items()
            },
            uptime_seconds=uptime,
        )

    async def run(self) -> None:
        """Start the pipeline and run until interrupted.

        Example:
            ```python
            pipeline = Pipeline()
            try:
                await pipeline.run()
            except KeyboardInterrupt:
                pass
            ```
        """
        await self.start()

        try:
            if self._stop_event:
                await self._stop_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()

    def request_stop(self) -> None:
        """Signal ``run()`` to return. Safe to call from a signal handler."""
        if self._stop_event:
            self._stop_event.set()

    async def __aenter__(self) -> Pipeline:
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.stop()
