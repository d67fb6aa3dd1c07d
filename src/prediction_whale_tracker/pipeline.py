"""Main pipeline orchestrator for the Prediction Whale Tracker.

This module provides the Pipeline class that wires Redis, the HTTP client,
the per-platform accumulators and pollers together, and exposes the query
surface used by the presentation layer.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from redis.asyncio import Redis

from prediction_whale_tracker.analytics.categories import CategoryClassifier
from prediction_whale_tracker.analytics.models import (
    MarketSentiment,
    TimeWindow,
    TopWallets,
    WalletStats,
)
from prediction_whale_tracker.analytics.sentiment import compute_market_sentiment
from prediction_whale_tracker.analytics.view import Page, TradeFilters, paginate, validate_threshold
from prediction_whale_tracker.analytics.wallet import compute_top_wallets, compute_wallet_stats
from prediction_whale_tracker.config import Settings, get_settings
from prediction_whale_tracker.ingestor.api_client import PredictionMarketClient
from prediction_whale_tracker.ingestor.models import ANONYMOUS_MAKER, Platform, Trade
from prediction_whale_tracker.ingestor.poller import Fetcher, HistoryCallback, TradePoller
from prediction_whale_tracker.storage.accumulator import TradeAccumulator
from prediction_whale_tracker.storage.history import TradeHistory

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    """Pipeline lifecycle states."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


@dataclass
class PipelineStats:
    """Statistics for the pipeline."""

    started_at: datetime | None = None
    history_updates: int = 0
    trades_added: int = 0
    threshold_resets: int = 0
    last_update_time: datetime | None = None
    last_error: str | None = None


class Pipeline:
    """Main pipeline orchestrator for the Prediction Whale Tracker.

    Pipeline flow:
        API client → Normalizer → Classifier → Accumulator → Subscribers / queries

    Example:
        ```python
        from prediction_whale_tracker.config import get_settings
        from prediction_whale_tracker.pipeline import Pipeline

        pipeline = Pipeline(get_settings())
        await pipeline.start()

        page = pipeline.get_trades("polymarket", page=1)
        sentiment = pipeline.get_market_sentiment("24h")

        await pipeline.stop()
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        redis: Redis | None = None,
        client: PredictionMarketClient | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Application settings. If not provided, uses get_settings().
            redis: Optional Redis client; created from settings when omitted.
            client: Optional HTTP client; created from settings when omitted.
        """
        self._settings = settings or get_settings()
        self._redis = redis
        self._client = client
        self._owns_redis = redis is None
        self._owns_client = client is None

        self._state = PipelineState.STOPPED
        self._stats = PipelineStats()
        self._min_amount = Decimal(self._settings.poller.min_amount_usd)

        self._classifier = CategoryClassifier()
        self._accumulators: dict[Platform, TradeAccumulator] = {}
        self._pollers: dict[Platform, TradePoller] = {}
        self._subscribers: list[HistoryCallback] = []

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
    def platforms(self) -> tuple[Platform, ...]:
        """Platforms polled with the current settings."""
        if self._settings.kalshi.enabled:
            return (Platform.POLYMARKET, Platform.KALSHI)
        return (Platform.POLYMARKET,)

    @property
    def min_amount(self) -> Decimal:
        """Whale threshold applied before accumulation."""
        return self._min_amount

    async def start(self) -> None:
        """Start the pipeline.

        Raises:
            RuntimeError: If pipeline is already running.
            Exception: If any component fails to initialize.
        """
        if self._state != PipelineState.STOPPED:
            raise RuntimeError(f"Cannot start pipeline in state {self._state}")

        self._state = PipelineState.STARTING
        logger.info("Starting pipeline...")

        try:
            self._initialize_components()
            await asyncio.gather(*(poller.start() for poller in self._pollers.values()))
            self._stats.started_at = datetime.now(UTC)
            self._state = PipelineState.RUNNING
            logger.info("Pipeline started successfully")
        except Exception as e:
            self._state = PipelineState.ERROR
            self._stats.last_error = str(e)
            logger.error("Failed to start pipeline: %s", e)
            await self._stop_pollers()
            await self._cleanup()
            raise

    async def stop(self) -> None:
        """Stop the pipeline gracefully."""
        if self._state == PipelineState.STOPPED:
            return

        self._state = PipelineState.STOPPING
        logger.info("Stopping pipeline...")

        await self._stop_pollers()
        await self._cleanup()

        self._state = PipelineState.STOPPED
        logger.info("Pipeline stopped")

    def _initialize_components(self) -> None:
        """Initialize all pipeline components."""
        settings = self._settings

        if self._redis is None:
            logger.debug("Initializing Redis connection...")
            self._redis = Redis.from_url(settings.redis.url)

        if self._client is None:
            logger.debug("Initializing API client...")
            self._client = PredictionMarketClient(
                polymarket_url=settings.polymarket.data_api_url,
                kalshi_url=settings.kalshi.api_url,
                timeout_seconds=settings.http.timeout_seconds,
                max_retries=settings.http.max_retries,
                requests_per_second=settings.http.requests_per_second,
            )

        for platform in self.platforms:
            accumulator = TradeAccumulator(
                self._redis,
                platform,
                key_prefix=settings.redis.key_prefix,
            )
            poller = TradePoller(
                platform,
                fetch=self._build_fetcher(platform),
                accumulator=accumulator,
                classifier=self._classifier,
                interval_seconds=settings.poller.interval_seconds,
                max_trades_per_poll=settings.poller.max_trades_per_poll,
                min_amount=self._min_amount,
            )
            poller.subscribe(self._on_history)
            self._accumulators[platform] = accumulator
            self._pollers[platform] = poller

        logger.info(
            "All components initialized (platforms=%s)",
            ", ".join(p.value for p in self.platforms),
        )

    def _build_fetcher(self, platform: Platform) -> Fetcher:
        if self._client is None:
            raise RuntimeError("API client must be initialized before pollers")
        if platform is Platform.POLYMARKET:
            return functools.partial(
                self._client.fetch_polymarket_trades,
                limit=self._settings.polymarket.trades_limit,
            )
        return functools.partial(
            self._client.fetch_kalshi_markets,
            limit=self._settings.kalshi.markets_limit,
            status=self._settings.kalshi.market_status,
        )

    async def _stop_pollers(self) -> None:
        results = await asyncio.gather(
            *(poller.stop() for poller in self._pollers.values()),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.warning("Error stopping poller: %s", result)

    async def _cleanup(self) -> None:
        """Release owned connections."""
        if self._client is not None and self._owns_client:
            try:
                await self._client.close()
            except Exception as e:
                logger.warning("Error closing API client: %s", e)
            self._client = None

        if self._redis is not None and self._owns_redis:
            try:
                await self._redis.aclose()
            except Exception as e:
                logger.warning("Error closing Redis connection: %s", e)
            self._redis = None

        self._pollers.clear()

    async def _on_history(
        self,
        platform: Platform,
        history: TradeHistory,
        added: list[Trade],
    ) -> None:
        self._stats.history_updates += 1
        self._stats.trades_added += len(added)
        self._stats.last_update_time = datetime.now(UTC)

        for callback in self._subscribers:
            try:
                result = callback(platform, history, added)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning("Pipeline subscriber failed: %s", e)

    def subscribe(self, callback: HistoryCallback) -> None:
        """Register a consumer notified after every platform poll."""
        self._subscribers.append(callback)

    async def poll_now(self) -> dict[Platform, list[Trade]]:
        """Poll every platform immediately, outside the regular schedule."""
        results = await asyncio.gather(*(p.poll_once() for p in self._pollers.values()))
        return dict(zip(self._pollers.keys(), results, strict=True))

    async def set_min_amount(self, amount: int | Decimal) -> bool:
        """Change the accumulation threshold.

        Accumulated histories were filtered with the previous threshold, so a
        change clears every platform's accumulation.

        Args:
            amount: One of the supported threshold tiers.

        Returns:
            True if the threshold changed and histories were reset.

        Raises:
            ValueError: If ``amount`` is not a supported tier.
        """
        new_amount = validate_threshold(amount)
        if new_amount == self._min_amount:
            return False

        logger.info("Whale threshold changed %s -> %s; resetting accumulation", self._min_amount, new_amount)
        self._min_amount = new_amount
        for poller in self._pollers.values():
            poller.min_amount = new_amount
        await asyncio.gather(*(acc.reset() for acc in self._accumulators.values()))
        self._stats.threshold_resets += 1
        return True

    def history(self, platform: Platform | str) -> TradeHistory:
        """Accumulated history for one platform."""
        accumulator = self._accumulators.get(Platform.parse(platform))
        return accumulator.history if accumulator else TradeHistory.empty()

    def _trades_for(self, platform: Platform | str | None) -> list[Trade]:
        if platform is not None:
            return list(self.history(platform))
        trades: list[Trade] = []
        for accumulator in self._accumulators.values():
            trades.extend(accumulator.history)
        return trades

    def get_trades(
        self,
        platform: Platform | str,
        filters: TradeFilters | None = None,
        page: int = 1,
        *,
        page_size: int | None = None,
        now: int | None = None,
    ) -> Page:
        """Filtered, paginated whale trades for one platform."""
        return paginate(
            self.history(platform),
            filters or TradeFilters(),
            page_size or self._settings.view.page_size,
            page,
            now=now,
        )

    def get_wallet_stats(self, address: str) -> WalletStats | None:
        """Statistics for a maker address across all platforms, or None."""
        if not address or address.lower() == ANONYMOUS_MAKER.lower():
            return None
        return compute_wallet_stats(address, self._trades_for(None))

    def get_market_sentiment(
        self,
        time_window: TimeWindow | str = TimeWindow.DAY,
        platform: Platform | str | None = None,
        *,
        now: int | None = None,
    ) -> MarketSentiment:
        """Overall sentiment and top-10 markets within a time window."""
        return compute_market_sentiment(
            self._trades_for(platform),
            TimeWindow.parse(time_window),
            now=now,
        )

    def get_top_wallets(
        self,
        limit: int = 10,
        platform: Platform | str | None = None,
    ) -> TopWallets:
        """Wallet rankings over the accumulated trades."""
        return compute_top_wallets(self._trades_for(platform), limit=limit)
