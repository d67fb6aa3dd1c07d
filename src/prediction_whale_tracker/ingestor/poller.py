"""Periodic per-platform trade poller.

Each poller runs Poll -> Normalize -> Classify -> Filter -> Accumulate on a
fixed interval and publishes the merged history to its subscribers. A failed
poll contributes no trades for that cycle; the accumulated history stays valid
and the next tick retries.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from prediction_whale_tracker.analytics.categories import CategoryClassifier
from prediction_whale_tracker.formatter import format_trade_line
from prediction_whale_tracker.ingestor.api_client import ApiClientError
from prediction_whale_tracker.ingestor.models import Platform, Trade
from prediction_whale_tracker.ingestor.normalizer import normalize_batch
from prediction_whale_tracker.storage.accumulator import TradeAccumulator
from prediction_whale_tracker.storage.history import TradeHistory

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_POLL_INTERVAL_SECONDS = 30
DEFAULT_MAX_TRADES_PER_POLL = 50
DEFAULT_MIN_AMOUNT = Decimal("1000")


class PollState(str, Enum):
    """State of a platform poller."""

    STOPPED = "stopped"
    STARTING = "starting"
    POLLING = "polling"
    IDLE = "idle"
    STOPPING = "stopping"
    ERROR = "error"


@dataclass
class PollStats:
    """Statistics for one platform's polling."""

    total_polls: int = 0
    successful_polls: int = 0
    failed_polls: int = 0
    trades_fetched: int = 0
    trades_added: int = 0
    last_poll_time: datetime | None = None
    last_poll_duration_seconds: float = 0.0
    last_error: str | None = None


# Type aliases for callbacks
Fetcher = Callable[[], Awaitable[Any]]
StateCallback = Callable[[PollState], None]
HistoryCallback = Callable[[Platform, TradeHistory, list[Trade]], Awaitable[None] | None]


class TradePoller:
    """Background service that polls one platform and accumulates whales.

    Example:
        ```python
        poller = TradePoller(
            Platform.POLYMARKET,
            fetch=lambda: client.fetch_polymarket_trades(limit=200),
            accumulator=TradeAccumulator(redis, Platform.POLYMARKET),
            classifier=CategoryClassifier(),
        )
        poller.subscribe(on_history)
        await poller.start()
        ...
        await poller.stop()
        ```
    """

    def __init__(
        self,
        platform: Platform,
        *,
        fetch: Fetcher,
        accumulator: TradeAccumulator,
        classifier: CategoryClassifier,
        interval_seconds: int = DEFAULT_POLL_INTERVAL_SECONDS,
        max_trades_per_poll: int = DEFAULT_MAX_TRADES_PER_POLL,
        min_amount: Decimal = DEFAULT_MIN_AMOUNT,
        on_state_change: StateCallback | None = None,
    ) -> None:
        """Initialize the poller.

        Args:
            platform: Platform being polled.
            fetch: Coroutine factory returning the raw poll response.
            accumulator: Accumulator owning the platform's history slot.
            classifier: Category classifier used to tag trades.
            interval_seconds: Seconds between polls (default: 30).
            max_trades_per_poll: Cap on whale trades merged per poll.
            min_amount: Whale threshold applied before accumulation.
            on_state_change: Callback for state changes.
        """
        self._platform = platform
        self._fetch = fetch
        self._accumulator = accumulator
        self._classifier = classifier
        self._interval = interval_seconds
        self._max_trades_per_poll = max_trades_per_poll
        self._min_amount = min_amount
        self._on_state_change = on_state_change
        self._subscribers: list[HistoryCallback] = []

        self._state = PollState.STOPPED
        self._stats = PollStats()
        self._poll_task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

        if platform is Platform.KALSHI:
            logger.warning(
                "Kalshi exposes no public taker side; synthesized Kalshi trades are "
                "labelled BUY with side_inferred=True and should not be read as buy flow"
            )

    @property
    def platform(self) -> Platform:
        return self._platform

    @property
    def state(self) -> PollState:
        """Current poll state."""
        return self._state

    @property
    def stats(self) -> PollStats:
        """Current poll statistics."""
        return self._stats

    @property
    def history(self) -> TradeHistory:
        """Latest accumulated history for this platform."""
        return self._accumulator.history

    @property
    def min_amount(self) -> Decimal:
        return self._min_amount

    @min_amount.setter
    def min_amount(self, value: Decimal) -> None:
        self._min_amount = value

    def subscribe(self, callback: HistoryCallback) -> None:
        """Register a consumer notified with the history after each poll."""
        self._subscribers.append(callback)

    def _set_state(self, new_state: PollState) -> None:
        """Update state and notify callback."""
        old_state = self._state
        self._state = new_state
        if self._on_state_change and old_state != new_state:
            try:
                self._on_state_change(new_state)
            except Exception as e:
                logger.warning("State change callback failed: %s", e)

    async def start(self) -> None:
        """Load the stored history, poll once, then poll periodically.

        A failing first poll is not fatal; the stored history is served until
        a later poll succeeds.
        """
        if self._state != PollState.STOPPED:
            logger.warning("Cannot start %s poller: already in state %s", self._platform.value, self._state)
            return

        self._set_state(PollState.STARTING)
        self._stop_event.clear()

        await self._accumulator.load()
        await self.poll_once()

        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info("%s poller started (interval=%ds)", self._platform.value, self._interval)

    async def stop(self) -> None:
        """Stop the background poll loop."""
        if self._state == PollState.STOPPED:
            return

        self._set_state(PollState.STOPPING)
        self._stop_event.set()

        if self._poll_task:
            self._poll_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._poll_task
            self._poll_task = None

        self._set_state(PollState.STOPPED)
        logger.info("%s poller stopped", self._platform.value)

    async def _poll_loop(self) -> None:
        """Background loop that polls on a fixed interval."""
        while not self._stop_event.is_set():
            try:
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
                    break
                except TimeoutError:
                    pass

                if self._stop_event.is_set():
                    break

                await self.poll_once()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("%s poll loop error: %s", self._platform.value, e)
                self._stats.failed_polls += 1
                self._stats.last_error = str(e)
                self._set_state(PollState.ERROR)
                # Keep running; the next interval retries.

    async def poll_once(self) -> list[Trade]:
        """Run one poll cycle.

        Returns:
            Trades added to the history by this poll (empty on failure).
        """
        self._set_state(PollState.POLLING)
        start_time = datetime.now(UTC)
        self._stats.total_polls += 1

        try:
            payload = await self._fetch()
        except ApiClientError as e:
            self._stats.failed_polls += 1
            self._stats.last_error = str(e)
            self._set_state(PollState.ERROR)
            logger.error("%s poll failed, keeping previous history: %s", self._platform.value, e)
            return []

        trades = self._classifier.tag_all(normalize_batch(self._platform, payload))
        whales = [t for t in trades if t.amount >= self._min_amount][: self._max_trades_per_poll]

        history, added = await self._accumulator.merge(whales)

        end_time = datetime.now(UTC)
        self._stats.successful_polls += 1
        self._stats.trades_fetched += len(trades)
        self._stats.trades_added += len(added)
        self._stats.last_poll_time = end_time
        self._stats.last_poll_duration_seconds = (end_time - start_time).total_seconds()
        self._stats.last_error = None
        self._set_state(PollState.IDLE)

        logger.info(
            "%s poll: %d trades, %d whales, %d new (history=%d)",
            self._platform.value,
            len(trades),
            len(whales),
            len(added),
            len(history),
        )
        for trade in added:
            logger.debug("New whale trade: %s", format_trade_line(trade))

        await self._publish(history, added)
        return added

    async def _publish(self, history: TradeHistory, added: list[Trade]) -> None:
        for callback in self._subscribers:
            try:
                result = callback(self._platform, history, added)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning("%s history subscriber failed: %s", self._platform.value, e)
