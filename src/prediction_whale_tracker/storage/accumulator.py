"""Persisted per-platform trade accumulation.

Each platform owns one Redis slot holding its serialized TradeHistory. Every
merge is written back to the slot; reads and writes are best-effort so a
broken or unreachable store degrades to "no prior history" instead of
stopping the poller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from redis.asyncio import Redis

from prediction_whale_tracker.ingestor.models import Platform, Trade
from prediction_whale_tracker.storage.history import HistoryFormatError, TradeHistory

logger = logging.getLogger(__name__)

# One durable slot per platform.
STORAGE_KEYS: dict[Platform, str] = {
    Platform.POLYMARKET: "polymarket_trades",
    Platform.KALSHI: "kalshi_trades",
}


class TradeAccumulator:
    """Merges polled trades into a platform's persisted history.

    Merges for one platform are serialized by an internal lock; each merge
    treats the current history as an immutable snapshot and swaps in the new
    one, so readers never observe a half-merged state.

    Example:
        ```python
        redis = Redis.from_url("redis://localhost:6379")
        accumulator = TradeAccumulator(redis, Platform.POLYMARKET)

        await accumulator.load()
        history, added = await accumulator.merge(trades)
        ```
    """

    def __init__(
        self,
        redis: Redis,
        platform: Platform,
        *,
        key_prefix: str = "",
    ) -> None:
        """Initialize the accumulator.

        Args:
            redis: Redis async client used as the key-value store.
            platform: Platform whose slot this accumulator owns.
            key_prefix: Optional namespace prepended to the slot name.
        """
        self._redis = redis
        self._platform = platform
        self._key = f"{key_prefix}{STORAGE_KEYS[platform]}"
        self._history = TradeHistory.empty()
        self._lock = asyncio.Lock()

    @property
    def platform(self) -> Platform:
        return self._platform

    @property
    def key(self) -> str:
        """Storage slot name."""
        return self._key

    @property
    def history(self) -> TradeHistory:
        """Current accumulated history snapshot."""
        return self._history

    async def load(self) -> TradeHistory:
        """Load the persisted history into memory.

        A missing key, a read failure, or an unparsable blob all yield an
        empty history.
        """
        async with self._lock:
            self._history = await self._read()
            logger.info(
                "Loaded %d accumulated %s trades from %s",
                len(self._history),
                self._platform.value,
                self._key,
            )
            return self._history

    async def merge(self, incoming: Sequence[Trade]) -> tuple[TradeHistory, list[Trade]]:
        """Merge a batch into the history and persist the result.

        Args:
            incoming: Newly fetched trades, newest first.

        Returns:
            The merged history (the previous snapshot if nothing was new) and
            the trades of ``incoming`` that it added.
        """
        async with self._lock:
            added = self._history.new_trades(incoming)
            if not added:
                return self._history, []
            merged = self._history.merge(added)
            self._history = merged
            await self._write(merged)
            return merged, added

    async def reset(self) -> None:
        """Drop the accumulated history and its stored slot."""
        async with self._lock:
            self._history = TradeHistory.empty()
            try:
                await self._redis.delete(self._key)
            except Exception as e:
                logger.warning("Failed to clear stored history %s: %s", self._key, e)
            logger.info("Reset accumulated %s trades", self._platform.value)

    async def _read(self) -> TradeHistory:
        try:
            raw = await self._redis.get(self._key)
        except Exception as e:
            logger.warning("Failed to read stored history %s: %s", self._key, e)
            return TradeHistory.empty()

        if not raw:
            return TradeHistory.empty()

        try:
            return TradeHistory.from_json(raw)
        except HistoryFormatError as e:
            logger.warning("Discarding unreadable stored history %s: %s", self._key, e)
            return TradeHistory.empty()

    async def _write(self, history: TradeHistory) -> None:
        try:
            await self._redis.set(self._key, history.to_json())
        except Exception as e:
            logger.warning("Failed to persist history %s: %s", self._key, e)
