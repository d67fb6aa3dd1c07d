"""Deduplicated, time-ordered trade history.

A TradeHistory keeps its trades in an ordered array (descending timestamp)
with an id -> index map maintained alongside it. Histories are immutable:
merging produces a new instance and leaves the inputs untouched, so a history
handed to a consumer stays a consistent snapshot while polling continues.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator, Sequence
from typing import Any

from prediction_whale_tracker.ingestor.models import Trade

logger = logging.getLogger(__name__)


class HistoryFormatError(ValueError):
    """Raised when a serialized history cannot be parsed."""


class TradeHistory:
    """Immutable id-keyed collection of trades, newest first."""

    __slots__ = ("_trades", "_index")

    def __init__(self, trades: Iterable[Trade] = ()) -> None:
        """Build a history from trades in any order.

        Duplicate ids keep their first occurrence; the result is stably
        sorted by descending timestamp.
        """
        unique: list[Trade] = []
        seen: set[str] = set()
        for trade in trades:
            if trade.id in seen:
                continue
            seen.add(trade.id)
            unique.append(trade)

        unique.sort(key=lambda t: t.timestamp, reverse=True)
        self._trades: tuple[Trade, ...] = tuple(unique)
        self._index: dict[str, int] = {t.id: i for i, t in enumerate(self._trades)}

    @classmethod
    def empty(cls) -> TradeHistory:
        return cls()

    @property
    def trades(self) -> tuple[Trade, ...]:
        """Trades ordered by descending timestamp."""
        return self._trades

    def __len__(self) -> int:
        return len(self._trades)

    def __iter__(self) -> Iterator[Trade]:
        return iter(self._trades)

    def __contains__(self, trade_id: object) -> bool:
        return trade_id in self._index

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TradeHistory):
            return NotImplemented
        return self._trades == other._trades

    def __hash__(self) -> int:
        return hash(self._trades)

    def __repr__(self) -> str:
        return f"TradeHistory(trades={len(self._trades)})"

    def get(self, trade_id: str) -> Trade | None:
        index = self._index.get(trade_id)
        return self._trades[index] if index is not None else None

    def merge(self, incoming: Sequence[Trade]) -> TradeHistory:
        """Return a new history with ``incoming`` merged in."""
        return merge_trades(self, incoming)

    def new_trades(self, incoming: Iterable[Trade]) -> list[Trade]:
        """Return the trades of ``incoming`` whose ids are not yet present."""
        result: list[Trade] = []
        seen: set[str] = set()
        for trade in incoming:
            if trade.id in self._index or trade.id in seen:
                continue
            seen.add(trade.id)
            result.append(trade)
        return result

    def to_json(self) -> str:
        """Serialize to the JSON array stored in a history slot."""
        return json.dumps([t.to_dict() for t in self._trades])

    @classmethod
    def from_json(cls, raw: str | bytes) -> TradeHistory:
        """Parse a stored JSON array.

        Individual malformed records are skipped with a warning; a blob that
        is not a JSON array raises HistoryFormatError.
        """
        try:
            data: Any = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise HistoryFormatError(f"Stored history is not valid JSON: {e}") from e
        if not isinstance(data, list):
            raise HistoryFormatError(
                f"Stored history must be a JSON array, got {type(data).__name__}"
            )

        trades: list[Trade] = []
        for item in data:
            if not isinstance(item, dict):
                logger.warning("Skipping non-object entry in stored history")
                continue
            try:
                trades.append(Trade.from_dict(item))
            except ValueError as e:
                logger.warning("Skipping malformed stored trade: %s", e)
        return cls(trades)


def merge_trades(existing: TradeHistory, incoming: Sequence[Trade]) -> TradeHistory:
    """Merge newly fetched trades into an existing history.

    - An id already present in ``existing`` keeps the existing record; the
      incoming duplicate is discarded.
    - New trades are placed before existing ones, then everything is stably
      re-sorted by descending timestamp, so ties list new trades first.
    - ``existing`` is not modified.

    Merging the same batch twice yields an equal history.
    """
    added = existing.new_trades(incoming)
    if not added:
        return existing
    return TradeHistory([*added, *existing.trades])
