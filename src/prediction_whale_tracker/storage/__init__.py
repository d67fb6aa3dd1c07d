"""Storage layer - Trade history and persisted accumulation."""

from prediction_whale_tracker.storage.accumulator import STORAGE_KEYS, TradeAccumulator
from prediction_whale_tracker.storage.history import (
    HistoryFormatError,
    TradeHistory,
    merge_trades,
)

__all__ = [
    "HistoryFormatError",
    "STORAGE_KEYS",
    "TradeAccumulator",
    "TradeHistory",
    "merge_trades",
]
