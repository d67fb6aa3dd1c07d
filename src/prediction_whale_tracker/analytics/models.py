"""Data models for derived trade analytics."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from prediction_whale_tracker.ingestor.models import Trade

# Buy pressure reported when there is no volume to divide by.
NEUTRAL_BUY_PRESSURE = 50.0


class TimeWindow(str, Enum):
    """Look-back windows offered for filtering and sentiment."""

    HOUR = "1h"
    DAY = "24h"
    WEEK = "7d"
    ALL = "all"

    @property
    def seconds(self) -> int | None:
        """Window length in seconds, or None for ``all``."""
        return _WINDOW_SECONDS[self]

    def cutoff(self, now: int) -> int | None:
        """Earliest timestamp inside the window, or None for ``all``."""
        seconds = self.seconds
        return None if seconds is None else now - seconds

    def contains(self, trade: Trade, now: int) -> bool:
        cutoff = self.cutoff(now)
        return cutoff is None or trade.timestamp >= cutoff

    @classmethod
    def parse(cls, value: str | TimeWindow) -> TimeWindow:
        if isinstance(value, TimeWindow):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown time window: {value!r}") from None


_WINDOW_SECONDS: dict[TimeWindow, int | None] = {
    TimeWindow.HOUR: 3600,
    TimeWindow.DAY: 86_400,
    TimeWindow.WEEK: 604_800,
    TimeWindow.ALL: None,
}


def buy_pressure(buy_volume: Decimal, total_volume: Decimal) -> float:
    """Percentage of volume on the buy side; neutral (50) with no volume."""
    if total_volume <= 0:
        return NEUTRAL_BUY_PRESSURE
    return float(buy_volume / total_volume * 100)


def percentage(part: Decimal, whole: Decimal) -> float:
    """``part`` as a percentage of ``whole``; 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0.0
    return float(part / whole * 100)


@dataclass(frozen=True)
class WalletStats:
    """Aggregate trading profile of a single maker address.

    Attributes:
        address: The address as queried.
        total_trades: Number of matching trades.
        total_volume: Summed USD amount.
        average_trade_size: total_volume / total_trades.
        buy_count: Number of BUY trades.
        sell_count: Number of SELL trades.
        buy_volume: Summed BUY amount.
        sell_volume: Summed SELL amount.
        favorite_category: Category with the largest volume.
        category_distribution: Category -> summed amount.
        recent_trades: Up to 20 most recent trades, newest first.
        first_trade_time: ISO time of the earliest trade.
        last_trade_time: ISO time of the latest trade.
        trading_days: Inclusive count of UTC days spanned (at least 1).
        average_trades_per_day: total_trades / trading_days.
    """

    address: str
    total_trades: int
    total_volume: Decimal
    average_trade_size: Decimal
    buy_count: int
    sell_count: int
    buy_volume: Decimal
    sell_volume: Decimal
    favorite_category: str
    category_distribution: dict[str, Decimal]
    recent_trades: tuple[Trade, ...]
    first_trade_time: str
    last_trade_time: str
    trading_days: int
    average_trades_per_day: float

    @property
    def net_flow(self) -> Decimal:
        return self.buy_volume - self.sell_volume

    @property
    def buy_pressure(self) -> float:
        return buy_pressure(self.buy_volume, self.total_volume)

    def category_percentages(self) -> dict[str, float]:
        """Share of volume per category, in percent."""
        total = sum(self.category_distribution.values(), Decimal(0))
        return {
            category: percentage(volume, total)
            for category, volume in self.category_distribution.items()
        }


@dataclass
class MarketStats:
    """Buy/sell flow for one market within a time window."""

    market: str
    slug: str
    total_volume: Decimal = Decimal(0)
    buy_volume: Decimal = Decimal(0)
    sell_volume: Decimal = Decimal(0)
    trade_count: int = 0
    whale_count: int = 0  # distinct makers, case-insensitive

    @property
    def net_flow(self) -> Decimal:
        return self.buy_volume - self.sell_volume

    @property
    def buy_pressure(self) -> float:
        return buy_pressure(self.buy_volume, self.total_volume)


@dataclass(frozen=True)
class SentimentSummary:
    """Overall buy/sell balance across a trade set."""

    total_volume: Decimal
    buy_volume: Decimal
    sell_volume: Decimal
    trade_count: int

    @property
    def net_flow(self) -> Decimal:
        return self.buy_volume - self.sell_volume

    @property
    def buy_pressure(self) -> float:
        return buy_pressure(self.buy_volume, self.total_volume)

    @classmethod
    def from_trades(cls, trades: Iterable[Trade]) -> SentimentSummary:
        buy = Decimal(0)
        sell = Decimal(0)
        count = 0
        for trade in trades:
            count += 1
            if trade.is_buy:
                buy += trade.amount
            else:
                sell += trade.amount
        return cls(total_volume=buy + sell, buy_volume=buy, sell_volume=sell, trade_count=count)


@dataclass(frozen=True)
class MarketSentiment:
    """Overall sentiment plus the top markets by volume."""

    time_window: TimeWindow
    overall: SentimentSummary
    top_markets: tuple[MarketStats, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class TopWallets:
    """Wallet rankings by volume, trade count, and average size."""

    by_volume: tuple[WalletStats, ...]
    by_trades: tuple[WalletStats, ...]
    by_average_size: tuple[WalletStats, ...]
