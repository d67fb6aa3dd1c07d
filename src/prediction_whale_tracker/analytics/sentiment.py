"""Market-level and overall buy/sell sentiment."""

from __future__ import annotations

import time
from collections.abc import Iterable

from prediction_whale_tracker.analytics.models import (
    MarketSentiment,
    MarketStats,
    SentimentSummary,
    TimeWindow,
)
from prediction_whale_tracker.ingestor.models import Trade

DEFAULT_TOP_MARKETS_LIMIT = 10


def filter_by_window(
    trades: Iterable[Trade],
    window: TimeWindow,
    *,
    now: int | None = None,
) -> list[Trade]:
    """Keep trades with ``timestamp >= now - window`` (all trades for ``all``)."""
    if window is TimeWindow.ALL:
        return list(trades)
    current = int(time.time()) if now is None else now
    return [t for t in trades if window.contains(t, current)]


def compute_market_stats(
    trades: Iterable[Trade],
    window: TimeWindow = TimeWindow.DAY,
    *,
    now: int | None = None,
    limit: int = DEFAULT_TOP_MARKETS_LIMIT,
) -> list[MarketStats]:
    """Aggregate flow per market and return the top markets by volume.

    Markets are keyed by title. The slug is taken from the first trade seen
    for that market.
    """
    by_market: dict[str, MarketStats] = {}
    makers: dict[str, set[str]] = {}

    for trade in filter_by_window(trades, window, now=now):
        stats = by_market.get(trade.market)
        if stats is None:
            stats = MarketStats(market=trade.market, slug=trade.slug)
            by_market[trade.market] = stats
            makers[trade.market] = set()

        stats.total_volume += trade.amount
        stats.trade_count += 1
        if trade.is_buy:
            stats.buy_volume += trade.amount
        else:
            stats.sell_volume += trade.amount
        makers[trade.market].add(trade.maker_address.lower())

    for market, stats in by_market.items():
        stats.whale_count = len(makers[market])

    ranked = sorted(by_market.values(), key=lambda s: s.total_volume, reverse=True)
    return ranked[:limit]


def compute_overall_sentiment(
    trades: Iterable[Trade],
    window: TimeWindow = TimeWindow.DAY,
    *,
    now: int | None = None,
) -> SentimentSummary:
    """Total, buy and sell volume across every trade in the window."""
    return SentimentSummary.from_trades(filter_by_window(trades, window, now=now))


def compute_market_sentiment(
    trades: Iterable[Trade],
    window: TimeWindow = TimeWindow.DAY,
    *,
    now: int | None = None,
    limit: int = DEFAULT_TOP_MARKETS_LIMIT,
) -> MarketSentiment:
    """Overall sentiment plus the top ``limit`` markets for one window."""
    current = int(time.time()) if now is None else now
    # Materialize once so both aggregations see the same trade set.
    windowed = filter_by_window(trades, window, now=current)
    return MarketSentiment(
        time_window=window,
        overall=SentimentSummary.from_trades(windowed),
        top_markets=tuple(compute_market_stats(windowed, TimeWindow.ALL, limit=limit)),
    )
