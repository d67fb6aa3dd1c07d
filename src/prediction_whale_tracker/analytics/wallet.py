"""Per-wallet trading statistics."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from prediction_whale_tracker.analytics.categories import CATEGORY_OTHER
from prediction_whale_tracker.analytics.models import TopWallets, WalletStats
from prediction_whale_tracker.ingestor.models import ANONYMOUS_MAKER, Trade

RECENT_TRADES_LIMIT = 20
DEFAULT_TOP_WALLETS_LIMIT = 10
SECONDS_PER_DAY = 86_400


def _trading_days(first_ts: int, last_ts: int) -> int:
    # Inclusive count of UTC calendar days between the first and last trade.
    return max(1, last_ts // SECONDS_PER_DAY - first_ts // SECONDS_PER_DAY + 1)


def _favorite_category(distribution: dict[str, Decimal]) -> str:
    favorite = CATEGORY_OTHER
    max_volume = Decimal(0)
    for category, volume in distribution.items():
        if volume > max_volume:
            max_volume = volume
            favorite = category
    return favorite


def _stats_for(address: str, wallet_trades: list[Trade]) -> WalletStats:
    # Oldest first; sort is stable so equal timestamps keep history order.
    ordered = sorted(wallet_trades, key=lambda t: t.timestamp)

    total_trades = len(ordered)
    buy_count = sell_count = 0
    buy_volume = sell_volume = Decimal(0)
    distribution: dict[str, Decimal] = {}

    for trade in ordered:
        if trade.is_buy:
            buy_count += 1
            buy_volume += trade.amount
        else:
            sell_count += 1
            sell_volume += trade.amount
        category = trade.category or CATEGORY_OTHER
        distribution[category] = distribution.get(category, Decimal(0)) + trade.amount

    total_volume = buy_volume + sell_volume
    first, last = ordered[0], ordered[-1]
    trading_days = _trading_days(first.timestamp, last.timestamp)

    return WalletStats(
        address=address,
        total_trades=total_trades,
        total_volume=total_volume,
        average_trade_size=total_volume / total_trades,
        buy_count=buy_count,
        sell_count=sell_count,
        buy_volume=buy_volume,
        sell_volume=sell_volume,
        favorite_category=_favorite_category(distribution),
        category_distribution=distribution,
        recent_trades=tuple(reversed(ordered[-RECENT_TRADES_LIMIT:])),
        first_trade_time=first.time,
        last_trade_time=last.time,
        trading_days=trading_days,
        average_trades_per_day=total_trades / trading_days,
    )


def compute_wallet_stats(address: str, trades: Iterable[Trade]) -> WalletStats | None:
    """Compute statistics for one maker address.

    Args:
        address: Maker address, matched case-insensitively.
        trades: Trade set to search (not modified).

    Returns:
        WalletStats, or None when no trade belongs to the address.
    """
    wallet_trades = [t for t in trades if t.maker_matches(address)]
    if not wallet_trades:
        return None
    return _stats_for(address, wallet_trades)


def compute_top_wallets(
    trades: Iterable[Trade],
    limit: int = DEFAULT_TOP_WALLETS_LIMIT,
) -> TopWallets:
    """Rank wallets by volume, trade count, and average trade size.

    Trades from sources without a wallet concept are excluded.
    """
    by_address: dict[str, list[Trade]] = {}
    for trade in trades:
        if trade.maker_address == ANONYMOUS_MAKER:
            continue
        by_address.setdefault(trade.maker_address.lower(), []).append(trade)

    all_stats = [_stats_for(address, group) for address, group in by_address.items()]

    return TopWallets(
        by_volume=tuple(sorted(all_stats, key=lambda s: s.total_volume, reverse=True)[:limit]),
        by_trades=tuple(sorted(all_stats, key=lambda s: s.total_trades, reverse=True)[:limit]),
        by_average_size=tuple(
            sorted(all_stats, key=lambda s: s.average_trade_size, reverse=True)[:limit]
        ),
    )
