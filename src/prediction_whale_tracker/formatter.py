"""Display formatting for trades and amounts.

Used for log lines and by presentation consumers of the query surface.
"""

from __future__ import annotations

import time
from decimal import ROUND_HALF_UP, Decimal

from prediction_whale_tracker.ingestor.models import Trade

_COMPACT_UNITS: tuple[tuple[Decimal, str], ...] = (
    (Decimal("1e12"), "T"),
    (Decimal("1e9"), "B"),
    (Decimal("1e6"), "M"),
    (Decimal("1e3"), "K"),
)


def truncate_address(address: str, chars: int = 4) -> str:
    """Truncate an Ethereum address to 0x1234...5678 format."""
    if len(address) < chars * 2 + 4:
        return address
    return f"{address[: chars + 2]}...{address[-chars:]}"


def format_usd(amount: Decimal) -> str:
    """Format a USD amount with commas and 2 decimal places."""
    if amount < 0:
        return f"-${-amount:,.2f}"
    return f"${amount:,.2f}"


def format_usd_compact(amount: Decimal) -> str:
    """Format a USD amount compactly, e.g. $1.2K or $3.4M."""
    sign = "-" if amount < 0 else ""
    value = abs(amount)
    suffix = ""
    for size, unit in _COMPACT_UNITS:
        if value >= size:
            value /= size
            suffix = unit
            break
    rounded = value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    text = f"{rounded:f}".removesuffix(".0")
    return f"{sign}${text}{suffix}"


def format_time_ago(timestamp: int, *, now: int | None = None) -> str:
    """Relative age such as "45s ago", "12m ago", "3h ago", or "2d ago"."""
    current = int(time.time()) if now is None else now
    diff_sec = max(0, current - timestamp)
    diff_min = diff_sec // 60
    diff_hour = diff_min // 60
    diff_day = diff_hour // 24

    if diff_sec < 60:
        return f"{diff_sec}s ago"
    if diff_min < 60:
        return f"{diff_min}m ago"
    if diff_hour < 24:
        return f"{diff_hour}h ago"
    return f"{diff_day}d ago"


def format_trade_line(trade: Trade, *, now: int | None = None) -> str:
    """One-line summary of a trade for logs."""
    side = f"{trade.side}*" if trade.side_inferred else trade.side
    return (
        f"[{trade.platform.value}] {format_usd(trade.amount)} {side} {trade.outcome} "
        f"on {trade.market!r} by {truncate_address(trade.maker_address)} "
        f"({trade.category or 'Other'}, {format_time_ago(trade.timestamp, now=now)})"
    )
