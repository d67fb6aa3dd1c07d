"""Normalization of raw per-source payloads into canonical trades.

Every ``normalize_*`` function returns ``None`` (or drops the entry from a
batch) instead of raising when an entry is malformed, so one bad record never
aborts the rest of a poll.
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Literal

from prediction_whale_tracker.ingestor.models import (
    ANONYMOUS_MAKER,
    MAX_TIMESTAMP,
    Platform,
    Trade,
)

logger = logging.getLogger(__name__)

# Kalshi estimation policy
KALSHI_MIN_ESTIMATED_AMOUNT = Decimal("1000")
KALSHI_VOLUME_FRACTION = Decimal("0.1")
KALSHI_DEFAULT_LIQUIDITY = Decimal("1000")
KALSHI_STAGGER_SECONDS = 120


def _to_decimal(value: Any) -> Decimal | None:
    """Parse a finite Decimal, or None if the value is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def _parse_timestamp(value: Any) -> int | None:
    """Parse unix seconds; millisecond values are scaled down.

    Returns None for values outside the range a datetime can represent.
    """
    ts = _to_decimal(value)
    if ts is None or ts < 0:
        return None
    if ts > Decimal("1e12"):
        ts /= 1000
    if ts > MAX_TIMESTAMP:
        return None
    return int(ts)


def normalize_polymarket_trade(data: dict[str, Any]) -> Trade | None:
    """Create a Trade from a Polymarket data-API ``/trades`` item.

    Args:
        data: One element of the ``/trades`` response.

    Returns:
        Trade, or None when size/price/timestamp/side are unusable.
    """
    size = _to_decimal(data.get("size"))
    price = _to_decimal(data.get("price"))
    if size is None or price is None or size <= 0 or price <= 0:
        logger.debug("Skipping Polymarket trade with invalid size/price: %r", data)
        return None

    timestamp = _parse_timestamp(data.get("timestamp"))
    if timestamp is None:
        logger.debug("Skipping Polymarket trade with invalid timestamp: %r", data)
        return None

    side_raw = str(data.get("side") or "").upper()
    if side_raw not in ("BUY", "SELL"):
        logger.debug("Skipping Polymarket trade with unknown side %r", side_raw)
        return None
    side: Literal["BUY", "SELL"] = "BUY" if side_raw == "BUY" else "SELL"

    trade_id = str(data.get("transactionHash") or "")
    if not trade_id:
        trade_id = f"{timestamp}-{data.get('asset') or ''}"

    return Trade(
        id=trade_id,
        platform=Platform.POLYMARKET,
        market=str(data.get("title") or "Unknown Market"),
        outcome=str(data.get("outcome") or "Unknown"),
        amount=size * price,
        side=side,
        timestamp=timestamp,
        maker_address=str(data.get("proxyWallet") or ANONYMOUS_MAKER),
        slug=str(data.get("slug") or ""),
        event_slug=str(data.get("eventSlug") or ""),
        condition_id=str(data.get("conditionId") or ""),
    )


def normalize_polymarket_batch(payload: Any) -> list[Trade]:
    """Normalize a Polymarket ``/trades`` response.

    A response that is not a list is treated as an empty batch.
    """
    if not isinstance(payload, list):
        logger.warning(
            "Unexpected Polymarket trades payload (%s); treating as empty batch",
            type(payload).__name__,
        )
        return []

    trades: list[Trade] = []
    skipped = 0
    for item in payload:
        trade = normalize_polymarket_trade(item) if isinstance(item, dict) else None
        if trade is None:
            skipped += 1
            continue
        trades.append(trade)

    if skipped:
        logger.info("Skipped %d malformed Polymarket trades of %d", skipped, len(payload))
    return trades


def estimate_kalshi_amount(volume: Decimal, liquidity: Decimal | None) -> Decimal:
    """Estimate a whale-scale trade size from market volume and liquidity.

    Kalshi publishes no public trade feed, so the amount is a tenth of the
    market volume capped by liquidity and floored at $1000.
    """
    cap = liquidity if liquidity else KALSHI_DEFAULT_LIQUIDITY
    estimate = min(volume * KALSHI_VOLUME_FRACTION, cap)
    return max(KALSHI_MIN_ESTIMATED_AMOUNT, estimate)


def normalize_kalshi_market(data: dict[str, Any], *, index: int, now: int) -> Trade | None:
    """Synthesize a Trade from a Kalshi ``/markets`` item.

    Args:
        data: One element of the ``markets`` list.
        index: Position among the batch's emitted trades; each step moves the
            timestamp back by ``KALSHI_STAGGER_SECONDS``.
        now: Poll time in unix seconds.

    Returns:
        Trade, or None for markets without a ticker or trading volume.
    """
    ticker = str(data.get("ticker") or "")
    volume = _to_decimal(data.get("volume"))
    if not ticker or volume is None or volume <= 0:
        return None

    timestamp = max(0, now - index * KALSHI_STAGGER_SECONDS)
    yes_bid = _to_decimal(data.get("yes_bid")) or Decimal(0)
    no_bid = _to_decimal(data.get("no_bid")) or Decimal(0)

    # Cumulative volume only changes when the market trades, so the id is
    # stable across polls that observe no new activity.
    return Trade(
        id=f"kalshi-{ticker}-{volume.normalize():f}",
        platform=Platform.KALSHI,
        market=str(data.get("title") or ticker),
        outcome="Yes" if yes_bid > no_bid else "No",
        amount=estimate_kalshi_amount(volume, _to_decimal(data.get("liquidity"))),
        side="BUY",
        timestamp=timestamp,
        maker_address=ANONYMOUS_MAKER,
        slug=ticker,
        event_slug=str(data.get("event_ticker") or ticker),
        condition_id=ticker,
        side_inferred=True,
    )


def normalize_kalshi_batch(payload: Any, *, now: int | None = None) -> list[Trade]:
    """Normalize a Kalshi ``/markets`` response (``{"markets": [...]}``)."""
    markets = payload.get("markets") if isinstance(payload, dict) else payload
    if not isinstance(markets, list):
        logger.warning(
            "Unexpected Kalshi markets payload (%s); treating as empty batch",
            type(payload).__name__,
        )
        return []

    poll_time = int(time.time()) if now is None else now
    trades: list[Trade] = []
    for item in markets:
        if not isinstance(item, dict):
            continue
        trade = normalize_kalshi_market(item, index=len(trades), now=poll_time)
        if trade is not None:
            trades.append(trade)
    return trades


def normalize_batch(platform: Platform, payload: Any, *, now: int | None = None) -> list[Trade]:
    """Dispatch a raw response to the platform's normalizer."""
    if platform is Platform.POLYMARKET:
        return normalize_polymarket_batch(payload)
    return normalize_kalshi_batch(payload, now=now)
