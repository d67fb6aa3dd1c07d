"""Filtered, paginated views over a trade history."""

from __future__ import annotations

import math
import time
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from prediction_whale_tracker.analytics.categories import CATEGORY_ALL
from prediction_whale_tracker.analytics.models import TimeWindow
from prediction_whale_tracker.ingestor.models import Trade

# Whale thresholds offered to the presentation layer (USD).
THRESHOLD_TIERS: tuple[int, ...] = (500, 1000, 5000, 10000)
DEFAULT_PAGE_SIZE = 20


@dataclass(frozen=True)
class TradeFilters:
    """Filter inputs for a trade view.

    Attributes:
        min_amount: Minimum USD amount (inclusive); 0 disables the filter.
        category: Exact category to keep, or "All".
        time_window: Look-back window, or ``all``.
    """

    min_amount: Decimal = Decimal(0)
    category: str = CATEGORY_ALL
    time_window: TimeWindow = TimeWindow.ALL


@dataclass(frozen=True)
class Page:
    """One page of a filtered trade view.

    ``start_index`` and ``end_index`` are the 1-based inclusive display range;
    both are 0 when the page is empty.
    """

    items: tuple[Trade, ...]
    page_number: int
    page_size: int
    total_count: int
    total_pages: int
    start_index: int
    end_index: int

    @property
    def has_next(self) -> bool:
        return self.page_number < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page_number > 1


def apply_filters(
    trades: Iterable[Trade],
    filters: TradeFilters,
    *,
    now: int | None = None,
) -> list[Trade]:
    """Apply amount, category, and time-window filters, in that order."""
    result = [t for t in trades if t.amount >= filters.min_amount]

    if filters.category != CATEGORY_ALL:
        result = [t for t in result if t.category == filters.category]

    if filters.time_window is not TimeWindow.ALL:
        current = int(time.time()) if now is None else now
        result = [t for t in result if filters.time_window.contains(t, current)]

    return result


def paginate(
    trades: Iterable[Trade],
    filters: TradeFilters,
    page_size: int = DEFAULT_PAGE_SIZE,
    page_number: int = 1,
    *,
    now: int | None = None,
) -> Page:
    """Filter ``trades`` and slice out one 1-indexed page.

    Callers should reset ``page_number`` to 1 whenever a filter changes; a
    page past the end is returned empty.

    Raises:
        ValueError: If ``page_size`` or ``page_number`` is less than 1.
    """
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")
    if page_number < 1:
        raise ValueError(f"page_number must be >= 1, got {page_number}")

    filtered = apply_filters(trades, filters, now=now)
    total_count = len(filtered)
    total_pages = math.ceil(total_count / page_size)

    offset = (page_number - 1) * page_size
    items = tuple(filtered[offset : offset + page_size])
    if items:
        start_index, end_index = offset + 1, offset + len(items)
    else:
        start_index = end_index = 0

    return Page(
        items=items,
        page_number=page_number,
        page_size=page_size,
        total_count=total_count,
        total_pages=total_pages,
        start_index=start_index,
        end_index=end_index,
    )


def validate_threshold(amount: int | Decimal) -> Decimal:
    """Return ``amount`` as a Decimal if it is one of THRESHOLD_TIERS."""
    if amount not in THRESHOLD_TIERS:
        raise ValueError(f"Threshold must be one of {THRESHOLD_TIERS}, got {amount}")
    return Decimal(amount)
