"""Keyword-based market category inference.

Categories are inferred from the market title with an ordered list of keyword
groups. Matching is a case-insensitive substring test and the first group that
matches wins, so the order of ``CATEGORY_RULES`` is significant: a title such
as "Will Trump buy Bitcoin?" is Crypto, not US-current-affairs.
"""

from __future__ import annotations

import dataclasses

from prediction_whale_tracker.ingestor.models import Trade

CATEGORY_CRYPTO = "Crypto"
CATEGORY_SPORTS = "Sports"
CATEGORY_US_AFFAIRS = "US-current-affairs"
CATEGORY_BUSINESS = "Business"
CATEGORY_SCIENCE = "Science"
CATEGORY_POP_CULTURE = "Pop-Culture"
CATEGORY_GLOBAL_POLITICS = "Global Politics"
CATEGORY_OTHER = "Other"

# Sentinel used by view filters to disable category filtering.
CATEGORY_ALL = "All"

CATEGORY_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        CATEGORY_CRYPTO,
        ("bitcoin", "btc", "ethereum", "eth", "crypto", "solana", "usdc", "defi"),
    ),
    (
        CATEGORY_SPORTS,
        (
            "nba",
            "nfl",
            "soccer",
            "football",
            "basketball",
            "baseball",
            "tennis",
            "ufc",
            "mma",
            "f1",
            "premier league",
            "champions league",
        ),
    ),
    (
        CATEGORY_US_AFFAIRS,
        (
            "election",
            "trump",
            "biden",
            "president",
            "congress",
            "senate",
            "governor",
            "political",
            "vote",
            "democrat",
            "republican",
        ),
    ),
    (
        CATEGORY_BUSINESS,
        (
            "stock",
            "market",
            "fed",
            "interest rate",
            "gdp",
            "inflation",
            "economy",
            "unemployment",
        ),
    ),
    (
        CATEGORY_SCIENCE,
        ("ai", "space", "nasa", "research", "technology", "science"),
    ),
    (
        CATEGORY_POP_CULTURE,
        ("movie", "film", "oscar", "emmy", "grammy", "celebrity", "music", "album"),
    ),
    (
        CATEGORY_GLOBAL_POLITICS,
        ("war", "ukraine", "russia", "china", "israel", "palestine", "iran", "syria"),
    ),
)

CATEGORIES: tuple[str, ...] = tuple(name for name, _ in CATEGORY_RULES) + (CATEGORY_OTHER,)

# Options offered to the presentation layer's category filter.
CATEGORY_FILTER_OPTIONS: tuple[str, ...] = (
    CATEGORY_ALL,
    CATEGORY_CRYPTO,
    CATEGORY_SPORTS,
    CATEGORY_US_AFFAIRS,
    CATEGORY_POP_CULTURE,
    CATEGORY_BUSINESS,
    CATEGORY_SCIENCE,
    CATEGORY_GLOBAL_POLITICS,
)


def infer_category(title: str) -> str:
    """Infer a topical category from a market title."""
    lower_title = title.lower()
    for category, keywords in CATEGORY_RULES:
        if any(keyword in lower_title for keyword in keywords):
            return category
    return CATEGORY_OTHER


class CategoryClassifier:
    """Category inference with a per-instance memo table.

    Titles repeat across polls, so results are memoized by title. The table
    is owned by the instance and never evicted; the number of distinct
    market titles seen by one process is small.
    """

    def __init__(self) -> None:
        self._cache: dict[str, str] = {}

    def classify(self, title: str) -> str:
        category = self._cache.get(title)
        if category is None:
            category = infer_category(title)
            self._cache[title] = category
        return category

    def tag(self, trade: Trade) -> Trade:
        """Return a copy of ``trade`` with its category set from the title."""
        return dataclasses.replace(trade, category=self.classify(trade.market))

    def tag_all(self, trades: list[Trade]) -> list[Trade]:
        return [self.tag(t) for t in trades]

    @property
    def cache_size(self) -> int:
        return len(self._cache)
