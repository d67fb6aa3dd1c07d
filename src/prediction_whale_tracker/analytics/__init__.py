"""Analytics layer - Categories, wallet stats, sentiment, and trade views."""

from prediction_whale_tracker.analytics.categories import (
    CATEGORY_ALL,
    CATEGORY_FILTER_OPTIONS,
    CATEGORY_OTHER,
    CategoryClassifier,
    infer_category,
)
from prediction_whale_tracker.analytics.models import (
    MarketSentiment,
    MarketStats,
    SentimentSummary,
    TimeWindow,
    TopWallets,
    WalletStats,
)
from prediction_whale_tracker.analytics.sentiment import (
    compute_market_sentiment,
    compute_market_stats,
    compute_overall_sentiment,
)
from prediction_whale_tracker.analytics.view import (
    THRESHOLD_TIERS,
    Page,
    TradeFilters,
    paginate,
)
from prediction_whale_tracker.analytics.wallet import compute_top_wallets, compute_wallet_stats

__all__ = [
    "CATEGORY_ALL",
    "CATEGORY_FILTER_OPTIONS",
    "CATEGORY_OTHER",
    "CategoryClassifier",
    "MarketSentiment",
    "MarketStats",
    "Page",
    "SentimentSummary",
    "THRESHOLD_TIERS",
    "TimeWindow",
    "TopWallets",
    "TradeFilters",
    "WalletStats",
    "compute_market_sentiment",
    "compute_market_stats",
    "compute_overall_sentiment",
    "compute_top_wallets",
    "compute_wallet_stats",
    "infer_category",
    "paginate",
]
