"""Data ingestion layer - Polling, normalization, and trade records."""

from prediction_whale_tracker.ingestor.api_client import (
    ApiClientError,
    ApiTransientError,
    PredictionMarketClient,
    RetryError,
)
from prediction_whale_tracker.ingestor.models import ANONYMOUS_MAKER, Platform, Trade
from prediction_whale_tracker.ingestor.normalizer import (
    normalize_batch,
    normalize_kalshi_batch,
    normalize_polymarket_batch,
)

__all__ = [
    "ANONYMOUS_MAKER",
    "ApiClientError",
    "ApiTransientError",
    "Platform",
    "PredictionMarketClient",
    "RetryError",
    "Trade",
    "normalize_batch",
    "normalize_kalshi_batch",
    "normalize_polymarket_batch",
]
