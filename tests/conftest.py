"""Pytest configuration and fixtures."""

from collections.abc import Callable
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from prediction_whale_tracker.ingestor.models import Platform, Trade


@pytest.fixture
def sample_wallet() -> str:
    """Sample maker address for testing."""
    return "0x" + "a" * 40


@pytest.fixture
def make_trade(sample_wallet: str) -> Callable[..., Trade]:
    """Factory for Trade records with sensible defaults."""

    def _make(
        trade_id: str = "0xtrade",
        *,
        amount: str | int = "1000",
        side: str = "BUY",
        timestamp: int = 1_700_000_000,
        market: str = "Will Bitcoin reach $100k?",
        maker_address: str | None = None,
        platform: Platform = Platform.POLYMARKET,
        category: str | None = None,
        outcome: str = "Yes",
        slug: str = "bitcoin-100k",
    ) -> Trade:
        return Trade(
            id=trade_id,
            platform=platform,
            market=market,
            outcome=outcome,
            amount=Decimal(str(amount)),
            side=side,  # type: ignore[arg-type]
            timestamp=timestamp,
            maker_address=maker_address or sample_wallet,
            slug=slug,
            category=category,
        )

    return _make


@pytest.fixture
def mock_redis() -> AsyncMock:
    """AsyncMock Redis client backed by a dict (exposed as ``.store``)."""
    store: dict[str, str] = {}

    async def _get(key: str) -> str | None:
        return store.get(key)

    async def _set(key: str, value: str) -> bool:
        store[key] = value
        return True

    async def _delete(*keys: str) -> int:
        removed = 0
        for key in keys:
            if store.pop(key, None) is not None:
                removed += 1
        return removed

    redis = AsyncMock()
    redis.get = AsyncMock(side_effect=_get)
    redis.set = AsyncMock(side_effect=_set)
    redis.delete = AsyncMock(side_effect=_delete)
    redis.store = store
    return redis
