"""Tests for the per-platform trade poller."""

import asyncio
import logging
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from prediction_whale_tracker.analytics.categories import CategoryClassifier
from prediction_whale_tracker.ingestor.api_client import ApiClientError, RetryError
from prediction_whale_tracker.ingestor.models import Platform
from prediction_whale_tracker.ingestor.poller import PollState, TradePoller
from prediction_whale_tracker.storage.accumulator import TradeAccumulator


def _item(tx: str, size: str, timestamp: int, *, title: str = "Bitcoin above 100k?") -> dict:
    return {
        "transactionHash": tx,
        "proxyWallet": "0x" + "c" * 40,
        "side": "BUY",
        "size": size,
        "price": "0.5",
        "timestamp": timestamp,
        "title": title,
        "outcome": "Yes",
    }


# Amounts: a=2000, b=500, c=3000
TRADE_A = _item("a", "4000", 100)
TRADE_B = _item("b", "1000", 90)
TRADE_C = _item("c", "6000", 110, title="NBA Finals winner")


def _poller(mock_redis, fetch, **kwargs) -> TradePoller:
    platform = kwargs.pop("platform", Platform.POLYMARKET)
    return TradePoller(
        platform,
        fetch=fetch,
        accumulator=TradeAccumulator(mock_redis, platform),
        classifier=CategoryClassifier(),
        interval_seconds=kwargs.pop("interval_seconds", 3600),
        **kwargs,
    )


class TestPollOnce:
    """Tests for a single poll cycle."""

    @pytest.mark.asyncio
    async def test_two_poll_accumulation(self, mock_redis) -> None:
        """Trades below the threshold are dropped; new trades are merged in order."""
        fetch = AsyncMock(side_effect=[[TRADE_A, TRADE_B], [TRADE_A, TRADE_C]])
        poller = _poller(mock_redis, fetch, min_amount=Decimal("1000"))

        added = await poller.poll_once()
        assert [t.id for t in added] == ["a"]
        assert [t.id for t in poller.history] == ["a"]

        added = await poller.poll_once()
        assert [t.id for t in added] == ["c"]
        assert [t.id for t in poller.history] == ["c", "a"]

        assert poller.stats.successful_polls == 2
        assert poller.stats.trades_added == 2
        assert poller.state == PollState.IDLE

    @pytest.mark.asyncio
    async def test_trades_are_categorized(self, mock_redis) -> None:
        poller = _poller(mock_redis, AsyncMock(return_value=[TRADE_A, TRADE_C]))

        await poller.poll_once()

        categories = {t.id: t.category for t in poller.history}
        assert categories == {"a": "Crypto", "c": "Sports"}

    @pytest.mark.asyncio
    async def test_caps_trades_per_poll(self, mock_redis) -> None:
        payload = [_item(f"t{i}", "4000", 100 - i) for i in range(5)]
        poller = _poller(mock_redis, AsyncMock(return_value=payload), max_trades_per_poll=2)

        added = await poller.poll_once()

        assert [t.id for t in added] == ["t0", "t1"]
        assert len(poller.history) == 2

    @pytest.mark.asyncio
    async def test_persists_history(self, mock_redis) -> None:
        poller = _poller(mock_redis, AsyncMock(return_value=[TRADE_A]))

        await poller.poll_once()

        assert '"id": "a"' in mock_redis.store["polymarket_trades"]

    @pytest.mark.asyncio
    async def test_out_of_range_timestamp_does_not_block_persistence(self, mock_redis) -> None:
        """An unrepresentable timestamp drops that item; the rest is stored and reloadable."""
        payload = [_item("bad", "4000", 10**20), TRADE_A]
        poller = _poller(mock_redis, AsyncMock(return_value=payload))

        added = await poller.poll_once()

        assert [t.id for t in added] == ["a"]
        reloaded = await TradeAccumulator(mock_redis, Platform.POLYMARKET).load()
        assert [t.id for t in reloaded] == ["a"]

    @pytest.mark.asyncio
    async def test_duplicates_within_batch_added_once(self, mock_redis) -> None:
        poller = _poller(mock_redis, AsyncMock(return_value=[TRADE_A, TRADE_A, TRADE_C]))

        added = await poller.poll_once()

        assert [t.id for t in added] == ["a", "c"]
        assert poller.stats.trades_added == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [ApiClientError("HTTP 404"), RetryError("exhausted")])
    async def test_fetch_failure_keeps_history(self, mock_redis, error) -> None:
        fetch = AsyncMock(side_effect=[[TRADE_A], error])
        poller = _poller(mock_redis, fetch)

        await poller.poll_once()
        added = await poller.poll_once()

        assert added == []
        assert [t.id for t in poller.history] == ["a"]
        assert poller.stats.failed_polls == 1
        assert poller.stats.last_error == str(error)
        assert poller.state == PollState.ERROR

    @pytest.mark.asyncio
    async def test_malformed_payload_is_empty_poll(self, mock_redis) -> None:
        poller = _poller(mock_redis, AsyncMock(return_value={"error": "unavailable"}))

        added = await poller.poll_once()

        assert added == []
        assert poller.stats.successful_polls == 1
        mock_redis.set.assert_not_called()

    @pytest.mark.asyncio
    async def test_min_amount_setter(self, mock_redis) -> None:
        poller = _poller(mock_redis, AsyncMock(return_value=[TRADE_A, TRADE_C]))
        poller.min_amount = Decimal("2500")

        await poller.poll_once()

        assert [t.id for t in poller.history] == ["c"]


class TestSubscribers:
    """Tests for history publication."""

    @pytest.mark.asyncio
    async def test_sync_and_async_subscribers(self, mock_redis) -> None:
        poller = _poller(mock_redis, AsyncMock(return_value=[TRADE_A]))
        sync_cb = MagicMock()
        async_cb = AsyncMock()
        poller.subscribe(sync_cb)
        poller.subscribe(async_cb)

        await poller.poll_once()

        platform, history, added = sync_cb.call_args.args
        assert platform is Platform.POLYMARKET
        assert [t.id for t in history] == ["a"]
        assert [t.id for t in added] == ["a"]
        async_cb.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_stop_poll(self, mock_redis) -> None:
        poller = _poller(mock_redis, AsyncMock(return_value=[TRADE_A]))
        later = MagicMock()
        poller.subscribe(MagicMock(side_effect=RuntimeError("boom")))
        poller.subscribe(later)

        await poller.poll_once()

        later.assert_called_once()
        assert poller.state == PollState.IDLE


class TestLifecycle:
    """Tests for start/stop."""

    @pytest.mark.asyncio
    async def test_start_loads_and_polls_once(self, mock_redis) -> None:
        mock_redis.store["polymarket_trades"] = (
            '[{"id": "old", "amount": "5000", "side": "SELL", "timestamp": 50, "market": "M"}]'
        )
        fetch = AsyncMock(return_value=[TRADE_A])
        states: list[PollState] = []
        poller = _poller(mock_redis, fetch, on_state_change=states.append)

        await poller.start()
        try:
            assert [t.id for t in poller.history] == ["a", "old"]
            assert fetch.await_count == 1
            assert poller.state == PollState.IDLE
        finally:
            await poller.stop()

        assert poller.state == PollState.STOPPED
        assert states == [
            PollState.STARTING,
            PollState.POLLING,
            PollState.IDLE,
            PollState.STOPPING,
            PollState.STOPPED,
        ]

    @pytest.mark.asyncio
    async def test_loop_polls_on_interval(self, mock_redis) -> None:
        fetch = AsyncMock(return_value=[])
        poller = _poller(mock_redis, fetch, interval_seconds=0.01)

        await poller.start()
        await asyncio.sleep(0.1)
        await poller.stop()

        assert fetch.await_count >= 2

    @pytest.mark.asyncio
    async def test_stop_when_stopped_is_noop(self, mock_redis) -> None:
        poller = _poller(mock_redis, AsyncMock(return_value=[]))
        await poller.stop()
        assert poller.state == PollState.STOPPED


class TestKalshiPoller:
    """Tests specific to the Kalshi poller."""

    def test_warns_about_inferred_side(self, mock_redis, caplog) -> None:
        with caplog.at_level(logging.WARNING):
            _poller(mock_redis, AsyncMock(), platform=Platform.KALSHI)
        assert "side_inferred" in caplog.text

    @pytest.mark.asyncio
    async def test_kalshi_poll(self, mock_redis) -> None:
        payload = {"markets": [{"ticker": "KX-1", "title": "Fed rate cut?", "volume": 90_000}]}
        poller = _poller(mock_redis, AsyncMock(return_value=payload), platform=Platform.KALSHI)

        added = await poller.poll_once()

        assert [t.id for t in added] == ["kalshi-KX-1-90000"]
        assert added[0].side_inferred is True
        assert added[0].category == "Business"
        assert "kalshi_trades" in mock_redis.store
