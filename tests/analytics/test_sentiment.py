"""Tests for market and overall sentiment."""

from decimal import Decimal

import pytest

from prediction_whale_tracker.analytics.models import NEUTRAL_BUY_PRESSURE, TimeWindow, buy_pressure
from prediction_whale_tracker.analytics.sentiment import (
    compute_market_sentiment,
    compute_market_stats,
    compute_overall_sentiment,
    filter_by_window,
)

NOW = 1_700_000_000


class TestTimeWindow:
    """Tests for TimeWindow."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("1h", TimeWindow.HOUR), ("24H", TimeWindow.DAY), ("7d", TimeWindow.WEEK), ("all", TimeWindow.ALL)],
    )
    def test_parse(self, value, expected) -> None:
        assert TimeWindow.parse(value) is expected

    def test_parse_unknown_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown time window"):
            TimeWindow.parse("2h")

    def test_seconds(self) -> None:
        assert TimeWindow.HOUR.seconds == 3600
        assert TimeWindow.DAY.seconds == 86_400
        assert TimeWindow.WEEK.seconds == 604_800
        assert TimeWindow.ALL.seconds is None


class TestBuyPressure:
    """Tests for the buy-pressure helper."""

    def test_zero_volume_is_neutral(self) -> None:
        assert buy_pressure(Decimal(0), Decimal(0)) == NEUTRAL_BUY_PRESSURE == 50.0

    def test_ratio(self) -> None:
        assert buy_pressure(Decimal("750"), Decimal("1000")) == 75.0


class TestFilterByWindow:
    """Tests for window filtering."""

    def test_cutoff_is_inclusive(self, make_trade) -> None:
        trades = [
            make_trade("in", timestamp=NOW - 3599),
            make_trade("edge", timestamp=NOW - 3600),
            make_trade("out", timestamp=NOW - 3601),
        ]

        kept = filter_by_window(trades, TimeWindow.HOUR, now=NOW)

        assert [t.id for t in kept] == ["in", "edge"]

    def test_all_keeps_everything(self, make_trade) -> None:
        trades = [make_trade("old", timestamp=0)]
        assert filter_by_window(trades, TimeWindow.ALL, now=NOW) == trades


class TestOverallSentiment:
    """Tests for compute_overall_sentiment."""

    def test_conservation(self, make_trade) -> None:
        trades = [
            make_trade("b1", side="BUY", amount="1500", timestamp=NOW),
            make_trade("s1", side="SELL", amount="2500", timestamp=NOW),
            make_trade("b2", side="BUY", amount="1000", timestamp=NOW),
        ]

        summary = compute_overall_sentiment(trades, TimeWindow.DAY, now=NOW)

        assert summary.buy_volume + summary.sell_volume == summary.total_volume
        assert summary.total_volume == Decimal("5000")
        assert summary.net_flow == Decimal("0")
        assert summary.buy_pressure == 50.0
        assert summary.trade_count == 3

    def test_empty_is_neutral(self) -> None:
        summary = compute_overall_sentiment([], TimeWindow.DAY, now=NOW)

        assert summary.total_volume == 0
        assert summary.trade_count == 0
        assert summary.buy_pressure == 50.0

    def test_respects_window(self, make_trade) -> None:
        trades = [
            make_trade("recent", amount="1000", timestamp=NOW - 60),
            make_trade("stale", amount="9000", timestamp=NOW - 2 * 86_400),
        ]

        assert compute_overall_sentiment(trades, TimeWindow.DAY, now=NOW).total_volume == 1000
        assert compute_overall_sentiment(trades, TimeWindow.WEEK, now=NOW).total_volume == 10_000


class TestMarketStats:
    """Tests for compute_market_stats."""

    def test_groups_by_title(self, make_trade) -> None:
        trades = [
            make_trade("1", market="A", side="BUY", amount="1000", maker_address="0xAA", timestamp=NOW),
            make_trade("2", market="A", side="SELL", amount="3000", maker_address="0xaa", timestamp=NOW),
            make_trade("3", market="A", side="BUY", amount="2000", maker_address="0xbb", timestamp=NOW),
            make_trade("4", market="B", side="BUY", amount="1000", maker_address="0xcc", timestamp=NOW),
        ]

        stats = compute_market_stats(trades, TimeWindow.DAY, now=NOW)

        assert [s.market for s in stats] == ["A", "B"]
        market_a = stats[0]
        assert market_a.total_volume == Decimal("6000")
        assert market_a.buy_volume == Decimal("3000")
        assert market_a.sell_volume == Decimal("3000")
        assert market_a.trade_count == 3
        assert market_a.whale_count == 2
        assert market_a.net_flow == 0
        assert market_a.buy_pressure == 50.0

    def test_top_ten_by_volume(self, make_trade) -> None:
        trades = [
            make_trade(str(i), market=f"Market {i}", amount=str(1000 + i), timestamp=NOW)
            for i in range(12)
        ]

        stats = compute_market_stats(trades, TimeWindow.DAY, now=NOW)

        assert len(stats) == 10
        assert stats[0].market == "Market 11"
        volumes = [s.total_volume for s in stats]
        assert volumes == sorted(volumes, reverse=True)

    def test_volume_conserved_across_markets(self, make_trade) -> None:
        trades = [
            make_trade(str(i), market=f"M{i % 3}", side="BUY" if i % 2 else "SELL", amount="1000", timestamp=NOW)
            for i in range(9)
        ]

        stats = compute_market_stats(trades, TimeWindow.ALL, now=NOW)

        assert sum(s.total_volume for s in stats) == Decimal("9000")
        assert all(s.buy_volume + s.sell_volume == s.total_volume for s in stats)


class TestMarketSentiment:
    """Tests for compute_market_sentiment."""

    def test_overall_and_top_markets_share_window(self, make_trade) -> None:
        trades = [
            make_trade("1", market="A", amount="5000", timestamp=NOW - 10),
            make_trade("2", market="B", amount="1000", side="SELL", timestamp=NOW - 10),
            make_trade("3", market="C", amount="9000", timestamp=NOW - 10 * 86_400),
        ]

        sentiment = compute_market_sentiment(trades, TimeWindow.WEEK, now=NOW)

        assert sentiment.time_window is TimeWindow.WEEK
        assert sentiment.overall.total_volume == Decimal("6000")
        assert sentiment.overall.buy_pressure == pytest.approx(83.333, rel=1e-3)
        assert [m.market for m in sentiment.top_markets] == ["A", "B"]
