"""Console entry point: ``python -m prediction_whale_tracker``.

Runs the pipeline until interrupted and logs every new whale trade. With
``--once`` it polls each platform a single time and logs a sentiment summary.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal

from prediction_whale_tracker.config import get_settings
from prediction_whale_tracker.formatter import format_trade_line, format_usd_compact
from prediction_whale_tracker.ingestor.models import Platform, Trade
from prediction_whale_tracker.pipeline import Pipeline
from prediction_whale_tracker.storage.history import TradeHistory

logger = logging.getLogger("prediction_whale_tracker")


def _log_new_trades(platform: Platform, history: TradeHistory, added: list[Trade]) -> None:
    for trade in added:
        logger.info("WHALE %s", format_trade_line(trade))


def _log_sentiment(pipeline: Pipeline) -> None:
    sentiment = pipeline.get_market_sentiment("24h")
    overall = sentiment.overall
    logger.info(
        "24h: %d trades, volume %s, net flow %s, buy pressure %.1f%%",
        overall.trade_count,
        format_usd_compact(overall.total_volume),
        format_usd_compact(overall.net_flow),
        overall.buy_pressure,
    )
    for stats in sentiment.top_markets:
        logger.info(
            "  %s: %s (%d trades, %d whales)",
            stats.market,
            format_usd_compact(stats.total_volume),
            stats.trade_count,
            stats.whale_count,
        )


async def run(once: bool = False) -> None:
    """Start the pipeline and block until SIGINT/SIGTERM (or one poll)."""
    settings = get_settings()
    logger.info("Settings: %s", settings.redacted_summary())

    pipeline = Pipeline(settings)
    pipeline.subscribe(_log_new_trades)
    await pipeline.start()

    try:
        if not once:
            stop = asyncio.Event()
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                with contextlib.suppress(NotImplementedError):
                    loop.add_signal_handler(sig, stop.set)
            await stop.wait()
        _log_sentiment(pipeline)
    finally:
        await pipeline.stop()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="prediction_whale_tracker",
        description="Track whale trades on Polymarket and Kalshi",
    )
    parser.add_argument("--once", action="store_true", help="Poll once, log a summary and exit")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=get_settings().get_logging_level(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run(once=args.once))


if __name__ == "__main__":
    main()
