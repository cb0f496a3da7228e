#!/usr/bin/env python3
"""Run the limit-order sweep outside the HTTP server.

Designed to be run via systemd timer or cron, or as a long-running loop.

Usage:
    python -m scripts.run_sweep --once
    python -m scripts.run_sweep --interval 60
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import Settings  # noqa: E402
from core.market_data.oracle import build_default_oracle  # noqa: E402
from core.orders.sweep import OrderSweeper  # noqa: E402
from core.settlement.settler import TradeSettler  # noqa: E402
from core.storage import build_store  # noqa: E402

logger = logging.getLogger("order-sweep")


async def sweep_loop(
    sweeper: OrderSweeper,
    *,
    interval: float,
    once: bool = False,
    max_runs: Optional[int] = None,
) -> int:
    """Sweep every `interval` seconds; returns the number of sweeps that raised.

    A sweep that raises (e.g. the store is briefly unreachable) is logged and
    the loop carries on with the next one.
    """
    runs = 0
    failures = 0
    while True:
        runs += 1
        try:
            result = await sweeper.run()
        except Exception as e:
            failures += 1
            logger.exception(f"Sweep failed: {e}")
        else:
            logger.info(
                f"Sweep: {result.processed} processed, {result.completed} completed, "
                f"{result.failed} failed, {result.skipped} skipped ({result.execution_time_ms}ms)"
            )
            for error in result.errors:
                logger.warning(error)

        if once or (max_runs is not None and runs >= max_runs):
            return failures
        await asyncio.sleep(interval)


async def main() -> int:
    parser = argparse.ArgumentParser(description="Process PENDING limit orders against live prices")
    parser.add_argument(
        "--interval",
        type=float,
        default=60.0,
        help="Seconds between sweeps (default: 60)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sweep and exit",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    settings = Settings.from_env()
    if not settings.database_url:
        logger.error("DATABASE_URL environment variable is required")
        return 1

    store = build_store(settings.database_url)
    oracle = build_default_oracle(
        coingecko_api_key=settings.coingecko_api_key,
        timeout_seconds=settings.quote_timeout_seconds,
        cache_ttl_seconds=settings.quote_cache_ttl_seconds,
    )
    settler = TradeSettler(
        store=store,
        oracle=oracle,
        refill_threshold=settings.refill_threshold,
        refill_amount=settings.refill_amount,
    )
    sweeper = OrderSweeper(
        store=store,
        oracle=oracle,
        settler=settler,
        quote_timeout_seconds=settings.quote_timeout_seconds,
        settlement_timeout_seconds=settings.settlement_timeout_seconds,
        max_concurrency=settings.sweep_max_concurrency,
    )

    try:
        failures = await sweep_loop(sweeper, interval=args.interval, once=args.once)
    finally:
        await oracle.close()
        await store.close()
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
