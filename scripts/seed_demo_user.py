#!/usr/bin/env python3
"""Create a demo user with starting cash.

Usage:
    python -m scripts.seed_demo_user --user-id demo --email demo@example.com
    python -m scripts.seed_demo_user --user-id demo --usd 1000 --usdt 500
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from decimal import Decimal

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import Settings  # noqa: E402
from core.storage import build_store  # noqa: E402
from core.types import STABLECOIN, VALUATION_CURRENCY, Holding, User  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("seed-demo-user")

DEFAULT_BALANCE = Decimal("100000")


async def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a demo user")
    parser.add_argument("--user-id", required=True, help="User id (the X-User-Id the client sends)")
    parser.add_argument("--email", default=None)
    parser.add_argument("--name", default=None)
    parser.add_argument("--balance", type=Decimal, default=DEFAULT_BALANCE, help="TRY cash (default: 100000)")
    parser.add_argument("--usd", type=Decimal, default=Decimal("0"), help="Starting USD holding")
    parser.add_argument("--usdt", type=Decimal, default=Decimal("0"), help="Starting USDT holding")
    args = parser.parse_args()

    settings = Settings.from_env()
    if not settings.database_url:
        logger.error("DATABASE_URL environment variable is required")
        sys.exit(1)

    # Cash holdings carry a zero cost basis.
    holdings = tuple(
        Holding(symbol=symbol, quantity=qty, avg_cost=Decimal("0"))
        for symbol, qty in ((VALUATION_CURRENCY, args.usd), (STABLECOIN, args.usdt))
        if qty > 0
    )
    user = User(
        id=args.user_id,
        balance=args.balance,
        holdings=holdings,
        email=args.email or f"{args.user_id}@example.com",
        name=args.name,
    )

    store = build_store(settings.database_url)
    try:
        existing = await store.get_user(user.id)
        if existing is not None:
            logger.info(f"User {user.id} already exists (balance {existing.balance})")
            return
        await store.create_user(user)
        logger.info(f"Created user {user.id} with {user.balance} TRY and {len(holdings)} cash holdings")
    finally:
        await store.close()


if __name__ == "__main__":
    asyncio.run(main())
