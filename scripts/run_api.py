#!/usr/bin/env python3
"""Serve the ledger API with uvicorn.

Usage:
    python scripts/run_api.py [--host HOST] [--port PORT] [--reload]

Environment:
    DATABASE_URL - PostgreSQL connection string. Unset means all state lives
                   in memory and is lost on restart.
    CRON_SECRET  - Bearer token for /api/cron/process-orders.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import uvicorn

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from core.config import Settings  # noqa: E402

logger = logging.getLogger("run_api")


def main() -> int:
    parser = argparse.ArgumentParser(description="Serve the order, trade and wallet API")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    parser.add_argument("--log-level", default="info", choices=["debug", "info", "warning", "error"])
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    settings = Settings.from_env()
    if not settings.database_url:
        logger.warning("DATABASE_URL not set: ledger state is kept in memory")
    if not settings.cron_secret:
        logger.warning("CRON_SECRET not set: /api/cron/process-orders will answer 500")

    logger.info(f"Serving on http://{args.host}:{args.port} (health: /health, sweep: /api/cron/process-orders)")

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload, log_level=args.log_level)
    return 0


if __name__ == "__main__":
    sys.exit(main())
