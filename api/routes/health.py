"""Health check API endpoint."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.deps import get_oracle, get_settings, get_store
from core.config import Settings
from core.market_data.interfaces import PriceOracle
from core.persistence.interfaces import LedgerStore
from core.types import VALUATION_CURRENCY

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Track API start time
_api_start_time = time.time()


async def _check_oracle(oracle: PriceOracle, timeout: float) -> bool:
    try:
        quotes = await asyncio.wait_for(oracle.get_quotes([VALUATION_CURRENCY]), timeout=timeout)
    except Exception as exc:
        logger.warning(f"Price oracle health check failed: {exc}")
        return False
    return VALUATION_CURRENCY in quotes


@router.get("/health")
async def health(
    store: LedgerStore = Depends(get_store),
    oracle: PriceOracle = Depends(get_oracle),
    settings: Settings = Depends(get_settings),
) -> Any:
    """Store and price oracle reachability; 503 when either is down."""
    database_ok = await store.ping()
    oracle_ok = await _check_oracle(oracle, settings.quote_timeout_seconds)

    body = {
        "status": "ok" if database_ok and oracle_ok else "degraded",
        "database": {"connected": database_ok},
        "oracle": {"available": oracle_ok},
        "uptime_seconds": int(time.time() - _api_start_time),
    }
    return JSONResponse(status_code=200 if database_ok and oracle_ok else 503, content=body)
