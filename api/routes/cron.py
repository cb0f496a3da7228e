"""Scheduled sweep trigger.

Call on a fixed schedule (every 1-5 minutes) or manually:

    curl -H "Authorization: Bearer $CRON_SECRET" http://localhost:8000/api/cron/process-orders
"""

from __future__ import annotations

import hmac
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from api.deps import get_settings, get_sweeper
from core.config import Settings
from core.orders.sweep import OrderSweeper

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"])


def _authorize(authorization: Optional[str], settings: Settings) -> None:
    # Raises ConfigurationError (500) when CRON_SECRET is unset.
    secret = settings.require_cron_secret()
    expected = f"Bearer {secret}"
    if authorization is None or not hmac.compare_digest(authorization.encode(), expected.encode()):
        logger.warning("Unauthorized cron access attempt")
        raise HTTPException(
            status_code=401,
            detail={"error": "unauthorized", "message": "Unauthorized"},
        )


@router.api_route("/process-orders", methods=["GET", "POST"])
async def process_orders(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
    sweeper: OrderSweeper = Depends(get_sweeper),
) -> dict[str, Any]:
    """Run one sweep over all PENDING limit orders.

    Returns:
        Summary with processed/completed/failed/skipped counts, diagnostics
        and execution time in milliseconds.
    """
    _authorize(authorization, settings)

    result = await sweeper.run()
    message = "Sweep completed" if result.processed else "No pending orders to process"
    return {"message": message, **result.to_dict()}
