"""Trade settlement: the single writer of balances and holdings."""

from .settler import (
    DUST_THRESHOLD,
    TradeSettler,
    apply_buy,
    apply_sell,
    round_quantity,
)

__all__ = [
    "DUST_THRESHOLD",
    "TradeSettler",
    "apply_buy",
    "apply_sell",
    "round_quantity",
]
