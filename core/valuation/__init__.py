"""Valuation module.

Net worth, profit/loss and per-holding valuation in a single reporting
currency.
"""

from .holdings import available_balance, value_holdings
from .networth import compute_net_worth, compute_profit_loss, resolve_usd_try_rate, to_usd

__all__ = [
    "available_balance",
    "compute_net_worth",
    "compute_profit_loss",
    "resolve_usd_try_rate",
    "to_usd",
    "value_holdings",
]
