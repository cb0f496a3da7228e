"""Error taxonomy for order handling and settlement.

Every failure the ledger can report is a named subclass of ``LedgerError``
with a stable ``code``. The API maps codes to HTTP status codes; the sweep
catches them per order and records them as diagnostics.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base exception for ledger and order errors."""

    code = "ledger_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Malformed or out-of-range input, rejected before any persistence."""

    code = "validation_error"


class ConfigurationError(LedgerError):
    """Required configuration is missing or malformed."""

    code = "configuration_error"


class UnauthorizedAccess(LedgerError):
    """Caller does not own the referenced record."""

    code = "unauthorized"


class QuoteUnavailable(LedgerError):
    """Transient market data gap; the caller should retry later."""

    code = "quote_unavailable"


class OrderNotFound(LedgerError):
    code = "not_found"

    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class UserNotFound(LedgerError):
    code = "not_found"

    def __init__(self, user_id: str) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class InvalidTransition(LedgerError):
    code = "invalid_transition"


class OrderNotPending(LedgerError):
    """A conditional status update lost: the order already left PENDING."""

    code = "order_not_pending"

    def __init__(self, order_id: str, current_status: Optional[str] = None) -> None:
        if current_status is None:
            message = f"Order {order_id} is no longer pending"
        else:
            message = f"Order {order_id} is already {current_status.lower()}"
        super().__init__(message)
        self.order_id = order_id
        self.current_status = current_status


class SettlementError(LedgerError):
    """Business-rule violation discovered while settling a trade."""

    code = "settlement_error"


class UnknownAsset(SettlementError):
    code = "unknown_asset"

    def __init__(self, symbol: str) -> None:
        super().__init__(f"Asset {symbol} not found")
        self.symbol = symbol


class InsufficientFunds(SettlementError):
    code = "insufficient_funds"

    def __init__(self, currency: str, available: Decimal, required: Decimal) -> None:
        super().__init__(
            f"Insufficient {currency} balance: have {available:.2f}, need {required:.2f}"
        )
        self.currency = currency
        self.available = available
        self.required = required


class InsufficientHoldings(SettlementError):
    code = "insufficient_holdings"

    def __init__(self, symbol: str, owned: Decimal, requested: Decimal) -> None:
        super().__init__(f"Insufficient {symbol} holdings: have {owned}, need {requested}")
        self.symbol = symbol
        self.owned = owned
        self.requested = requested
