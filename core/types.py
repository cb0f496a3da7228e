from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_DOWN, Decimal
from enum import Enum
from typing import Literal, Mapping, Optional, Union

Side = Literal["BUY", "SELL"]
TransactionType = Literal["BUY", "SELL", "DEPOSIT"]
QuoteCurrency = Literal["TRY", "USD", "USDT"]
AssetCategory = Literal["stock", "crypto", "commodity", "currency", "etf"]

HOME_CURRENCY: QuoteCurrency = "TRY"
VALUATION_CURRENCY: QuoteCurrency = "USD"
STABLECOIN: QuoteCurrency = "USDT"
CURRENCY_SYMBOLS = frozenset({HOME_CURRENCY, VALUATION_CURRENCY, STABLECOIN})

ZERO = Decimal("0")
# Smallest tradable quantity increment.
QUANTITY_STEP = Decimal("0.0001")


def utcnow() -> datetime:
    """Return a timezone-aware timestamp in UTC."""
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    """Limit order lifecycle status."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"

    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING


@dataclass(frozen=True)
class ByQuantity:
    """Order sized in asset units."""

    quantity: Decimal

    def resolve(self, price: Decimal) -> Decimal:
        return self.quantity


@dataclass(frozen=True)
class ByNotional:
    """Order sized as a cash amount in the asset's quote currency.

    The unit quantity is only known at execution time: ``amount / price``
    rounded down to the quantity step, so the cost never exceeds ``amount``.
    A non-positive price, or an amount too small to buy one step, resolves to
    zero, which the sweep treats as a terminal failure.
    """

    amount: Decimal

    def resolve(self, price: Decimal) -> Decimal:
        if price <= 0:
            return ZERO
        return (self.amount / price).quantize(QUANTITY_STEP, rounding=ROUND_DOWN)


OrderSize = Union[ByQuantity, ByNotional]


@dataclass(frozen=True)
class Holding:
    symbol: str
    quantity: Decimal
    avg_cost: Decimal  # in the asset's quote currency


@dataclass(frozen=True)
class User:
    id: str
    balance: Decimal  # home currency cash
    holdings: tuple[Holding, ...] = ()
    email: Optional[str] = None
    name: Optional[str] = None
    created_at: Optional[datetime] = None

    def holding(self, symbol: str) -> Optional[Holding]:
        for item in self.holdings:
            if item.symbol == symbol:
                return item
        return None

    def quantity_of(self, symbol: str) -> Decimal:
        item = self.holding(symbol)
        return item.quantity if item is not None else ZERO


@dataclass(frozen=True)
class LimitOrder:
    id: str
    user_id: str
    symbol: str
    side: Side
    size: OrderSize
    target_price: Decimal
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    failure_reason: Optional[str] = None

    @property
    def quantity(self) -> Optional[Decimal]:
        return self.size.quantity if isinstance(self.size, ByQuantity) else None

    @property
    def amount(self) -> Optional[Decimal]:
        return self.size.amount if isinstance(self.size, ByNotional) else None


@dataclass(frozen=True)
class Transaction:
    id: str
    user_id: str
    type: TransactionType
    symbol: str
    quantity: Decimal
    price: Decimal
    total: Decimal
    currency: QuoteCurrency = HOME_CURRENCY
    date: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class Notification:
    id: str
    user_id: str
    title: str
    message: str
    read: bool = False
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class AssetQuote:
    """Live price for a symbol as returned by the price oracle."""

    symbol: str
    price: Decimal
    currency: QuoteCurrency
    category: AssetCategory
    change_percent: Decimal = ZERO
    name: Optional[str] = None
    source: str = "static"


Quotes = Mapping[str, AssetQuote]


@dataclass(frozen=True)
class NetWorth:
    total_usd: Decimal
    total_try: Decimal
    cash_try_in_usd: Decimal
    cash_usd: Decimal
    cash_usdt: Decimal
    cash_foreign_usd: Decimal  # other currency holdings (e.g. EUR)
    investments_value_usd: Decimal
    breakdown: Mapping[str, Decimal]


@dataclass(frozen=True)
class ProfitLoss:
    absolute: Decimal
    percent: Decimal


@dataclass(frozen=True)
class HoldingValuation:
    """A holding annotated with its live quote for wallet views."""

    symbol: str
    name: Optional[str]
    quantity: Decimal
    avg_cost: Decimal
    current_price: Decimal
    current_value: Decimal
    profit_loss: Decimal
    profit_loss_percent: Decimal
    category: Optional[AssetCategory]
    currency: Optional[QuoteCurrency]
    change_percent_24h: Optional[Decimal] = None


@dataclass
class SweepResult:
    processed: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    execution_time_ms: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "processed": self.processed,
            "completed": self.completed,
            "failed": self.failed,
            "skipped": self.skipped,
            "errors": list(self.errors),
            "execution_time_ms": self.execution_time_ms,
        }
