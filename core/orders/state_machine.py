"""Limit order lifecycle.

    PENDING --(sweep settles)------> COMPLETED
    PENDING --(owner cancels)------> CANCELLED
    PENDING --(settlement rejects)-> FAILED

Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from core.errors import InvalidTransition
from core.types import OrderStatus

TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(
        {OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.FAILED}
    ),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.FAILED: frozenset(),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(current: OrderStatus, target: OrderStatus) -> None:
    """Raise InvalidTransition unless `current -> target` is allowed."""
    if not can_transition(current, target):
        raise InvalidTransition(f"Cannot move order from {current.value} to {target.value}")
