"""Limit orders: lifecycle, user-facing service and the settlement sweep."""

from .service import OrderService, OrderView
from .state_machine import TRANSITIONS, can_transition, ensure_transition
from .sweep import OrderSweeper, is_eligible

__all__ = [
    "OrderService",
    "OrderSweeper",
    "OrderView",
    "TRANSITIONS",
    "can_transition",
    "ensure_transition",
    "is_eligible",
]
