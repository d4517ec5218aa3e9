"""
Per-order state machine.

Conceptual only: the facilitator does not persist order state. Each request
walks the states it is responsible for through an ``OrderProgress`` that
refuses transitions which would skip verification or move backwards once
funds are collected.
"""

import logging
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from x402_orders.logger import order_logger

logger = logging.getLogger(__name__)


class OrderState(str, Enum):
    CREATED = "CREATED"
    PRICED = "PRICED"
    CHALLENGE_ISSUED = "CHALLENGE_ISSUED"
    PAYMENT_VERIFIED = "PAYMENT_VERIFIED"
    FUNDS_COLLECTED = "FUNDS_COLLECTED"
    FULFILLED = "FULFILLED"
    FULFILLMENT_FAILED = "FULFILLMENT_FAILED"


TRANSITIONS: Dict[OrderState, FrozenSet[OrderState]] = {
    OrderState.CREATED: frozenset({OrderState.PRICED}),
    OrderState.PRICED: frozenset({OrderState.CHALLENGE_ISSUED}),
    OrderState.CHALLENGE_ISSUED: frozenset({OrderState.PAYMENT_VERIFIED}),
    OrderState.PAYMENT_VERIFIED: frozenset({OrderState.FUNDS_COLLECTED}),
    OrderState.FUNDS_COLLECTED: frozenset({OrderState.FULFILLED, OrderState.FULFILLMENT_FAILED}),
    OrderState.FULFILLED: frozenset(),
    OrderState.FULFILLMENT_FAILED: frozenset(),
}

TERMINAL_STATES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)


class InvalidTransition(Exception):
    """Raised on a transition the state machine does not allow."""


def can_transition(current: OrderState, target: OrderState) -> bool:
    return target in TRANSITIONS[current]


class OrderProgress:
    """Tracks one request's walk through the order states."""

    def __init__(self, state: OrderState = OrderState.CREATED, order_id: Optional[str] = None):
        self.state = state
        self.order_id = order_id
        self.history: List[OrderState] = [state]

    def advance(self, target: OrderState) -> OrderState:
        if not can_transition(self.state, target):
            raise InvalidTransition(f"{self.state.value} -> {target.value} is not allowed")
        order_logger(logger, self.order_id).debug(f"State {self.state.value} -> {target.value}")
        self.state = target
        self.history.append(target)
        return target

    @property
    def funds_collected(self) -> bool:
        return OrderState.FUNDS_COLLECTED in self.history
