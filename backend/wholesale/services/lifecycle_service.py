# Overview: Transition tables for the order, delivery and kitchen sheet state machines.

"""
Wholesale Lifecycle Service

================================================================================
PURPOSE: One authoritative transition table per state machine
================================================================================

ORDER:
    draft    -> pending | approved | rejected | cancelled
    pending  -> approved | rejected | cancelled
    approved -> completed | cancelled
    completed, rejected, cancelled are terminal

DELIVERY:
    pending    -> assigned
    assigned   -> in_transit | pending
    in_transit -> delivered | assigned
    delivered, cancelled are terminal
    (cancelled is only reached through order cancellation, never requested
     directly on a delivery)

KITCHEN SHEET:
    pending     -> in_progress | cancelled
    in_progress -> completed | cancelled
    completed, cancelled are terminal

RULES:
1. Every status check in the services goes through require_transition();
   nothing compares raw status strings to decide whether an edge exists.
2. A request for an edge outside the table raises InvalidTransition carrying
   the allowed next states.
3. Same-state requests are not edges; callers that want idempotence handle
   them before asking.

================================================================================
"""

from __future__ import annotations

from ..errors import InvalidTransition
from ..models import OrderStatus, DeliveryStatus, KitchenSheetStatus


ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.DRAFT: frozenset({
        OrderStatus.PENDING,
        OrderStatus.APPROVED,
        OrderStatus.REJECTED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PENDING: frozenset({
        OrderStatus.APPROVED,
        OrderStatus.REJECTED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.APPROVED: frozenset({
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

DELIVERY_TRANSITIONS: dict[DeliveryStatus, frozenset[DeliveryStatus]] = {
    DeliveryStatus.PENDING: frozenset({DeliveryStatus.ASSIGNED}),
    DeliveryStatus.ASSIGNED: frozenset({DeliveryStatus.IN_TRANSIT, DeliveryStatus.PENDING}),
    DeliveryStatus.IN_TRANSIT: frozenset({DeliveryStatus.DELIVERED, DeliveryStatus.ASSIGNED}),
    DeliveryStatus.DELIVERED: frozenset(),
    DeliveryStatus.CANCELLED: frozenset(),
}

KITCHEN_SHEET_TRANSITIONS: dict[KitchenSheetStatus, frozenset[KitchenSheetStatus]] = {
    KitchenSheetStatus.PENDING: frozenset({KitchenSheetStatus.IN_PROGRESS, KitchenSheetStatus.CANCELLED}),
    KitchenSheetStatus.IN_PROGRESS: frozenset({KitchenSheetStatus.COMPLETED, KitchenSheetStatus.CANCELLED}),
    KitchenSheetStatus.COMPLETED: frozenset(),
    KitchenSheetStatus.CANCELLED: frozenset(),
}

_TABLES = {
    "order": (OrderStatus, ORDER_TRANSITIONS),
    "delivery": (DeliveryStatus, DELIVERY_TRANSITIONS),
    "kitchen_sheet": (KitchenSheetStatus, KITCHEN_SHEET_TRANSITIONS),
}

# Orders still open to item edits
EDITABLE_ORDER_STATUSES = frozenset({OrderStatus.DRAFT, OrderStatus.PENDING})


def _table(machine: str):
    try:
        return _TABLES[machine]
    except KeyError:
        raise ValueError(f"Unknown state machine '{machine}'") from None


def allowed_next(machine: str, current) -> list[str]:
    """Sorted list of states reachable in one step from `current`."""
    enum_cls, table = _table(machine)
    state = enum_cls.parse(current)
    if state is None:
        return []
    return sorted(s.value for s in table[state])


def can_transition(machine: str, current, target) -> bool:
    enum_cls, table = _table(machine)
    src = enum_cls.parse(current)
    dst = enum_cls.parse(target)
    if src is None or dst is None:
        return False
    return dst in table[src]


def is_terminal(machine: str, current) -> bool:
    enum_cls, table = _table(machine)
    state = enum_cls.parse(current)
    return state is not None and not table[state]


def require_transition(machine: str, current, target) -> None:
    """Raise InvalidTransition unless current -> target is an edge of the machine."""
    if not can_transition(machine, current, target):
        raise InvalidTransition(
            machine,
            str(current),
            str(target),
            allowed_next(machine, current),
        )


def is_order_editable(status) -> bool:
    return OrderStatus.parse(status) in EDITABLE_ORDER_STATUSES
