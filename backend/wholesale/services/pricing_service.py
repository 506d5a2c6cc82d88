# Overview: Order totals; the single place subtotal, discount and final amount are computed.

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..models import Order


@dataclass(frozen=True)
class OrderTotals:
    subtotal_cents: int
    discount_cents: int
    final_amount_cents: int

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "final_amount_cents": self.final_amount_cents,
        }


def line_total(quantity: int, unit_price_cents: int) -> int:
    return int(quantity) * int(unit_price_cents)


def calculate_order_totals(
    lines: Iterable[tuple[int, int]],
    discount_amount_cents: int = 0,
) -> OrderTotals:
    """
    Pure totals rule.

    subtotal = sum(quantity * unit_price); the discount is clamped to
    [0, subtotal] so the final amount can never go negative.
    """
    subtotal = sum(line_total(qty, price) for qty, price in lines)
    discount = min(max(0, int(discount_amount_cents or 0)), subtotal)
    return OrderTotals(
        subtotal_cents=subtotal,
        discount_cents=discount,
        final_amount_cents=subtotal - discount,
    )


def apply_order_totals(order: Order, discount_amount_cents: int | None = None) -> OrderTotals:
    """
    Recompute and write an order's totals from its current items.

    Must run after every item mutation, before the order is flushed.
    When discount_amount_cents is None the order's requested discount is kept
    (re-clamped against the new subtotal).
    """
    for item in order.items:
        item.total_price_cents = line_total(item.quantity, item.unit_price_cents)

    discount = order.discount_amount_cents if discount_amount_cents is None else discount_amount_cents
    totals = calculate_order_totals(
        ((item.quantity, item.unit_price_cents) for item in order.items),
        discount,
    )
    order.total_amount_cents = totals.subtotal_cents
    order.discount_amount_cents = totals.discount_cents
    order.final_amount_cents = totals.final_amount_cents
    return totals
