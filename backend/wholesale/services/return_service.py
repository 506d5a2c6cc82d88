"""
Delivery Returns Service

WHY: Drivers bring goods back from the store (expired, damaged, unsold). A
return must credit the store's stock and reduce what the store still owes on
the order's invoice, and it must never be counted twice.

DESIGN PRINCIPLES:
- Returns are only accepted on a 'delivered' delivery
- Per product: already returned + requested <= delivered on the order
- Validation is all-or-nothing; every violation in the batch is reported
- Return value uses the product's current base price (quantity x price)
- Invoice.return_amount grows by the full value; the store balance drops by
  the credit actually applied (never below zero collectible)
- DeliveryReturn rows are immutable once written

CONCURRENCY:
- The delivery row is locked and its version bumped, so two submissions for
  the same delivery serialize and the loser re-validates against the winner.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date

from ..extensions import db
from ..errors import NotFound, InvalidState, InvalidReason, OverReturn, ValidationFailed
from ..models import (
    Store,
    Product,
    Delivery,
    DeliveryReturn,
    DeliveryStatus,
    Invoice,
    Order,
    ReturnReason,
    StockReason,
)
from ..validation import ValidationError
from wholesale.time_utils import utcnow, utctoday, parse_iso_date
from .stock_service import adjust_stock
from .invoice_service import get_or_create_invoice, apply_return_credit
from .ledger_service import append_ledger_event
from .concurrency import lock_for_update, run_with_retry
from . import credit_service


# =============================================================================
# VIOLATION KINDS
# =============================================================================

NOT_ON_ORDER = "not_on_order"
OVER_RETURN = "over_return"
INVALID_REASON = "invalid_reason"
INVALID_QUANTITY = "invalid_quantity"
INVALID_EXPIRY_DATE = "invalid_expiry_date"
NOT_EXPIRED = "not_expired"


@dataclass
class ReturnResult:
    returns: list[DeliveryReturn] = field(default_factory=list)
    invoice: Invoice | None = None
    return_value_cents: int = 0
    credit_applied_cents: int = 0

    def to_dict(self) -> dict:
        return {
            "returns": [r.to_dict() for r in self.returns],
            "invoice": self.invoice.to_dict() if self.invoice is not None else None,
            "return_value_cents": self.return_value_cents,
            "credit_applied_cents": self.credit_applied_cents,
        }


# =============================================================================
# QUANTITIES
# =============================================================================

def _delivered_quantities(delivery: Delivery) -> dict[int, int]:
    delivered: dict[int, int] = defaultdict(int)
    for item in delivery.order.items:
        delivered[item.product_id] += item.quantity
    return dict(delivered)


def _returned_quantities(delivery_id: int) -> dict[int, int]:
    rows = (
        db.session.query(DeliveryReturn.product_id, db.func.sum(DeliveryReturn.quantity))
        .filter(DeliveryReturn.delivery_id == delivery_id)
        .group_by(DeliveryReturn.product_id)
        .all()
    )
    return {product_id: int(qty or 0) for product_id, qty in rows}


def returnable_quantities(delivery_id: int) -> list[dict]:
    """Per product on the delivery: delivered, already returned and still returnable."""
    delivery = db.session.get(Delivery, delivery_id)
    if delivery is None:
        raise NotFound("Delivery", delivery_id)

    delivered = _delivered_quantities(delivery)
    returned = _returned_quantities(delivery_id)
    return [
        {
            "product_id": product_id,
            "delivered_quantity": qty,
            "returned_quantity": returned.get(product_id, 0),
            "returnable_quantity": max(0, qty - returned.get(product_id, 0)),
        }
        for product_id, qty in sorted(delivered.items())
    ]


# =============================================================================
# VALIDATION
# =============================================================================

def _parse_quantity(raw):
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None


def _validate_lines(delivery: Delivery, items: list[dict], today: date) -> tuple[list[dict], list[dict]]:
    """
    Check every requested line; returns (normalized lines, violations).

    Quantities requested earlier in the same batch count against later lines
    for the same product.
    """
    delivered = _delivered_quantities(delivery)
    already = _returned_quantities(delivery.id)
    requested: dict[int, int] = defaultdict(int)

    lines: list[dict] = []
    violations: list[dict] = []

    for index, item in enumerate(items):
        if not isinstance(item, dict):
            violations.append({"index": index, "kind": INVALID_QUANTITY, "error": "line must be an object"})
            continue

        product_id = item.get("product_id")
        if isinstance(product_id, str) and product_id.strip().isdigit():
            product_id = int(product_id.strip())
        line_violations: list[dict] = []

        if product_id not in delivered:
            line_violations.append({
                "index": index,
                "product_id": product_id,
                "kind": NOT_ON_ORDER,
                "error": "Product was not on this order",
            })

        quantity = _parse_quantity(item.get("quantity"))
        if quantity is None or quantity <= 0:
            line_violations.append({
                "index": index,
                "product_id": product_id,
                "kind": INVALID_QUANTITY,
                "error": "quantity must be a positive integer",
                "quantity": item.get("quantity"),
            })

        reason = ReturnReason.parse(item.get("reason"))
        if reason is None:
            line_violations.append({
                "index": index,
                "product_id": product_id,
                "kind": INVALID_REASON,
                "error": f"Invalid return reason '{item.get('reason')}'",
                "allowed": ReturnReason.values(),
            })

        expiry = None
        try:
            expiry = parse_iso_date(item.get("expiry_date"))
        except ValueError:
            line_violations.append({
                "index": index,
                "product_id": product_id,
                "kind": INVALID_EXPIRY_DATE,
                "error": "expiry_date must be YYYY-MM-DD",
            })
        if reason == ReturnReason.EXPIRED and expiry is not None and expiry > today:
            line_violations.append({
                "index": index,
                "product_id": product_id,
                "kind": NOT_EXPIRED,
                "error": f"Product has not expired yet (expiry date: {expiry.isoformat()})",
            })

        if product_id in delivered and quantity is not None and quantity > 0:
            delivered_qty = delivered[product_id]
            prior = already.get(product_id, 0) + requested[product_id]
            if prior + quantity > delivered_qty:
                line_violations.append({
                    "index": index,
                    "product_id": product_id,
                    "kind": OVER_RETURN,
                    "error": (
                        f"Return quantity ({quantity}) exceeds returnable quantity "
                        f"({max(0, delivered_qty - prior)})"
                    ),
                    "requested_quantity": quantity,
                    "delivered_quantity": delivered_qty,
                    "already_returned_quantity": prior,
                })
            requested[product_id] += quantity

        if line_violations:
            violations.extend(line_violations)
            continue

        lines.append({
            "product_id": product_id,
            "quantity": quantity,
            "reason": reason,
            "batch_number": (item.get("batch_number") or None),
            "expiry_date": expiry,
            "notes": (item.get("notes") or None),
        })

    return lines, violations


def _raise_for(violations: list[dict]) -> None:
    kinds = {v["kind"] for v in violations}
    if kinds == {OVER_RETURN}:
        raise OverReturn(violations)
    if kinds == {INVALID_REASON}:
        raise InvalidReason(
            "Invalid return reason. Must be one of: " + ", ".join(ReturnReason.values()),
            details={"violations": violations},
        )
    raise ValidationFailed(f"{len(violations)} return line(s) failed validation", violations)


# =============================================================================
# PROCESSING
# =============================================================================

def process_returns(
    delivery_id: int,
    items: list[dict],
    returned_by: str,
    *,
    today: date | None = None,
) -> ReturnResult:
    """
    Validate and apply a driver's return batch for one delivered delivery.

    Nothing is written unless every line passes. On success the return rows,
    the stock credits (reason 'return'), the invoice adjustment and the store
    balance change commit together.
    """
    if not returned_by:
        raise ValidationError("returned_by is required", details={"field": "returned_by"})
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list", details={"field": "items"})
    today = today or utctoday()

    def _op():
        delivery = lock_for_update(db.session.query(Delivery).filter_by(id=delivery_id)).first()
        if delivery is None:
            raise NotFound("Delivery", delivery_id)
        if delivery.status != DeliveryStatus.DELIVERED.value:
            raise InvalidState(
                "Returns can only be processed for delivered deliveries",
                details={"delivery_id": delivery_id, "status": delivery.status},
            )

        lines, violations = _validate_lines(delivery, items, today)
        if violations:
            _raise_for(violations)

        order = delivery.order
        now = utcnow()
        # Bumps the version so a concurrent submission fails and re-validates
        delivery.updated_at = now

        result = ReturnResult()
        for line in lines:
            product = db.session.get(Product, line["product_id"])
            line_value = line["quantity"] * product.price_cents

            row = DeliveryReturn(
                delivery_id=delivery.id,
                product_id=product.id,
                quantity=line["quantity"],
                reason=line["reason"].value,
                batch_number=line["batch_number"],
                expiry_date=line["expiry_date"],
                notes=line["notes"][:255] if line["notes"] else None,
                unit_price_cents=product.price_cents,
                line_value_cents=line_value,
                returned_by=str(returned_by),
                returned_at=now,
            )
            db.session.add(row)
            db.session.flush()

            adjust_stock(
                store_id=order.store_id,
                product_id=product.id,
                delta=line["quantity"],
                reason=StockReason.RETURN,
                actor_id=str(returned_by),
                order_id=order.id,
                return_id=row.id,
                note=f"Return on delivery {delivery.id} ({line['reason'].value})",
            )
            result.returns.append(row)
            result.return_value_cents += line_value

        invoice = get_or_create_invoice(order)
        result.credit_applied_cents = apply_return_credit(invoice, result.return_value_cents, today=today)
        result.invoice = invoice

        store = lock_for_update(db.session.query(Store).filter_by(id=order.store_id)).first()
        credit_service.credit(store, result.credit_applied_cents)

        append_ledger_event(
            store_id=order.store_id,
            event_type="returns.processed",
            event_category="returns",
            entity_type="delivery",
            entity_id=delivery.id,
            actor_id=returned_by,
            order_id=order.id,
            delivery_id=delivery.id,
            invoice_id=invoice.id,
            occurred_at=now,
            payload={
                "return_ids": [r.id for r in result.returns],
                "return_value_cents": result.return_value_cents,
                "credit_applied_cents": result.credit_applied_cents,
                "payment_status": invoice.payment_status,
            },
        )
        db.session.commit()
        return result

    return run_with_retry(_op)


def get_returns_for_delivery(delivery_id: int) -> list[DeliveryReturn]:
    if db.session.get(Delivery, delivery_id) is None:
        raise NotFound("Delivery", delivery_id)
    return (
        db.session.query(DeliveryReturn)
        .filter_by(delivery_id=delivery_id)
        .order_by(DeliveryReturn.id.asc())
        .all()
    )


def list_returns(*, store_id: int | None = None, reason: str | None = None, limit: int = 200) -> list[DeliveryReturn]:
    q = db.session.query(DeliveryReturn)
    if store_id is not None:
        q = q.join(Delivery, Delivery.id == DeliveryReturn.delivery_id).join(Order, Order.id == Delivery.order_id)
        q = q.filter(Order.store_id == store_id)
    if reason:
        q = q.filter(DeliveryReturn.reason == reason)
    return q.order_by(DeliveryReturn.id.desc()).limit(limit).all()
