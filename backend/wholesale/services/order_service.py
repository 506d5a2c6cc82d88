"""
Order Service - order document lifecycle and its side effects

================================================================================
APPROVAL IS ATOMIC
================================================================================

approve_order() runs one transaction that:
1. re-reads the order under lock and checks the transition
2. re-evaluates the store's credit position
3. checks store/product activity and item quantities
4. sets status=approved, stamps approver and time
5. charges final_amount to the store balance
6. creates the kitchen sheet (one line per item), the pending delivery
   and the invoice

Any failure rolls all of it back. The store notification is sent after the
commit and never affects the result.

Approving an order that is already approved returns it unchanged; no second
kitchen sheet, delivery or invoice is ever created.

Validation order (first failure wins):
    NotFound -> InvalidTransition -> CreditLimitExceeded -> InactiveStore
    -> EmptyOrder -> InactiveProduct -> InvalidQuantity

================================================================================
"""

from __future__ import annotations

from ..extensions import db
from ..errors import (
    NotFound,
    InactiveStore,
    InactiveProduct,
    EmptyOrder,
    InvalidQuantity,
    InvalidState,
)
from ..models import (
    Store,
    Product,
    Order,
    OrderItem,
    OrderStatus,
    OrderSource,
)
from ..validation import ValidationError, coerce_int
from wholesale.time_utils import utcnow
from .pricing_service import apply_order_totals, line_total
from .lifecycle_service import require_transition, is_order_editable
from .document_service import next_document_number
from .ledger_service import append_ledger_event
from .concurrency import lock_for_update, run_with_retry
from . import credit_service, kitchen_service, delivery_service, invoice_service, notification_service


CREATABLE_STATUSES = frozenset({OrderStatus.DRAFT, OrderStatus.PENDING})


def _log(order: Order, event_type: str, actor_id: str | None, note: str | None = None, **payload) -> None:
    append_ledger_event(
        store_id=order.store_id,
        event_type=event_type,
        event_category="orders",
        entity_type="order",
        entity_id=order.id,
        actor_id=actor_id,
        order_id=order.id,
        note=note,
        payload=payload or None,
    )


def _load_locked(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise NotFound("Order", order_id)
    return order


def _require_editable(order: Order) -> None:
    if not is_order_editable(order.status):
        raise InvalidState(
            f"Order {order.order_number} cannot be modified in status '{order.status}'",
            details={"order_id": order.id, "status": order.status, "editable_statuses": ["draft", "pending"]},
        )


def _coerce_quantity(value, *, product_id=None) -> int:
    if isinstance(value, bool) or value is None:
        raise InvalidQuantity("quantity must be a positive integer", details={"product_id": product_id, "quantity": value})
    try:
        qty = int(value)
    except (TypeError, ValueError):
        raise InvalidQuantity("quantity must be a positive integer", details={"product_id": product_id, "quantity": value}) from None
    if qty != value and not isinstance(value, str):
        raise InvalidQuantity("quantity must be a whole number", details={"product_id": product_id, "quantity": value})
    if qty <= 0:
        raise InvalidQuantity("quantity must be greater than 0", details={"product_id": product_id, "quantity": qty})
    return qty


def _coerce_discount(value) -> int:
    if value is None:
        return 0
    discount = coerce_int("discount_amount_cents", value)
    if discount < 0:
        raise InvalidQuantity("discount_amount_cents cannot be negative", details={"discount_amount_cents": discount})
    return discount


def _build_item(spec: dict) -> OrderItem:
    """
    Turn {"product_id", "quantity", optional "unit_price_cents"} into an OrderItem.

    unit_price_cents defaults to the product's current price (snapshot).
    """
    if not isinstance(spec, dict) or spec.get("product_id") is None:
        raise ValidationError("each item needs a product_id", details={"item": spec})

    product_id = spec["product_id"]
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound("Product", product_id)
    if not product.is_active:
        raise InactiveProduct([product.id])

    quantity = _coerce_quantity(spec.get("quantity"), product_id=product.id)

    unit_price = spec.get("unit_price_cents")
    if unit_price is None:
        unit_price = product.price_cents
    elif isinstance(unit_price, bool) or not isinstance(unit_price, int) or unit_price < 0:
        raise InvalidQuantity(
            "unit_price_cents must be an integer >= 0",
            details={"product_id": product.id, "unit_price_cents": unit_price},
        )

    return OrderItem(
        product_id=product.id,
        quantity=quantity,
        unit_price_cents=unit_price,
        total_price_cents=line_total(quantity, unit_price),
    )


def build_order(
    *,
    store: Store,
    items: list[dict],
    status: OrderStatus = OrderStatus.PENDING,
    source: OrderSource = OrderSource.MANUAL,
    replenishment_key: str | None = None,
    discount_amount_cents: int = 0,
    notes: str | None = None,
    created_by: str | None = None,
) -> Order:
    """Create and flush an order with its items and totals (never commits)."""
    if not items:
        raise EmptyOrder()

    order = Order(
        order_number=next_document_number(store_id=store.id, document_type="ORDER", prefix="ORD"),
        store_id=store.id,
        status=status.value,
        source=source.value,
        replenishment_key=replenishment_key,
        discount_amount_cents=0,
        notes=notes,
        created_by=created_by,
    )
    for spec in items:
        order.items.append(_build_item(spec))
    apply_order_totals(order, discount_amount_cents)

    db.session.add(order)
    db.session.flush()
    _log(order, "order.created", created_by, status=order.status, source=order.source,
         final_amount_cents=order.final_amount_cents)
    return order


# =============================================================================
# CREATION AND EDITS (draft / pending only)
# =============================================================================

def create_order(
    store_id: int,
    items: list[dict],
    *,
    discount_amount_cents=0,
    notes: str | None = None,
    created_by: str | None = None,
    status=OrderStatus.PENDING,
) -> Order:
    order_status = OrderStatus.parse(status)
    if order_status not in CREATABLE_STATUSES:
        raise ValidationError(
            f"Orders can only be created as draft or pending, not '{status}'",
            details={"status": status, "allowed": ["draft", "pending"]},
        )
    discount = _coerce_discount(discount_amount_cents)

    def _op():
        store = db.session.get(Store, store_id)
        if store is None:
            raise NotFound("Store", store_id)
        if not store.is_active:
            raise InactiveStore(store.id)

        order = build_order(
            store=store,
            items=items,
            status=order_status,
            discount_amount_cents=discount,
            notes=notes,
            created_by=created_by,
        )
        db.session.commit()
        return order

    return run_with_retry(_op)


def replace_items(order_id: int, items: list[dict], *, actor_id: str | None = None) -> Order:
    """Replace every line of an editable order and re-total it."""
    def _op():
        order = _load_locked(order_id)
        _require_editable(order)
        if not items:
            raise EmptyOrder(order.id)

        new_items = [_build_item(spec) for spec in items]
        order.items.clear()
        order.items.extend(new_items)
        apply_order_totals(order)
        db.session.flush()

        _log(order, "order.items_replaced", actor_id, item_count=len(new_items),
             final_amount_cents=order.final_amount_cents)
        db.session.commit()
        return order

    return run_with_retry(_op)


def add_item(
    order_id: int,
    product_id: int,
    quantity,
    *,
    unit_price_cents: int | None = None,
    actor_id: str | None = None,
) -> Order:
    """Add a product line; a product already on the order gets its quantity increased."""
    def _op():
        order = _load_locked(order_id)
        _require_editable(order)

        new_item = _build_item({"product_id": product_id, "quantity": quantity, "unit_price_cents": unit_price_cents})
        existing = next((i for i in order.items if i.product_id == new_item.product_id), None)
        if existing is not None and unit_price_cents is None:
            existing.quantity += new_item.quantity
        else:
            order.items.append(new_item)

        apply_order_totals(order)
        db.session.flush()
        _log(order, "order.item_added", actor_id, product_id=new_item.product_id, quantity=new_item.quantity,
             final_amount_cents=order.final_amount_cents)
        db.session.commit()
        return order

    return run_with_retry(_op)


def update_item_quantity(order_id: int, item_id: int, quantity, *, actor_id: str | None = None) -> Order:
    qty = _coerce_quantity(quantity)

    def _op():
        order = _load_locked(order_id)
        _require_editable(order)
        item = next((i for i in order.items if i.id == item_id), None)
        if item is None:
            raise NotFound("OrderItem", item_id)

        item.quantity = qty
        apply_order_totals(order)
        db.session.flush()
        _log(order, "order.item_updated", actor_id, item_id=item_id, quantity=qty,
             final_amount_cents=order.final_amount_cents)
        db.session.commit()
        return order

    return run_with_retry(_op)


def remove_item(order_id: int, item_id: int, *, actor_id: str | None = None) -> Order:
    def _op():
        order = _load_locked(order_id)
        _require_editable(order)
        item = next((i for i in order.items if i.id == item_id), None)
        if item is None:
            raise NotFound("OrderItem", item_id)

        order.items.remove(item)
        apply_order_totals(order)
        db.session.flush()
        _log(order, "order.item_removed", actor_id, item_id=item_id, product_id=item.product_id,
             final_amount_cents=order.final_amount_cents)
        db.session.commit()
        return order

    return run_with_retry(_op)


def set_discount(order_id: int, discount_amount_cents, *, actor_id: str | None = None) -> Order:
    """Set the requested discount; pricing clamps it to the subtotal."""
    discount = _coerce_discount(discount_amount_cents)

    def _op():
        order = _load_locked(order_id)
        _require_editable(order)
        apply_order_totals(order, discount)
        _log(order, "order.discount_set", actor_id, requested_cents=discount,
             discount_amount_cents=order.discount_amount_cents, final_amount_cents=order.final_amount_cents)
        db.session.commit()
        return order

    return run_with_retry(_op)


# =============================================================================
# TRANSITIONS
# =============================================================================

def submit_order(order_id: int, *, actor_id: str | None = None) -> Order:
    """draft -> pending."""
    def _op():
        order = _load_locked(order_id)
        previous = order.status
        require_transition("order", previous, OrderStatus.PENDING)
        if not order.items:
            raise EmptyOrder(order.id)

        order.status = OrderStatus.PENDING.value
        _log(order, "order.submitted", actor_id, **{"from": previous, "to": order.status})
        db.session.commit()
        return order

    return run_with_retry(_op)


def _check_approvable(order: Order, store: Store) -> None:
    credit_service.require_credit_available(store, order.final_amount_cents)

    if not store.is_active:
        raise InactiveStore(store.id)

    if not order.items:
        raise EmptyOrder(order.id)

    inactive = sorted({item.product_id for item in order.items if not item.product.is_active})
    if inactive:
        raise InactiveProduct(inactive)

    bad_lines = [
        {"item_id": item.id, "product_id": item.product_id, "quantity": item.quantity}
        for item in order.items
        if item.quantity is None or item.quantity <= 0
    ]
    if bad_lines:
        raise InvalidQuantity("Order contains items with invalid quantity", details={"items": bad_lines})


def approve_order(order_id: int, approved_by: str | None = None) -> Order:
    def _op():
        order = _load_locked(order_id)
        if order.status == OrderStatus.APPROVED.value:
            return order, False

        previous = order.status
        require_transition("order", previous, OrderStatus.APPROVED)

        store = lock_for_update(db.session.query(Store).filter_by(id=order.store_id)).first()
        if store is None:
            raise NotFound("Store", order.store_id)
        _check_approvable(order, store)

        now = utcnow()
        order.status = OrderStatus.APPROVED.value
        order.approved_by = approved_by
        order.approved_at = now

        new_balance = credit_service.charge(store, order.final_amount_cents)
        sheet = kitchen_service.create_sheet_for_order(order)
        delivery = delivery_service.create_delivery_for_order(order)
        invoice = invoice_service.create_invoice_for_order(order, today=now.date())

        _log(
            order,
            "order.approved",
            approved_by,
            note=f"Order {order.order_number} approved",
            **{
                "from": previous,
                "to": order.status,
                "final_amount_cents": order.final_amount_cents,
                "store_balance_cents": new_balance,
                "kitchen_sheet_id": sheet.id,
                "delivery_id": delivery.id,
                "invoice_id": invoice.id,
            },
        )
        db.session.commit()
        return order, True

    order, newly_approved = run_with_retry(_op)

    if newly_approved:
        notification_service.dispatch(
            notification_type=notification_service.ORDER_APPROVED,
            store_id=order.store_id,
            title=f"Order {order.order_number} approved",
            message=f"Your order {order.order_number} has been approved and is being prepared.",
            entity_type="order",
            entity_id=order.id,
        )
    return order


def reject_order(order_id: int, reason: str, *, rejected_by: str | None = None) -> Order:
    """Reject a draft/pending order; no stock or credit effect."""
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A rejection reason is required", details={"field": "reason"})

    def _op():
        order = _load_locked(order_id)
        previous = order.status
        require_transition("order", previous, OrderStatus.REJECTED)

        note = f"[REJECTED] {reason} (by: {rejected_by or 'unknown'})"
        order.notes = f"{order.notes}\n\n{note}" if order.notes else note
        order.status = OrderStatus.REJECTED.value
        order.rejected_at = utcnow()

        _log(order, "order.rejected", rejected_by, note=reason, **{"from": previous, "to": order.status})
        db.session.commit()
        return order

    order = run_with_retry(_op)
    notification_service.dispatch(
        notification_type=notification_service.ORDER_REJECTED,
        store_id=order.store_id,
        title=f"Order {order.order_number} rejected",
        message=f"Your order {order.order_number} was rejected: {reason}",
        entity_type="order",
        entity_id=order.id,
    )
    return order


def cancel_order(order_id: int, *, actor_id: str | None = None, reason: str | None = None) -> Order:
    """
    Cancel any non-terminal order.

    From approved: the open delivery and kitchen sheet are cancelled, the
    unpaid invoice is removed and the credit charge is reversed, all in the
    same transaction.
    """
    def _op():
        order = _load_locked(order_id)
        previous = order.status
        require_transition("order", previous, OrderStatus.CANCELLED)

        reversed_cents = 0
        if previous == OrderStatus.APPROVED.value:
            store = lock_for_update(db.session.query(Store).filter_by(id=order.store_id)).first()
            delivery_service.cancel_delivery_for_order(order)
            kitchen_service.cancel_sheet_for_order(order)

            invoice = order.invoice
            if invoice is not None:
                reversed_cents = invoice_service.remove_unpaid_invoice(invoice)
            else:
                reversed_cents = order.final_amount_cents
            credit_service.credit(store, reversed_cents)

        if reason:
            note = f"[CANCELLED] {reason} (by: {actor_id or 'unknown'})"
            order.notes = f"{order.notes}\n\n{note}" if order.notes else note
        order.status = OrderStatus.CANCELLED.value
        order.cancelled_at = utcnow()

        _log(order, "order.cancelled", actor_id, note=reason,
             **{"from": previous, "to": order.status, "balance_reversed_cents": reversed_cents})
        db.session.commit()
        return order

    return run_with_retry(_op)


def mark_order_completed(order: Order, *, actor_id: str | None = None) -> Order:
    """approved -> completed inside the caller's transaction; already completed is a no-op."""
    if order.status == OrderStatus.COMPLETED.value:
        return order
    previous = order.status
    require_transition("order", previous, OrderStatus.COMPLETED)
    order.status = OrderStatus.COMPLETED.value
    order.completed_at = utcnow()
    _log(order, "order.completed", actor_id, **{"from": previous, "to": order.status})
    return order


def complete_order(order_id: int, *, actor_id: str | None = None) -> Order:
    def _op():
        order = _load_locked(order_id)
        if order.status == OrderStatus.COMPLETED.value:
            require_transition("order", order.status, OrderStatus.COMPLETED)
        mark_order_completed(order, actor_id=actor_id)
        db.session.commit()
        return order

    return run_with_retry(_op)


# =============================================================================
# READS
# =============================================================================

def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFound("Order", order_id)
    return order


def list_orders(
    *,
    store_id: int | None = None,
    status: str | None = None,
    source: str | None = None,
    limit: int = 200,
) -> list[Order]:
    q = db.session.query(Order)
    if store_id is not None:
        q = q.filter(Order.store_id == store_id)
    if status:
        q = q.filter(Order.status == status)
    if source:
        q = q.filter(Order.source == source)
    return q.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()
