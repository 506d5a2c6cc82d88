# Overview: Invoices, payments and the collectible-amount rules that tie them to the store balance.

from __future__ import annotations

from datetime import date, timedelta

from flask import current_app

from ..extensions import db
from ..errors import NotFound, InvalidState, InvalidQuantity, InvalidReason
from ..validation import ValidationError
from ..models import (
    Store,
    Order,
    Delivery,
    Invoice,
    Payment,
    PaymentReminder,
    PaymentStatus,
    PaymentMethod,
    DeliveryStatus,
)
from wholesale.time_utils import utcnow, utctoday
from .document_service import next_document_number
from .ledger_service import append_ledger_event
from .concurrency import lock_for_update, run_with_retry
from . import credit_service
"""
Invoice Invariants (authoritative)

- One invoice per approved order, created in the approval transaction.
  Orders approved before invoicing existed get one lazily (get_or_create_invoice).
- total_amount_cents = order.final_amount_cents at creation; never edited.
- return_amount_cents only grows, and only through returns processing.
- paid_amount_cents only grows, and only through record_payment.
- collectible = max(0, total - return_amount - paid_amount).

payment_status after any change:
    collectible <= 0             -> paid
    collectible > 0, past due    -> overdue
    otherwise                    -> unchanged

Store balance:
- Returns subtract the credit actually applied (capped at what was collectible).
- Payments subtract the paid amount.
"""

# Driver collection at the door; bank transfers are reconciled from the office
DELIVERY_PAYMENT_METHODS = frozenset({PaymentMethod.CASH, PaymentMethod.DIRECT_DEBIT})


def _due_date(start: date) -> date:
    return start + timedelta(days=int(current_app.config.get("INVOICE_DUE_DAYS", 30)))


def create_invoice_for_order(order: Order, *, today: date | None = None) -> Invoice:
    """Create the order's invoice inside the caller's transaction (never commits)."""
    issued = today or utctoday()
    invoice = Invoice(
        invoice_number=next_document_number(store_id=order.store_id, document_type="INVOICE", prefix="INV"),
        order_id=order.id,
        store_id=order.store_id,
        total_amount_cents=order.final_amount_cents,
        return_amount_cents=0,
        paid_amount_cents=0,
        payment_status=PaymentStatus.PENDING.value,
        due_date=_due_date(issued),
    )
    db.session.add(invoice)
    db.session.flush()
    return invoice


def get_or_create_invoice(order: Order) -> Invoice:
    invoice = lock_for_update(db.session.query(Invoice).filter_by(order_id=order.id)).first()
    if invoice is not None:
        return invoice
    current_app.logger.warning("Order %s had no invoice; creating one", order.order_number)
    return create_invoice_for_order(order)


def refresh_payment_status(invoice: Invoice, today: date | None = None) -> str:
    today = today or utctoday()
    if invoice.collectible_amount_cents <= 0:
        if invoice.payment_status != PaymentStatus.PAID.value:
            invoice.payment_status = PaymentStatus.PAID.value
            invoice.paid_at = utcnow()
    elif invoice.due_date is not None and invoice.due_date < today:
        invoice.payment_status = PaymentStatus.OVERDUE.value
    return invoice.payment_status


def apply_return_credit(invoice: Invoice, return_value_cents: int, *, today: date | None = None) -> int:
    """
    Add a return's value to the invoice and refresh its payment status.

    Returns the credit actually applied against what was still collectible;
    that, not the full return value, is what comes off the store balance.
    """
    applied = min(int(return_value_cents), invoice.collectible_amount_cents)
    invoice.return_amount_cents = (invoice.return_amount_cents or 0) + int(return_value_cents)
    refresh_payment_status(invoice, today)
    return max(0, applied)


def remove_unpaid_invoice(invoice: Invoice) -> int:
    """
    Delete an invoice with no payments (order cancelled after approval).

    Returns the amount still collectible, which the caller reverses off the balance.
    """
    if invoice.payments or (invoice.paid_amount_cents or 0) > 0:
        raise InvalidState(
            "Cannot remove an invoice that has payments",
            details={"invoice_id": invoice.id, "paid_amount_cents": invoice.paid_amount_cents},
        )
    outstanding = invoice.collectible_amount_cents
    db.session.query(PaymentReminder).filter_by(invoice_id=invoice.id).delete(synchronize_session=False)
    db.session.delete(invoice)
    return outstanding


# =============================================================================
# PAYMENTS
# =============================================================================

def _parse_method(method, allowed=None) -> PaymentMethod:
    allowed = allowed or frozenset(PaymentMethod)
    parsed = PaymentMethod.parse(method)
    if parsed not in allowed:
        raise InvalidReason(
            f"Invalid payment method '{method}'",
            details={"payment_method": method, "allowed": sorted(m.value for m in allowed)},
        )
    return parsed


def _apply_payment_locked(
    invoice: Invoice,
    *,
    amount_cents: int,
    method: PaymentMethod,
    recorded_by: str,
    delivery_id: int | None,
    receipt_ref: str | None,
    notes: str | None,
) -> Payment:
    collectible = invoice.collectible_amount_cents
    if collectible <= 0:
        raise InvalidState(
            f"Invoice {invoice.invoice_number} has nothing left to collect",
            details={"invoice_id": invoice.id, "payment_status": invoice.payment_status},
        )
    if amount_cents > collectible:
        raise InvalidQuantity(
            f"Payment amount exceeds collectible amount. Collectible: {collectible}, Amount: {amount_cents}",
            details={"amount_cents": amount_cents, "collectible_amount_cents": collectible},
        )

    store = lock_for_update(db.session.query(Store).filter_by(id=invoice.store_id)).first()

    payment = Payment(
        invoice_id=invoice.id,
        order_id=invoice.order_id,
        delivery_id=delivery_id,
        amount_cents=amount_cents,
        payment_method=method.value,
        receipt_ref=receipt_ref,
        notes=notes[:255] if notes else None,
        recorded_by=str(recorded_by),
        paid_at=utcnow(),
    )
    db.session.add(payment)

    invoice.paid_amount_cents = (invoice.paid_amount_cents or 0) + amount_cents
    refresh_payment_status(invoice)
    credit_service.credit(store, amount_cents)
    db.session.flush()

    append_ledger_event(
        store_id=invoice.store_id,
        event_type="payment.recorded",
        event_category="payments",
        entity_type="payment",
        entity_id=payment.id,
        actor_id=recorded_by,
        order_id=invoice.order_id,
        delivery_id=delivery_id,
        invoice_id=invoice.id,
        occurred_at=payment.paid_at,
        payload={
            "amount_cents": amount_cents,
            "payment_method": method.value,
            "payment_status": invoice.payment_status,
        },
    )
    return payment


def _require_amount(amount_cents) -> int:
    if isinstance(amount_cents, bool):
        raise InvalidQuantity("amount_cents must be an integer")
    try:
        amount = int(amount_cents)
    except (TypeError, ValueError):
        raise InvalidQuantity("amount_cents must be an integer", details={"amount_cents": amount_cents}) from None
    if amount <= 0:
        raise InvalidQuantity("Payment amount must be greater than 0", details={"amount_cents": amount})
    return amount


def record_payment(
    invoice_id: int,
    amount_cents: int,
    method,
    recorded_by: str,
    *,
    receipt_ref: str | None = None,
    notes: str | None = None,
) -> Payment:
    """Record money received against an invoice (office settlement)."""
    amount = _require_amount(amount_cents)
    payment_method = _parse_method(method)
    if not recorded_by:
        raise ValidationError("recorded_by is required", details={"field": "recorded_by"})

    def _op():
        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if invoice is None:
            raise NotFound("Invoice", invoice_id)

        payment = _apply_payment_locked(
            invoice,
            amount_cents=amount,
            method=payment_method,
            recorded_by=recorded_by,
            delivery_id=None,
            receipt_ref=receipt_ref,
            notes=notes,
        )
        db.session.commit()
        return payment

    return run_with_retry(_op)


def record_delivery_payment(
    delivery_id: int,
    amount_cents: int,
    method,
    recorded_by: str,
    *,
    receipt_ref: str | None = None,
    notes: str | None = None,
) -> Payment:
    """Driver collection on a delivered delivery (cash or direct debit)."""
    amount = _require_amount(amount_cents)
    payment_method = _parse_method(method, DELIVERY_PAYMENT_METHODS)
    if not recorded_by:
        raise ValidationError("recorded_by is required", details={"field": "recorded_by"})

    def _op():
        delivery = lock_for_update(db.session.query(Delivery).filter_by(id=delivery_id)).first()
        if delivery is None:
            raise NotFound("Delivery", delivery_id)
        if delivery.status != DeliveryStatus.DELIVERED.value:
            raise InvalidState(
                "Payment can only be collected for delivered deliveries",
                details={"delivery_id": delivery_id, "status": delivery.status},
            )

        invoice = get_or_create_invoice(delivery.order)
        payment = _apply_payment_locked(
            invoice,
            amount_cents=amount,
            method=payment_method,
            recorded_by=recorded_by,
            delivery_id=delivery.id,
            receipt_ref=receipt_ref,
            notes=notes,
        )
        db.session.commit()
        return payment

    return run_with_retry(_op)


# =============================================================================
# SWEEPS AND READS
# =============================================================================

def mark_overdue_invoices(today: date | None = None) -> list[Invoice]:
    """Flip every unpaid invoice whose due date has passed to overdue."""
    today = today or utctoday()

    def _op():
        candidates = lock_for_update(
            db.session.query(Invoice).filter(
                Invoice.payment_status == PaymentStatus.PENDING.value,
                Invoice.due_date < today,
            )
        ).all()

        flipped = []
        for invoice in candidates:
            if refresh_payment_status(invoice, today) == PaymentStatus.OVERDUE.value:
                flipped.append(invoice)
                append_ledger_event(
                    store_id=invoice.store_id,
                    event_type="invoice.overdue",
                    event_category="invoices",
                    entity_type="invoice",
                    entity_id=invoice.id,
                    order_id=invoice.order_id,
                    payload={"due_date": invoice.due_date.isoformat()},
                )
        db.session.commit()
        return flipped

    return run_with_retry(_op)


def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFound("Invoice", invoice_id)
    return invoice


def list_invoices(*, store_id: int | None = None, payment_status: str | None = None, limit: int = 200) -> list[Invoice]:
    q = db.session.query(Invoice)
    if store_id is not None:
        q = q.filter(Invoice.store_id == store_id)
    if payment_status:
        q = q.filter(Invoice.payment_status == payment_status)
    return q.order_by(Invoice.due_date.asc(), Invoice.id.asc()).limit(limit).all()
