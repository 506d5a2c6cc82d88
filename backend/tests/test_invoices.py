from datetime import timedelta

import pytest

from wholesale.extensions import db
from wholesale.errors import InvalidQuantity, InvalidReason, InvalidState, NotFound
from wholesale.models import Store, Invoice, PaymentReminder, Notification, LedgerEvent
from wholesale.validation import ValidationError
from wholesale.services import invoice_service, reminder_service, order_service

from conftest import make_order, make_delivered_order


@pytest.fixture
def invoice(store, product):
    order = order_service.approve_order(make_order(store, [(product, 5)]).id)
    return order.invoice


def test_partial_then_full_payment(invoice, store):
    payment = invoice_service.record_payment(invoice.id, 2000, "bank_transfer", "office", receipt_ref="TX-1")
    assert payment.amount_cents == 2000
    assert payment.invoice.paid_amount_cents == 2000
    assert payment.invoice.payment_status == "pending"
    assert db.session.get(Store, store.id).current_balance_cents == 3000

    payment = invoice_service.record_payment(invoice.id, 3000, "cash", "office")
    assert payment.invoice.payment_status == "paid"
    assert payment.invoice.paid_at is not None
    assert payment.invoice.collectible_amount_cents == 0
    assert db.session.get(Store, store.id).current_balance_cents == 0
    assert db.session.query(LedgerEvent).filter_by(event_type="payment.recorded").count() == 2


def test_payment_cannot_exceed_collectible(invoice):
    with pytest.raises(InvalidQuantity):
        invoice_service.record_payment(invoice.id, 5001, "cash", "office")
    db.session.expire_all()
    assert db.session.get(Invoice, invoice.id).paid_amount_cents == 0


def test_paid_invoice_takes_no_more_money(invoice):
    invoice_service.record_payment(invoice.id, 5000, "cash", "office")
    with pytest.raises(InvalidState):
        invoice_service.record_payment(invoice.id, 1, "cash", "office")


def test_payment_input_checks(invoice):
    with pytest.raises(InvalidQuantity):
        invoice_service.record_payment(invoice.id, 0, "cash", "office")
    with pytest.raises(InvalidReason):
        invoice_service.record_payment(invoice.id, 100, "cheque", "office")
    with pytest.raises(ValidationError):
        invoice_service.record_payment(invoice.id, 100, "cash", "")
    with pytest.raises(NotFound):
        invoice_service.record_payment(987654, 100, "cash", "office")


def test_delivery_payment_requires_delivered(invoice):
    delivery = invoice.order.delivery
    with pytest.raises(InvalidState):
        invoice_service.record_delivery_payment(delivery.id, 100, "cash", "driver-7")


def test_delivery_payment_methods(store, product):
    _, delivery = make_delivered_order(store, [(product, 2)])
    with pytest.raises(InvalidReason):
        invoice_service.record_delivery_payment(delivery.id, 100, "bank_transfer", "driver-7")

    payment = invoice_service.record_delivery_payment(delivery.id, 500, "direct_debit", "driver-7")
    assert payment.delivery_id == delivery.id
    assert payment.invoice.paid_amount_cents == 500


def test_mark_overdue_only_after_due_date(invoice):
    assert invoice_service.mark_overdue_invoices(invoice.due_date) == []

    flipped = invoice_service.mark_overdue_invoices(invoice.due_date + timedelta(days=1))
    assert [i.id for i in flipped] == [invoice.id]
    assert flipped[0].payment_status == "overdue"

    # Already overdue: nothing to flip
    assert invoice_service.mark_overdue_invoices(invoice.due_date + timedelta(days=2)) == []


def test_paying_an_overdue_invoice_settles_it(invoice):
    invoice_service.mark_overdue_invoices(invoice.due_date + timedelta(days=1))
    payment = invoice_service.record_payment(invoice.id, 5000, "bank_transfer", "office")
    assert payment.invoice.payment_status == "paid"


@pytest.mark.parametrize("days,expected", [(1, "first"), (7, "first"), (8, "second"), (14, "second"), (15, "final")])
def test_reminder_type_for(days, expected):
    assert reminder_service.reminder_type_for(days).value == expected


def test_reminders_once_per_invoice_per_day(invoice, store):
    day = invoice.due_date + timedelta(days=3)
    invoice_service.mark_overdue_invoices(day)

    first = reminder_service.send_payment_reminders(day)
    assert len(first.sent) == 1
    assert first.sent[0].reminder_type == "first"
    assert first.sent[0].days_overdue == 3

    again = reminder_service.send_payment_reminders(day)
    assert again.sent == []
    assert again.skipped == 1

    later = reminder_service.send_payment_reminders(day + timedelta(days=10))
    assert [r.reminder_type for r in later.sent] == ["second"]

    assert db.session.query(PaymentReminder).filter_by(invoice_id=invoice.id).count() == 2
    assert len(reminder_service.list_reminders(invoice.id)) == 2
    assert db.session.query(Notification).filter_by(
        store_id=store.id, notification_type="payment_reminder"
    ).count() == 2


def test_no_reminders_for_pending_or_paid(invoice):
    result = reminder_service.send_payment_reminders(invoice.due_date + timedelta(days=5))
    assert result.sent == []
    assert result.skipped == 0


def test_cancel_removes_reminded_unpaid_invoice(invoice, store):
    day = invoice.due_date + timedelta(days=1)
    invoice_service.mark_overdue_invoices(day)
    reminder_service.send_payment_reminders(day)

    order_service.cancel_order(invoice.order_id)
    assert db.session.query(Invoice).count() == 0
    assert db.session.query(PaymentReminder).count() == 0
    assert db.session.get(Store, store.id).current_balance_cents == 0


def test_list_invoices(invoice, store):
    assert [i.id for i in invoice_service.list_invoices(store_id=store.id)] == [invoice.id]
    assert invoice_service.list_invoices(payment_status="paid") == []
