import pytest

from wholesale.extensions import db
from wholesale.errors import (
    CreditLimitExceeded,
    EmptyOrder,
    InactiveProduct,
    InactiveStore,
    InvalidQuantity,
    InvalidState,
    InvalidTransition,
    NotFound,
)
from wholesale.models import (
    Store,
    Order,
    KitchenSheet,
    Delivery,
    Invoice,
    LedgerEvent,
    Notification,
    OrderStatus,
    DeliveryStatus,
    KitchenSheetStatus,
)
from wholesale.validation import ValidationError
from wholesale.services import order_service, invoice_service

from conftest import make_order


# =============================================================================
# CREATION AND EDITS
# =============================================================================

def test_create_order_snapshots_prices_and_totals(store, product, product_b):
    order = make_order(store, [(product, 3), (product_b, 4)], discount_amount_cents=500, notes="Friday run")

    assert order.status == OrderStatus.PENDING.value
    assert order.order_number.startswith("ORD-")
    assert [(i.unit_price_cents, i.total_price_cents) for i in order.items] == [(1000, 3000), (250, 1000)]
    assert order.total_amount_cents == 4000
    assert order.discount_amount_cents == 500
    assert order.final_amount_cents == 3500


def test_order_numbers_are_sequential_per_store(store, product):
    first = make_order(store, [(product, 1)])
    second = make_order(store, [(product, 1)])
    assert first.order_number != second.order_number
    assert int(second.order_number.rsplit("-", 1)[1]) == int(first.order_number.rsplit("-", 1)[1]) + 1


def test_create_order_requires_items(store):
    with pytest.raises(EmptyOrder):
        order_service.create_order(store.id, [])


def test_create_order_rejects_bad_quantity(store, product):
    with pytest.raises(InvalidQuantity):
        make_order(store, [(product, 0)])
    with pytest.raises(InvalidQuantity):
        order_service.create_order(store.id, [{"product_id": product.id, "quantity": 1.5}])
    assert db.session.query(Order).count() == 0


def test_create_order_rejects_inactive_product(store, product):
    product.is_active = False
    db.session.commit()
    with pytest.raises(InactiveProduct):
        make_order(store, [(product, 1)])


def test_create_order_for_inactive_or_missing_store(store, product):
    with pytest.raises(NotFound):
        order_service.create_order(9999, [{"product_id": product.id, "quantity": 1}])

    store.is_active = False
    db.session.commit()
    with pytest.raises(InactiveStore):
        make_order(store, [(product, 1)])


def test_create_order_only_as_draft_or_pending(store, product):
    draft = make_order(store, [(product, 1)], status="draft")
    assert draft.status == "draft"
    with pytest.raises(ValidationError):
        make_order(store, [(product, 1)], status="approved")


def test_item_edits_retotal_the_order(store, product, product_b):
    order = make_order(store, [(product, 2)], discount_amount_cents=100)
    assert order.final_amount_cents == 1900

    order = order_service.add_item(order.id, product_b.id, 4)
    assert order.total_amount_cents == 3000
    assert order.final_amount_cents == 2900

    # Same product without an explicit price merges into the existing line
    order = order_service.add_item(order.id, product.id, 1)
    assert len(order.items) == 2
    assert order.total_amount_cents == 4000

    ham_line = next(i for i in order.items if i.product_id == product.id)
    order = order_service.update_item_quantity(order.id, ham_line.id, 5)
    assert order.total_amount_cents == 6000

    salad_line = next(i for i in order.items if i.product_id == product_b.id)
    order = order_service.remove_item(order.id, salad_line.id)
    assert order.total_amount_cents == 5000
    assert order.final_amount_cents == 4900

    order = order_service.set_discount(order.id, 10000)
    assert order.discount_amount_cents == 5000
    assert order.final_amount_cents == 0


def test_discount_must_be_whole_cents(store, product):
    with pytest.raises(ValidationError):
        make_order(store, [(product, 2)], discount_amount_cents=10.9)
    assert db.session.query(Order).count() == 0

    order = make_order(store, [(product, 2)])
    with pytest.raises(ValidationError):
        order_service.set_discount(order.id, 99.99)
    with pytest.raises(InvalidQuantity):
        order_service.set_discount(order.id, -1)
    assert order_service.set_discount(order.id, "150").discount_amount_cents == 150


def test_replace_items(store, product, product_b):
    order = make_order(store, [(product, 2)])
    order = order_service.replace_items(order.id, [{"product_id": product_b.id, "quantity": 8}])
    assert [(i.product_id, i.quantity) for i in order.items] == [(product_b.id, 8)]
    assert order.final_amount_cents == 2000


def test_approved_order_is_not_editable(store, product):
    order = make_order(store, [(product, 2)])
    order_service.approve_order(order.id)
    with pytest.raises(InvalidState):
        order_service.add_item(order.id, product.id, 1)
    with pytest.raises(InvalidState):
        order_service.set_discount(order.id, 10)


def test_submit_draft(store, product):
    draft = make_order(store, [(product, 1)], status="draft")
    submitted = order_service.submit_order(draft.id)
    assert submitted.status == OrderStatus.PENDING.value
    with pytest.raises(InvalidTransition):
        order_service.submit_order(draft.id)


# =============================================================================
# APPROVAL
# =============================================================================

def test_approval_within_credit_limit(limited_store, product):
    order = make_order(limited_store, [(product, 1, 800)])
    approved = order_service.approve_order(order.id, approved_by="manager")

    assert approved.status == OrderStatus.APPROVED.value
    assert approved.approved_by == "manager"
    assert approved.approved_at is not None
    assert db.session.get(Store, limited_store.id).current_balance_cents == 4800


def test_approval_over_credit_limit_changes_nothing(limited_store, product):
    order = make_order(limited_store, [(product, 1, 1200)])

    with pytest.raises(CreditLimitExceeded) as exc:
        order_service.approve_order(order.id)

    assert exc.value.details["new_balance_cents"] == 5200
    assert exc.value.http_status == 409
    db.session.expire_all()
    assert db.session.get(Order, order.id).status == OrderStatus.PENDING.value
    assert db.session.get(Store, limited_store.id).current_balance_cents == 4000
    assert db.session.query(KitchenSheet).count() == 0
    assert db.session.query(Delivery).count() == 0
    assert db.session.query(Invoice).count() == 0


def test_zero_credit_limit_means_unlimited(store, product):
    store.credit_limit_cents = 0
    store.current_balance_cents = 1_000_000
    db.session.commit()

    order = make_order(store, [(product, 50)])
    order_service.approve_order(order.id)
    assert db.session.get(Store, store.id).current_balance_cents == 1_050_000


def test_approval_creates_sheet_delivery_and_invoice(store, product, product_b):
    order = make_order(store, [(product, 10, 2000), (product_b, 2)])
    order = order_service.approve_order(order.id, approved_by="manager")

    sheet = order.kitchen_sheet
    assert sheet.status == KitchenSheetStatus.PENDING.value
    assert sorted((i.product_id, i.quantity) for i in sheet.items) == sorted([(product.id, 10), (product_b.id, 2)])

    assert order.delivery.status == DeliveryStatus.PENDING.value
    assert order.delivery.scheduled_date is not None

    invoice = order.invoice
    assert invoice.invoice_number.startswith("INV-")
    assert invoice.total_amount_cents == 20500
    assert invoice.payment_status == "pending"
    assert (invoice.due_date - order.approved_at.date()).days == 30

    events = [e.event_type for e in db.session.query(LedgerEvent).filter_by(order_id=order.id)]
    assert "order.approved" in events

    notes = db.session.query(Notification).filter_by(store_id=store.id, notification_type="order_approved").all()
    assert len(notes) == 1


def test_approve_twice_is_idempotent(store, product):
    order = make_order(store, [(product, 2)])
    order_service.approve_order(order.id)
    again = order_service.approve_order(order.id)

    assert again.status == OrderStatus.APPROVED.value
    assert db.session.query(KitchenSheet).count() == 1
    assert db.session.query(Delivery).count() == 1
    assert db.session.query(Invoice).count() == 1
    assert db.session.get(Store, store.id).current_balance_cents == 2000


def test_approval_rechecks_product_activity(store, product, product_b):
    order = make_order(store, [(product, 1), (product_b, 1)])
    product_b.is_active = False
    db.session.commit()

    with pytest.raises(InactiveProduct) as exc:
        order_service.approve_order(order.id)
    assert exc.value.product_ids == [product_b.id]


def test_approval_of_inactive_store(store, product):
    order = make_order(store, [(product, 1)])
    store.is_active = False
    db.session.commit()
    with pytest.raises(InactiveStore):
        order_service.approve_order(order.id)


def test_credit_is_checked_before_store_activity(limited_store, product):
    order = make_order(limited_store, [(product, 1, 5000)])
    limited_store.is_active = False
    db.session.commit()
    with pytest.raises(CreditLimitExceeded):
        order_service.approve_order(order.id)


def test_approve_terminal_order_fails(store, product):
    order = make_order(store, [(product, 1)])
    order_service.reject_order(order.id, "Duplicate order", rejected_by="manager")
    with pytest.raises(InvalidTransition):
        order_service.approve_order(order.id)


def test_approve_missing_order(store):
    with pytest.raises(NotFound):
        order_service.approve_order(4242)


# =============================================================================
# REJECT / CANCEL / COMPLETE
# =============================================================================

def test_reject_requires_reason_and_annotates_notes(store, product):
    order = make_order(store, [(product, 1)], notes="Please deliver early")
    with pytest.raises(ValidationError):
        order_service.reject_order(order.id, "   ")

    rejected = order_service.reject_order(order.id, "Out of season", rejected_by="manager")
    assert rejected.status == OrderStatus.REJECTED.value
    assert rejected.rejected_at is not None
    assert rejected.notes.startswith("Please deliver early")
    assert "[REJECTED] Out of season (by: manager)" in rejected.notes
    assert db.session.query(Notification).filter_by(notification_type="order_rejected").count() == 1
    assert db.session.get(Store, store.id).current_balance_cents == 0


def test_cancel_pending_order_has_no_financial_effect(store, product):
    order = make_order(store, [(product, 3)])
    cancelled = order_service.cancel_order(order.id, actor_id="manager", reason="Store closed")
    assert cancelled.status == OrderStatus.CANCELLED.value
    assert "[CANCELLED] Store closed" in cancelled.notes
    assert db.session.get(Store, store.id).current_balance_cents == 0


def test_cancel_approved_order_reverses_everything(store, product):
    order = make_order(store, [(product, 3)])
    order = order_service.approve_order(order.id)
    assert db.session.get(Store, store.id).current_balance_cents == 3000

    cancelled = order_service.cancel_order(order.id, actor_id="manager")

    assert cancelled.status == OrderStatus.CANCELLED.value
    assert cancelled.cancelled_at is not None
    assert cancelled.delivery.status == DeliveryStatus.CANCELLED.value
    assert cancelled.kitchen_sheet.status == KitchenSheetStatus.CANCELLED.value
    assert db.session.query(Invoice).filter_by(order_id=order.id).count() == 0
    assert db.session.get(Store, store.id).current_balance_cents == 0


def test_cancel_after_partial_payment_is_refused(store, product):
    order = make_order(store, [(product, 3)])
    order = order_service.approve_order(order.id)
    invoice_service.record_payment(order.invoice.id, 1000, "bank_transfer", "office")

    with pytest.raises(InvalidState):
        order_service.cancel_order(order.id)
    db.session.expire_all()
    assert db.session.get(Order, order.id).status == OrderStatus.APPROVED.value


def test_cancel_completed_order_fails(store, product):
    order = make_order(store, [(product, 1)])
    order_service.approve_order(order.id)
    order_service.complete_order(order.id)
    with pytest.raises(InvalidTransition):
        order_service.cancel_order(order.id)


def test_complete_requires_approval(store, product):
    order = make_order(store, [(product, 1)])
    with pytest.raises(InvalidTransition):
        order_service.complete_order(order.id)

    order_service.approve_order(order.id)
    completed = order_service.complete_order(order.id, actor_id="driver-7")
    assert completed.status == OrderStatus.COMPLETED.value
    assert completed.completed_at is not None
    with pytest.raises(InvalidTransition):
        order_service.complete_order(order.id)


def test_list_orders_filters(store, limited_store, product):
    make_order(store, [(product, 1)])
    draft = make_order(store, [(product, 1)], status="draft")
    make_order(limited_store, [(product, 1)])

    assert len(order_service.list_orders(store_id=store.id)) == 2
    assert [o.id for o in order_service.list_orders(status="draft")] == [draft.id]
    assert len(order_service.list_orders(source="manual")) == 3
