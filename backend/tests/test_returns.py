from datetime import timedelta

import pytest

from wholesale.extensions import db
from wholesale.errors import InvalidReason, InvalidState, OverReturn, ValidationFailed
from wholesale.models import DeliveryReturn, StockMovement, Store, Invoice
from wholesale.validation import ValidationError
from wholesale.services import return_service, stock_service, order_service, invoice_service
from wholesale.time_utils import utctoday

from conftest import make_order, make_delivered_order


YESTERDAY = (utctoday() - timedelta(days=1)).isoformat()


@pytest.fixture
def delivered(store, product):
    """Ten ham trays sold at 2000 each; the catalogue price is 1000."""
    order, delivery = make_delivered_order(store, [(product, 10, 2000)])
    return order, delivery


def _expired(product, quantity):
    return {"product_id": product.id, "quantity": quantity, "reason": "expired", "expiry_date": YESTERDAY}


def test_return_credits_invoice_stock_and_balance(delivered, store, product):
    order, delivery = delivered
    assert order.invoice.total_amount_cents == 20000

    result = return_service.process_returns(delivery.id, [_expired(product, 4)], "driver-7")

    assert result.return_value_cents == 4000
    assert result.credit_applied_cents == 4000
    assert result.invoice.return_amount_cents == 4000
    assert result.invoice.collectible_amount_cents == 16000
    assert result.invoice.payment_status == "pending"

    row = result.returns[0]
    assert (row.quantity, row.reason, row.unit_price_cents, row.line_value_cents) == (4, "expired", 1000, 4000)
    assert row.returned_by == "driver-7"

    assert stock_service.get_stock_level(store.id, product.id) == 4
    movement = db.session.query(StockMovement).filter_by(return_id=row.id).one()
    assert (movement.reason, movement.quantity_delta) == ("return", 4)

    assert db.session.get(Store, store.id).current_balance_cents == 16000


def test_over_return_is_rejected_without_side_effects(delivered, store, product):
    _, delivery = delivered
    return_service.process_returns(delivery.id, [_expired(product, 4)], "driver-7")

    with pytest.raises(OverReturn) as exc:
        return_service.process_returns(delivery.id, [_expired(product, 7)], "driver-7")

    violation = exc.value.violations[0]
    assert violation["already_returned_quantity"] == 4
    assert violation["delivered_quantity"] == 10
    assert exc.value.http_status == 409

    db.session.expire_all()
    assert db.session.query(DeliveryReturn).count() == 1
    assert stock_service.get_stock_level(store.id, product.id) == 4
    assert db.session.query(Invoice).one().return_amount_cents == 4000
    assert db.session.get(Store, store.id).current_balance_cents == 16000


def test_lines_in_one_batch_count_against_each_other(delivered, product):
    _, delivery = delivered
    with pytest.raises(OverReturn):
        return_service.process_returns(
            delivery.id,
            [_expired(product, 6), {"product_id": product.id, "quantity": 5, "reason": "damaged"}],
            "driver-7",
        )
    assert db.session.query(DeliveryReturn).count() == 0


def test_exact_remaining_quantity_is_accepted(delivered, product):
    _, delivery = delivered
    return_service.process_returns(delivery.id, [_expired(product, 4)], "driver-7")
    result = return_service.process_returns(
        delivery.id, [{"product_id": product.id, "quantity": 6, "reason": "unsold"}], "driver-7"
    )
    assert result.return_value_cents == 6000
    assert return_service.returnable_quantities(delivery.id) == [{
        "product_id": product.id,
        "delivered_quantity": 10,
        "returned_quantity": 10,
        "returnable_quantity": 0,
    }]


def test_invalid_reason(delivered, product):
    _, delivery = delivered
    with pytest.raises(InvalidReason):
        return_service.process_returns(
            delivery.id, [{"product_id": product.id, "quantity": 1, "reason": "stolen"}], "driver-7"
        )


def test_mixed_violations_are_all_reported(delivered, product, product_b):
    _, delivery = delivered
    with pytest.raises(ValidationFailed) as exc:
        return_service.process_returns(
            delivery.id,
            [
                {"product_id": product_b.id, "quantity": 1, "reason": "damaged"},
                {"product_id": product.id, "quantity": 0, "reason": "damaged"},
                {"product_id": product.id, "quantity": 1, "reason": "stolen"},
            ],
            "driver-7",
        )
    kinds = sorted(v["kind"] for v in exc.value.errors)
    assert kinds == ["invalid_quantity", "invalid_reason", "not_on_order"]


def test_over_return_is_reported_alongside_other_line_errors(delivered, product):
    _, delivery = delivered
    with pytest.raises(ValidationFailed) as exc:
        return_service.process_returns(
            delivery.id, [{"product_id": product.id, "quantity": 11, "reason": "stolen"}], "driver-7"
        )
    kinds = sorted(v["kind"] for v in exc.value.errors)
    assert kinds == ["invalid_reason", "over_return"]
    assert db.session.query(DeliveryReturn).count() == 0


def test_expired_reason_with_future_expiry_is_refused(delivered, product):
    _, delivery = delivered
    tomorrow = (utctoday() + timedelta(days=1)).isoformat()
    with pytest.raises(ValidationFailed) as exc:
        return_service.process_returns(
            delivery.id,
            [{"product_id": product.id, "quantity": 1, "reason": "expired", "expiry_date": tomorrow}],
            "driver-7",
        )
    assert exc.value.errors[0]["kind"] == "not_expired"


def test_returns_need_a_delivered_delivery(store, product):
    order = order_service.approve_order(make_order(store, [(product, 3)]).id)
    with pytest.raises(InvalidState):
        return_service.process_returns(order.delivery.id, [_expired(product, 1)], "driver-7")


def test_returns_need_returned_by_and_items(delivered, product):
    _, delivery = delivered
    with pytest.raises(ValidationError):
        return_service.process_returns(delivery.id, [_expired(product, 1)], "")
    with pytest.raises(ValidationError):
        return_service.process_returns(delivery.id, [], "driver-7")


def test_return_after_full_payment_does_not_push_balance_negative(store, product):
    order, delivery = make_delivered_order(store, [(product, 2)])
    invoice_service.record_delivery_payment(delivery.id, 2000, "cash", "driver-7")
    assert db.session.get(Store, store.id).current_balance_cents == 0

    result = return_service.process_returns(delivery.id, [_expired(product, 1)], "driver-7")
    assert result.return_value_cents == 1000
    assert result.credit_applied_cents == 0
    assert result.invoice.payment_status == "paid"
    assert db.session.get(Store, store.id).current_balance_cents == 0


def test_list_returns(delivered, store, product):
    _, delivery = delivered
    return_service.process_returns(
        delivery.id,
        [_expired(product, 1), {"product_id": product.id, "quantity": 2, "reason": "damaged"}],
        "driver-7",
    )
    assert len(return_service.get_returns_for_delivery(delivery.id)) == 2
    assert len(return_service.list_returns(store_id=store.id, reason="damaged")) == 1
    assert return_service.list_returns(store_id=store.id + 1) == []
