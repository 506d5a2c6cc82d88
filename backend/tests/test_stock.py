import pytest

from wholesale.extensions import db
from wholesale.errors import InvalidQuantity, InvalidReason, NotFound
from wholesale.models import StoreStock, StockMovement, LedgerEvent, Notification
from wholesale.services import stock_service


def test_first_adjustment_creates_entry_and_movement(store, product):
    movement = stock_service.record_adjustment(store.id, product.id, 12, "manual_adjustment", actor_id="clerk")

    assert movement.quantity_delta == 12
    assert movement.resulting_stock == 12
    assert movement.reason == "manual_adjustment"
    assert stock_service.get_stock_level(store.id, product.id) == 12
    assert db.session.query(StoreStock).count() == 1
    assert db.session.query(LedgerEvent).filter_by(event_type="stock.adjusted").count() == 1


def test_projection_equals_sum_of_journal(store, product):
    stock_service.record_adjustment(store.id, product.id, 10, "manual_adjustment")
    stock_service.record_adjustment(store.id, product.id, -3, "wastage")
    stock_service.record_adjustment(store.id, product.id, -2, "replenishment_consumption")
    stock_service.record_adjustment(store.id, product.id, 4, "manual_adjustment")

    total = sum(m.quantity_delta for m in db.session.query(StockMovement).filter_by(store_id=store.id))
    assert total == 9
    assert stock_service.get_stock_level(store.id, product.id) == 9
    assert [m.resulting_stock for m in stock_service.list_movements(store.id)] == [9, 5, 7, 10]


def test_wastage_cannot_go_below_zero(store, product):
    stock_service.record_adjustment(store.id, product.id, 2, "manual_adjustment")
    with pytest.raises(InvalidQuantity):
        stock_service.record_adjustment(store.id, product.id, -3, "wastage")
    assert stock_service.get_stock_level(store.id, product.id) == 2
    assert db.session.query(StockMovement).count() == 1


def test_wastage_must_decrease_stock(store, product):
    with pytest.raises(InvalidQuantity):
        stock_service.record_adjustment(store.id, product.id, 5, "wastage")


def test_manual_adjustment_negative_only_when_allowed(store, product):
    with pytest.raises(InvalidQuantity):
        stock_service.record_adjustment(store.id, product.id, -1, "manual_adjustment")

    movement = stock_service.record_adjustment(
        store.id, product.id, -1, "manual_adjustment", allow_negative=True, note="Miscount"
    )
    assert movement.resulting_stock == -1


def test_return_reason_is_not_a_manual_reason(store, product):
    with pytest.raises(InvalidReason):
        stock_service.record_adjustment(store.id, product.id, 1, "return")
    with pytest.raises(InvalidReason):
        stock_service.record_adjustment(store.id, product.id, 1, "theft")


def test_missing_store_or_product(store, product):
    with pytest.raises(NotFound):
        stock_service.record_adjustment(9999, product.id, 1, "manual_adjustment")
    with pytest.raises(NotFound):
        stock_service.record_adjustment(store.id, 9999, 1, "manual_adjustment")


def test_set_stock_level_journals_the_difference(store, product):
    stock_service.record_adjustment(store.id, product.id, 10, "manual_adjustment")

    movement = stock_service.set_stock_level(store.id, product.id, 6, actor_id="clerk")
    assert movement.quantity_delta == -4
    assert stock_service.get_stock_level(store.id, product.id) == 6

    assert stock_service.set_stock_level(store.id, product.id, 6) is None
    with pytest.raises(InvalidQuantity):
        stock_service.set_stock_level(store.id, product.id, -1)


def test_store_threshold_overrides_product_default(store, product):
    product.min_stock_level = 5
    db.session.commit()

    entry = stock_service.set_min_stock_level(store.id, product.id, 12)
    assert entry.threshold == 12

    entry = stock_service.set_min_stock_level(store.id, product.id, None)
    assert entry.threshold == 5


def test_low_stock_notification_when_crossing_threshold(store, product):
    stock_service.set_min_stock_level(store.id, product.id, 5)
    stock_service.record_adjustment(store.id, product.id, 6, "manual_adjustment")
    assert db.session.query(Notification).count() == 0

    stock_service.record_adjustment(store.id, product.id, -2, "wastage")
    notes = db.session.query(Notification).filter_by(notification_type="low_stock").all()
    assert len(notes) == 1
    assert notes[0].store_id == store.id

    # Already below: no repeat alert
    stock_service.record_adjustment(store.id, product.id, -1, "wastage")
    assert db.session.query(Notification).filter_by(notification_type="low_stock").count() == 1


def test_crossed_below_threshold():
    assert stock_service.crossed_below_threshold(5, 4, 5)
    assert not stock_service.crossed_below_threshold(4, 3, 5)
    assert not stock_service.crossed_below_threshold(6, 5, 5)
    assert not stock_service.crossed_below_threshold(3, 0, 0)


def test_list_store_stock(store, product, product_b):
    stock_service.record_adjustment(store.id, product.id, 3, "manual_adjustment")
    stock_service.record_adjustment(store.id, product_b.id, 7, "manual_adjustment")

    rows = [e.to_dict() for e in stock_service.list_store_stock(store.id)]
    assert [(r["sku"], r["current_stock"]) for r in rows] == [("SALAD-GRN", 7), ("SAND-HAM", 3)]

    with pytest.raises(NotFound):
        stock_service.list_store_stock(9999)
