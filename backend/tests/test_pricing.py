from wholesale.models import Order, OrderItem
from wholesale.services.pricing_service import calculate_order_totals, apply_order_totals, line_total


def test_line_total_is_quantity_times_unit_price():
    assert line_total(10, 2000) == 20000
    assert line_total(1, 0) == 0


def test_totals_without_discount():
    totals = calculate_order_totals([(10, 2000), (3, 250)])
    assert totals.subtotal_cents == 20750
    assert totals.discount_cents == 0
    assert totals.final_amount_cents == 20750


def test_discount_is_subtracted():
    totals = calculate_order_totals([(4, 500)], discount_amount_cents=300)
    assert totals.to_dict() == {"subtotal_cents": 2000, "discount_cents": 300, "final_amount_cents": 1700}


def test_discount_larger_than_subtotal_is_clamped():
    totals = calculate_order_totals([(1, 500)], discount_amount_cents=900)
    assert totals.discount_cents == 500
    assert totals.final_amount_cents == 0


def test_negative_discount_is_treated_as_zero():
    totals = calculate_order_totals([(2, 100)], discount_amount_cents=-50)
    assert totals.discount_cents == 0
    assert totals.final_amount_cents == 200


def test_empty_order_totals_are_zero():
    totals = calculate_order_totals([], discount_amount_cents=100)
    assert (totals.subtotal_cents, totals.discount_cents, totals.final_amount_cents) == (0, 0, 0)


def test_apply_order_totals_rewrites_lines_and_keeps_requested_discount():
    order = Order(discount_amount_cents=1000)
    order.items.append(OrderItem(product_id=1, quantity=2, unit_price_cents=700, total_price_cents=0))
    order.items.append(OrderItem(product_id=2, quantity=1, unit_price_cents=300, total_price_cents=0))

    totals = apply_order_totals(order)

    assert [i.total_price_cents for i in order.items] == [1400, 300]
    assert order.total_amount_cents == 1700
    assert order.discount_amount_cents == 1000
    assert order.final_amount_cents == 700
    assert totals.final_amount_cents == 700

    order.items[0].quantity = 1
    apply_order_totals(order)
    assert order.total_amount_cents == 1000
    assert order.discount_amount_cents == 1000
    assert order.final_amount_cents == 0
