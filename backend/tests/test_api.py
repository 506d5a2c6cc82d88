"""
HTTP and CLI surface tests.

These drive the blueprints through the Flask test client and check status
codes and JSON shapes; the business rules themselves are covered by the
service-level test modules.
"""
from datetime import timedelta

from wholesale.extensions import db
from wholesale.models import Invoice
from wholesale.services import order_service
from wholesale.time_utils import utctoday

from conftest import make_order


def _create_order(client, store, product, quantity=3, **extra):
    body = {"store_id": store.id, "items": [{"product_id": product.id, "quantity": quantity}], **extra}
    return client.post("/api/orders", json=body)


# =============================================================================
# SYSTEM
# =============================================================================

def test_health(client, store):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["details"]["stores"] == 1


def test_unknown_route_is_json_404(client):
    resp = client.get("/api/nothing-here")
    assert resp.status_code == 404
    assert "error" in resp.get_json()


def test_cors_header_for_allowed_origin(client):
    resp = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
    assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    resp = client.get("/api/health", headers={"Origin": "http://evil.example"})
    assert "Access-Control-Allow-Origin" not in resp.headers


# =============================================================================
# STORES AND PRODUCTS
# =============================================================================

def test_store_create_list_update(client, db_session):
    resp = client.post("/api/stores", json={"name": "Harbour Cafe", "code": "CAFE01", "credit_limit_cents": 50000},
                       headers={"X-Actor-Id": "admin"})
    assert resp.status_code == 201
    store_id = resp.get_json()["id"]

    resp = client.get("/api/stores")
    assert [s["code"] for s in resp.get_json()["stores"]] == ["CAFE01"]

    resp = client.put(f"/api/stores/{store_id}", json={"credit_limit_cents": 75000})
    assert resp.status_code == 200
    assert resp.get_json()["credit_limit_cents"] == 75000

    resp = client.get(f"/api/stores/{store_id}/credit?amount_cents=80000")
    assert resp.status_code == 200


def test_store_validation_errors(client, store):
    resp = client.post("/api/stores", json={"name": "X", "current_balance_cents": 100})
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "invalid_payload"

    resp = client.post("/api/stores", json={"code": "NEW01"})
    assert resp.status_code == 400

    resp = client.post("/api/stores", json={"name": "Clone", "code": store.code})
    assert resp.status_code == 409

    resp = client.get("/api/stores/4040")
    assert resp.status_code == 404
    assert resp.get_json()["code"] == "not_found"


def test_product_crud(client, db_session):
    resp = client.post("/api/products", json={"sku": "WRAP-1", "name": "Chicken Wrap", "price_cents": 450})
    assert resp.status_code == 201
    product_id = resp.get_json()["id"]

    resp = client.post("/api/products", json={"sku": "WRAP-1", "name": "Copy", "price_cents": 450})
    assert resp.status_code == 409

    resp = client.post("/api/products", json={"sku": "WRAP-2", "name": "Half", "price_cents": 4.5})
    assert resp.status_code == 400

    resp = client.put(f"/api/products/{product_id}", json={"price_cents": 500})
    assert resp.get_json()["price_cents"] == 500

    resp = client.get("/api/products?active_only=true")
    assert [p["sku"] for p in resp.get_json()["products"]] == ["WRAP-1"]


def test_bulk_product_update_reports_all_errors(client, product, product_b):
    resp = client.post("/api/products/bulk", json={"products": [
        {"id": product.id, "price_cents": 0},
        {"id": product_b.id, "price_cents": 300},
        {"id": 777, "name": "Ghost"},
    ]})
    assert resp.status_code == 400
    errors = resp.get_json()["details"]["errors"]
    assert sorted(e["index"] for e in errors) == [0, 2]

    resp = client.post("/api/products/bulk", json={"products": [{"id": product_b.id, "price_cents": 300}]})
    assert resp.status_code == 200
    assert resp.get_json()["updated"] == 1


def test_request_body_must_be_an_object(client, store):
    resp = client.post("/api/orders", json=[1, 2, 3])
    assert resp.status_code == 400


# =============================================================================
# STOCK
# =============================================================================

def test_stock_adjustment_and_movements(client, store, product):
    resp = client.post(f"/api/stores/{store.id}/stock/adjustments",
                       json={"product_id": product.id, "quantity": 12, "reason": "manual_adjustment"})
    assert resp.status_code == 201
    assert resp.get_json()["resulting_stock"] == 12

    resp = client.post(f"/api/stores/{store.id}/stock/adjustments",
                       json={"product_id": product.id, "quantity": -20, "reason": "wastage"})
    assert resp.status_code == 400

    resp = client.post(f"/api/stores/{store.id}/stock/adjustments",
                       json={"product_id": product.id, "quantity": 1, "reason": "return"})
    assert resp.status_code == 400

    resp = client.put(f"/api/stores/{store.id}/stock/{product.id}", json={"current_stock": 5, "min_stock_level": 8})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["stock"]["current_stock"] == 5
    assert body["stock"]["min_stock_level"] == 8
    assert body["movement"]["quantity_delta"] == -7

    resp = client.get(f"/api/stores/{store.id}/stock/movements")
    assert len(resp.get_json()["movements"]) == 2


def test_allow_negative_flag_is_parsed_not_truthy(client, store, product):
    url = f"/api/stores/{store.id}/stock/adjustments"
    body = {"product_id": product.id, "quantity": -3, "reason": "manual_adjustment"}

    resp = client.post(url, json={**body, "allow_negative": "false"})
    assert resp.status_code == 400

    resp = client.post(url, json={**body, "allow_negative": "maybe"})
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "invalid_payload"

    resp = client.post(url, json={**body, "allow_negative": True})
    assert resp.status_code == 201
    assert resp.get_json()["resulting_stock"] == -3


# =============================================================================
# ORDER LIFECYCLE END TO END
# =============================================================================

def test_order_to_payment_over_http(client, store, product):
    resp = _create_order(client, store, product, quantity=6)
    assert resp.status_code == 201
    order = resp.get_json()
    assert order["status"] == "pending"
    assert order["final_amount_cents"] == 6000

    resp = client.post(f"/api/orders/{order['id']}/approve", json={"approved_by": "manager"})
    assert resp.status_code == 200
    detail = resp.get_json()
    assert detail["status"] == "approved"
    assert detail["kitchen_sheet"]["status"] == "pending"
    assert detail["invoice"]["total_amount_cents"] == 6000
    delivery_id = detail["delivery"]["id"]
    invoice_id = detail["invoice"]["id"]

    assert client.post(f"/api/deliveries/{delivery_id}/deliver").status_code == 409
    assert client.post(f"/api/deliveries/{delivery_id}/assign", json={"driver_id": "driver-7"}).status_code == 200
    assert client.post(f"/api/deliveries/{delivery_id}/dispatch").status_code == 200
    resp = client.post(f"/api/deliveries/{delivery_id}/deliver", headers={"X-Actor-Id": "driver-7"})
    assert resp.get_json()["status"] == "delivered"
    assert client.get(f"/api/orders/{order['id']}").get_json()["status"] == "completed"

    resp = client.put(f"/api/deliveries/{delivery_id}/proof",
                      json={"signature_ref": "sig/77.png", "signed_by_name": "Pat"})
    assert resp.status_code == 200

    resp = client.post(f"/api/deliveries/{delivery_id}/returns", json={
        "returned_by": "driver-7",
        "items": [{"product_id": product.id, "quantity": 2, "reason": "damaged"}],
    })
    assert resp.status_code == 201
    assert resp.get_json()["return_value_cents"] == 2000
    assert resp.get_json()["invoice"]["collectible_amount_cents"] == 4000

    resp = client.post(f"/api/deliveries/{delivery_id}/returns", json={
        "returned_by": "driver-7",
        "items": [{"product_id": product.id, "quantity": 5, "reason": "damaged"}],
    })
    assert resp.status_code == 409
    assert resp.get_json()["code"] == "over_return"

    resp = client.get(f"/api/deliveries/{delivery_id}/returnable")
    assert resp.get_json()["products"][0]["returnable_quantity"] == 4

    resp = client.post(f"/api/deliveries/{delivery_id}/payment",
                       json={"amount_cents": 1500, "payment_method": "cash", "recorded_by": "driver-7"})
    assert resp.status_code == 201
    assert resp.get_json()["invoice"]["paid_amount_cents"] == 1500

    resp = client.post(f"/api/invoices/{invoice_id}/payments",
                       json={"amount_cents": 2500, "payment_method": "bank_transfer", "recorded_by": "office"})
    assert resp.status_code == 201
    assert resp.get_json()["invoice"]["payment_status"] == "paid"

    resp = client.get(f"/api/invoices/{invoice_id}")
    assert len(resp.get_json()["payments"]) == 2

    resp = client.get(f"/api/stores/{store.id}")
    assert resp.get_json()["current_balance_cents"] == 0

    resp = client.get(f"/api/ledger?order_id={order['id']}")
    assert resp.status_code == 200
    assert resp.get_json()["events"]


def test_decimal_discount_is_400(client, store, product):
    resp = _create_order(client, store, product, discount_amount_cents=99.99)
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "invalid_payload"


def test_credit_limit_exceeded_is_409(client, limited_store, product):
    order = _create_order(client, limited_store, product, quantity=2).get_json()

    resp = client.post(f"/api/orders/{order['id']}/approve")
    assert resp.status_code == 409
    body = resp.get_json()
    assert body["code"] == "credit_limit_exceeded"
    assert body["details"]["credit_limit_cents"] == 5000

    assert client.get(f"/api/orders/{order['id']}").get_json()["status"] == "pending"


def test_invalid_transition_lists_allowed(client, store, product):
    order = _create_order(client, store, product).get_json()
    resp = client.post(f"/api/orders/{order['id']}/complete")
    assert resp.status_code == 409
    assert resp.get_json()["code"] == "invalid_transition"


def test_reject_needs_reason(client, store, product):
    order = _create_order(client, store, product).get_json()
    assert client.post(f"/api/orders/{order['id']}/reject", json={}).status_code == 400

    resp = client.post(f"/api/orders/{order['id']}/reject", json={"reason": "Duplicate order"})
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "rejected"


def test_item_edits_over_http(client, store, product, product_b):
    order = _create_order(client, store, product, quantity=1, status="draft").get_json()
    assert order["status"] == "draft"

    resp = client.post(f"/api/orders/{order['id']}/items", json={"product_id": product_b.id, "quantity": 4})
    assert resp.status_code == 201
    assert resp.get_json()["total_amount_cents"] == 2000

    item_id = resp.get_json()["items"][0]["id"]
    resp = client.delete(f"/api/orders/{order['id']}/items/{item_id}")
    assert resp.status_code == 200

    resp = client.put(f"/api/orders/{order['id']}/discount", json={"discount_amount_cents": 100})
    assert resp.get_json()["final_amount_cents"] == resp.get_json()["total_amount_cents"] - 100

    assert client.post(f"/api/orders/{order['id']}/submit").get_json()["status"] == "pending"


def test_cancel_approved_order_over_http(client, store, product):
    order = _create_order(client, store, product).get_json()
    client.post(f"/api/orders/{order['id']}/approve")

    resp = client.post(f"/api/orders/{order['id']}/cancel", json={"reason": "Store closed"})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "cancelled"
    assert body["delivery"]["status"] == "cancelled"
    assert body["invoice"] is None


def test_kitchen_sheet_routes(client, store, product):
    order = _create_order(client, store, product).get_json()
    sheet_id = client.post(f"/api/orders/{order['id']}/approve").get_json()["kitchen_sheet"]["id"]

    resp = client.get("/api/kitchen-sheets?status=pending")
    assert [s["id"] for s in resp.get_json()["kitchen_sheets"]] == [sheet_id]

    resp = client.post(f"/api/kitchen-sheets/{sheet_id}/status", json={"status": "in_progress", "actor_id": "chef"})
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "in_progress"

    item_id = resp.get_json()["items"][0]["id"]
    resp = client.put(f"/api/kitchen-sheets/{sheet_id}/items/{item_id}",
                      json={"batch_number": "B-7", "expiry_date": "not-a-date"})
    assert resp.status_code == 400


# =============================================================================
# REPLENISHMENT, INVOICE SWEEPS, NOTIFICATIONS
# =============================================================================

def test_replenishment_endpoints(client, store, product):
    product.min_stock_level = 5
    db.session.commit()

    resp = client.get(f"/api/replenishment/stores/{store.id}/needs")
    assert resp.get_json()["needs"][0]["suggested_quantity"] == 5

    resp = client.post(f"/api/replenishment/stores/{store.id}/generate", json={"run_key": "2026-10-19"})
    assert resp.status_code == 201
    assert resp.get_json()["order"]["status"] == "draft"

    resp = client.post(f"/api/replenishment/stores/{store.id}/generate", json={"run_key": "2026-10-19"})
    assert resp.status_code == 200
    assert resp.get_json()["outcome"] == "existing"

    resp = client.post("/api/replenishment/generate", json={"run_key": "2026-10-19"})
    assert resp.get_json()["existing"] == 1

    resp = client.post("/api/replenishment/stores/999/generate", json={})
    assert resp.status_code == 404


def test_invoice_sweeps_and_notifications(client, store, product):
    order = _create_order(client, store, product).get_json()
    invoice = client.post(f"/api/orders/{order['id']}/approve").get_json()["invoice"]
    day = (utctoday() + timedelta(days=40)).isoformat()

    resp = client.post("/api/invoices/mark-overdue", json={"today": day})
    assert resp.get_json()["marked_overdue"] == 1

    resp = client.post("/api/invoices/send-reminders", json={"today": day})
    assert resp.get_json()["sent"] == 1
    assert resp.get_json()["reminders"][0]["reminder_type"] == "second"

    resp = client.get(f"/api/invoices/{invoice['id']}/reminders")
    assert len(resp.get_json()["reminders"]) == 1

    assert client.post("/api/invoices/mark-overdue", json={"today": "19/10/2026"}).status_code == 400

    resp = client.get(f"/api/notifications?store_id={store.id}&unread_only=true")
    notifications = resp.get_json()["notifications"]
    assert {n["notification_type"] for n in notifications} == {"order_approved", "payment_reminder"}

    resp = client.post(f"/api/notifications/{notifications[0]['id']}/read")
    assert resp.get_json()["is_read"] is True
    assert client.post("/api/notifications/99999/read").status_code == 404


# =============================================================================
# CLI
# =============================================================================

def test_cli_stores_create_and_list(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["stores", "create", "--name", "Harbour Cafe", "--code", "CAFE01"])
    assert result.exit_code == 0
    assert "PASS Created store Harbour Cafe" in result.output

    result = runner.invoke(args=["stores", "list"])
    assert "CAFE01" in result.output
    assert "unlimited" in result.output


def test_cli_invoice_sweeps(app, store, product):
    order = order_service.approve_order(make_order(store, [(product, 2)]).id)
    due = order.invoice.due_date
    runner = app.test_cli_runner()

    result = runner.invoke(args=["invoices", "mark-overdue", "--today", (due + timedelta(days=2)).isoformat()])
    assert result.exit_code == 0
    assert "1 invoice(s) marked overdue" in result.output

    result = runner.invoke(args=["invoices", "send-reminders", "--today", (due + timedelta(days=2)).isoformat()])
    assert "1 sent" in result.output

    result = runner.invoke(args=["invoices", "mark-overdue", "--today", "yesterday"])
    assert result.exit_code != 0

    db.session.expire_all()
    assert db.session.query(Invoice).one().payment_status == "overdue"


def test_cli_replenishment_generate(app, store, product):
    product.min_stock_level = 3
    db.session.commit()
    runner = app.test_cli_runner()

    result = runner.invoke(args=["replenishment", "generate", "--run-key", "nightly-1"])
    assert result.exit_code == 0
    assert "1 created" in result.output

    result = runner.invoke(args=["replenishment", "generate", "--store-id", str(store.id), "--run-key", "nightly-1"])
    assert "already exists" in result.output

    result = runner.invoke(args=["replenishment", "generate", "--store-id", "9999"])
    assert result.exit_code == 1
