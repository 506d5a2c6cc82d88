# Overview: Flask API routes for wholesale orders: creation, line edits, and lifecycle transitions.

# backend/wholesale/routes/orders.py
"""
Order routes.

Lifecycle:
- draft -> pending (submit)
- pending -> approved (approve; credit check, kitchen sheet, delivery, invoice)
- pending -> rejected (reject; reason required)
- draft/pending/approved -> cancelled (cancel; approved orders are reversed)
- approved -> completed (complete; normally driven by the delivery)

Line edits are only accepted while the order is draft or pending.
"""
from flask import Blueprint, jsonify, request

from ..validation import ValidationError, coerce_int
from ..services import order_service
from .common import json_body, actor_id, int_arg

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _order_detail(order) -> dict:
    data = order.to_dict()
    data["kitchen_sheet"] = order.kitchen_sheet.to_dict() if order.kitchen_sheet else None
    data["delivery"] = order.delivery.to_dict() if order.delivery else None
    data["invoice"] = order.invoice.to_dict() if order.invoice else None
    return data


@orders_bp.get("")
def list_orders():
    """Query params: store_id, status, source, limit."""
    orders = order_service.list_orders(
        store_id=int_arg("store_id"),
        status=request.args.get("status") or None,
        source=request.args.get("source") or None,
        limit=min(int_arg("limit") or 200, 1000),
    )
    return jsonify({"orders": [o.to_dict(include_items=False) for o in orders]}), 200


@orders_bp.post("")
def create_order():
    """
    Body: {"store_id", "items": [{"product_id", "quantity", "unit_price_cents"?}],
           "discount_amount_cents"?, "notes"?, "status"? ("draft" | "pending")}
    """
    payload = json_body()
    if payload.get("store_id") is None:
        raise ValidationError("store_id is required", details={"field": "store_id"})
    items = payload.get("items")
    if not isinstance(items, list):
        raise ValidationError("items must be a list", details={"field": "items"})

    order = order_service.create_order(
        coerce_int("store_id", payload["store_id"]),
        items,
        discount_amount_cents=payload.get("discount_amount_cents", 0),
        notes=payload.get("notes"),
        created_by=actor_id(payload, "created_by"),
        status=payload.get("status") or "pending",
    )
    return jsonify(_order_detail(order)), 201


@orders_bp.get("/<int:order_id>")
def get_order(order_id: int):
    return jsonify(_order_detail(order_service.get_order(order_id))), 200


# =============================================================================
# LINE EDITS (draft / pending only)
# =============================================================================

@orders_bp.put("/<int:order_id>/items")
def replace_items(order_id: int):
    payload = json_body()
    items = payload.get("items")
    if not isinstance(items, list):
        raise ValidationError("items must be a list", details={"field": "items"})
    order = order_service.replace_items(order_id, items, actor_id=actor_id(payload))
    return jsonify(order.to_dict()), 200


@orders_bp.post("/<int:order_id>/items")
def add_item(order_id: int):
    payload = json_body()
    if payload.get("product_id") is None:
        raise ValidationError("product_id is required", details={"field": "product_id"})
    unit_price = payload.get("unit_price_cents")
    order = order_service.add_item(
        order_id,
        coerce_int("product_id", payload["product_id"]),
        payload.get("quantity"),
        unit_price_cents=coerce_int("unit_price_cents", unit_price) if unit_price is not None else None,
        actor_id=actor_id(payload),
    )
    return jsonify(order.to_dict()), 201


@orders_bp.put("/<int:order_id>/items/<int:item_id>")
def update_item(order_id: int, item_id: int):
    payload = json_body()
    order = order_service.update_item_quantity(
        order_id, item_id, payload.get("quantity"), actor_id=actor_id(payload)
    )
    return jsonify(order.to_dict()), 200


@orders_bp.delete("/<int:order_id>/items/<int:item_id>")
def remove_item(order_id: int, item_id: int):
    order = order_service.remove_item(order_id, item_id, actor_id=actor_id())
    return jsonify(order.to_dict()), 200


@orders_bp.put("/<int:order_id>/discount")
def set_discount(order_id: int):
    payload = json_body()
    order = order_service.set_discount(
        order_id, payload.get("discount_amount_cents"), actor_id=actor_id(payload)
    )
    return jsonify(order.to_dict()), 200


# =============================================================================
# TRANSITIONS
# =============================================================================

@orders_bp.post("/<int:order_id>/submit")
def submit_order(order_id: int):
    order = order_service.submit_order(order_id, actor_id=actor_id(json_body()))
    return jsonify(order.to_dict()), 200


@orders_bp.post("/<int:order_id>/approve")
def approve_order(order_id: int):
    payload = json_body()
    order = order_service.approve_order(order_id, approved_by=actor_id(payload, "approved_by"))
    return jsonify(_order_detail(order)), 200


@orders_bp.post("/<int:order_id>/reject")
def reject_order(order_id: int):
    payload = json_body()
    order = order_service.reject_order(
        order_id, payload.get("reason") or "", rejected_by=actor_id(payload, "rejected_by")
    )
    return jsonify(order.to_dict()), 200


@orders_bp.post("/<int:order_id>/cancel")
def cancel_order(order_id: int):
    payload = json_body()
    order = order_service.cancel_order(order_id, actor_id=actor_id(payload), reason=payload.get("reason"))
    return jsonify(_order_detail(order)), 200


@orders_bp.post("/<int:order_id>/complete")
def complete_order(order_id: int):
    order = order_service.complete_order(order_id, actor_id=actor_id(json_body()))
    return jsonify(order.to_dict()), 200
