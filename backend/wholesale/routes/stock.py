# Overview: Flask API routes for per-store stock levels and the stock movement journal.

from flask import Blueprint, jsonify

from ..validation import ValidationError, coerce_bool, coerce_int
from ..services import stock_service
from .common import json_body, actor_id, int_arg

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stores/<int:store_id>/stock")


@stock_bp.get("")
def list_stock(store_id: int):
    entries = stock_service.list_store_stock(store_id)
    return jsonify({"store_id": store_id, "stock": [e.to_dict() for e in entries]}), 200


@stock_bp.post("/adjustments")
def post_adjustment(store_id: int):
    """
    Post a signed stock change.

    Body: {"product_id", "quantity" (signed delta), "reason", "note"?, "allow_negative"?}
    Reasons: manual_adjustment, wastage, replenishment_consumption.
    """
    payload = json_body()
    for key in ("product_id", "quantity", "reason"):
        if payload.get(key) is None:
            raise ValidationError(f"{key} is required", details={"field": key})

    movement = stock_service.record_adjustment(
        store_id,
        coerce_int("product_id", payload["product_id"]),
        coerce_int("quantity", payload["quantity"]),
        payload["reason"],
        actor_id=actor_id(payload),
        note=payload.get("note"),
        allow_negative=coerce_bool("allow_negative", payload.get("allow_negative", False)),
    )
    return jsonify(movement.to_dict()), 201


@stock_bp.put("/<int:product_id>")
def put_stock_entry(store_id: int, product_id: int):
    """
    Body may carry current_stock (a count; the difference is journaled as a
    manual adjustment) and/or min_stock_level (null clears the override).
    """
    payload = json_body()
    if "current_stock" not in payload and "min_stock_level" not in payload:
        raise ValidationError("current_stock or min_stock_level is required")

    movement = None
    if "min_stock_level" in payload:
        stock_service.set_min_stock_level(store_id, product_id, payload["min_stock_level"])
    if "current_stock" in payload:
        movement = stock_service.set_stock_level(
            store_id,
            product_id,
            coerce_int("current_stock", payload["current_stock"]),
            actor_id=actor_id(payload),
            note=payload.get("note"),
        )

    entries = [e for e in stock_service.list_store_stock(store_id) if e.product_id == product_id]
    return jsonify({
        "stock": entries[0].to_dict() if entries else None,
        "movement": movement.to_dict() if movement is not None else None,
    }), 200


@stock_bp.get("/movements")
def list_movements(store_id: int):
    movements = stock_service.list_movements(
        store_id,
        product_id=int_arg("product_id"),
        limit=min(int_arg("limit") or 200, 1000),
    )
    return jsonify({"movements": [m.to_dict() for m in movements]}), 200
