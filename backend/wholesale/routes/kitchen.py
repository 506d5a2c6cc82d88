# Overview: Flask API routes for kitchen preparation sheets.

from flask import Blueprint, jsonify, request

from ..validation import ValidationError
from ..services import kitchen_service
from .common import json_body, actor_id, int_arg

kitchen_bp = Blueprint("kitchen", __name__, url_prefix="/api/kitchen-sheets")


@kitchen_bp.get("")
def list_sheets():
    sheets = kitchen_service.list_sheets(
        status=request.args.get("status") or None,
        limit=min(int_arg("limit") or 200, 1000),
    )
    return jsonify({"kitchen_sheets": [s.to_dict() for s in sheets]}), 200


@kitchen_bp.get("/<int:sheet_id>")
def get_sheet(sheet_id: int):
    return jsonify(kitchen_service.get_sheet(sheet_id).to_dict()), 200


@kitchen_bp.post("/<int:sheet_id>/status")
def transition_sheet(sheet_id: int):
    """Body: {"status": "in_progress" | "completed", "actor_id"?}"""
    payload = json_body()
    target = payload.get("status")
    if not target:
        raise ValidationError("status is required", details={"field": "status"})
    sheet = kitchen_service.transition_sheet(sheet_id, target, actor_id=actor_id(payload))
    return jsonify(sheet.to_dict()), 200


@kitchen_bp.put("/<int:sheet_id>/items/<int:item_id>")
def record_batch(sheet_id: int, item_id: int):
    """Body: {"batch_number"?, "expiry_date"? (YYYY-MM-DD)}"""
    payload = json_body()
    try:
        item = kitchen_service.record_batch(
            sheet_id,
            item_id,
            batch_number=payload.get("batch_number"),
            expiry_date=payload.get("expiry_date"),
        )
    except ValueError:
        raise ValidationError("expiry_date must be YYYY-MM-DD", details={"field": "expiry_date"}) from None
    return jsonify(item.to_dict()), 200
