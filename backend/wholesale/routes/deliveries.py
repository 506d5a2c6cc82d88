# Overview: Flask API routes for deliveries: driver workflow, proof of delivery, returns and cash collection.

# backend/wholesale/routes/deliveries.py
"""
Delivery routes.

Lifecycle: pending -> assigned -> in_transit -> delivered.
Cancellation is not exposed here; a delivery is cancelled by cancelling its
order. Reaching 'delivered' completes the order.

Returns and on-delivery payments are accepted only once the delivery is
'delivered'.
"""
from flask import Blueprint, jsonify, request

from ..validation import ValidationError, coerce_int
from ..services import delivery_service, return_service, invoice_service
from .common import json_body, actor_id, int_arg

deliveries_bp = Blueprint("deliveries", __name__, url_prefix="/api/deliveries")


def _delivery_detail(delivery) -> dict:
    data = delivery.to_dict()
    data["returns"] = [r.to_dict() for r in delivery.returns]
    return data


@deliveries_bp.get("")
def list_deliveries():
    """Query params: status, driver_id, scheduled_date (YYYY-MM-DD), limit."""
    try:
        deliveries = delivery_service.list_deliveries(
            status=request.args.get("status") or None,
            driver_id=request.args.get("driver_id") or None,
            scheduled_date=request.args.get("scheduled_date") or None,
            limit=min(int_arg("limit") or 200, 1000),
        )
    except ValueError:
        raise ValidationError("scheduled_date must be YYYY-MM-DD", details={"field": "scheduled_date"}) from None
    return jsonify({"deliveries": [d.to_dict() for d in deliveries]}), 200


@deliveries_bp.get("/<int:delivery_id>")
def get_delivery(delivery_id: int):
    return jsonify(_delivery_detail(delivery_service.get_delivery(delivery_id))), 200


# =============================================================================
# DRIVER WORKFLOW
# =============================================================================

@deliveries_bp.post("/<int:delivery_id>/assign")
def assign(delivery_id: int):
    payload = json_body()
    delivery = delivery_service.assign_driver(delivery_id, payload.get("driver_id"), actor_id=actor_id(payload))
    return jsonify(delivery.to_dict()), 200


@deliveries_bp.post("/<int:delivery_id>/unassign")
def unassign(delivery_id: int):
    delivery = delivery_service.unassign(delivery_id, actor_id=actor_id(json_body()))
    return jsonify(delivery.to_dict()), 200


@deliveries_bp.post("/<int:delivery_id>/dispatch")
def dispatch(delivery_id: int):
    delivery = delivery_service.start_transit(delivery_id, actor_id=actor_id(json_body()))
    return jsonify(delivery.to_dict()), 200


@deliveries_bp.post("/<int:delivery_id>/deliver")
def deliver(delivery_id: int):
    delivery = delivery_service.mark_delivered(delivery_id, actor_id=actor_id(json_body()))
    return jsonify(delivery.to_dict()), 200


@deliveries_bp.put("/<int:delivery_id>/schedule")
def reschedule(delivery_id: int):
    payload = json_body()
    try:
        delivery = delivery_service.reschedule(
            delivery_id, payload.get("scheduled_date"), actor_id=actor_id(payload)
        )
    except ValueError:
        raise ValidationError("scheduled_date must be YYYY-MM-DD", details={"field": "scheduled_date"}) from None
    return jsonify(delivery.to_dict()), 200


@deliveries_bp.put("/<int:delivery_id>/proof")
def record_proof(delivery_id: int):
    """Body: {"signature_ref"?, "photo_ref"?, "signed_by_name"?, "captured_by"?}"""
    payload = json_body()
    proof = delivery_service.record_proof_of_delivery(
        delivery_id,
        signature_ref=payload.get("signature_ref"),
        photo_ref=payload.get("photo_ref"),
        signed_by_name=payload.get("signed_by_name"),
        captured_by=actor_id(payload, "captured_by"),
    )
    return jsonify(proof.to_dict()), 200


# =============================================================================
# RETURNS
# =============================================================================

@deliveries_bp.get("/<int:delivery_id>/returnable")
def returnable(delivery_id: int):
    return jsonify({
        "delivery_id": delivery_id,
        "products": return_service.returnable_quantities(delivery_id),
    }), 200


@deliveries_bp.get("/<int:delivery_id>/returns")
def list_returns(delivery_id: int):
    rows = return_service.get_returns_for_delivery(delivery_id)
    return jsonify({"returns": [r.to_dict() for r in rows]}), 200


@deliveries_bp.post("/<int:delivery_id>/returns")
def process_returns(delivery_id: int):
    """
    Body: {"returned_by", "items": [{"product_id", "quantity", "reason",
           "batch_number"?, "expiry_date"?, "notes"?}]}

    All lines are validated before anything is written.
    """
    payload = json_body()
    result = return_service.process_returns(
        delivery_id,
        payload.get("items"),
        actor_id(payload, "returned_by"),
    )
    return jsonify(result.to_dict()), 201


# =============================================================================
# PAYMENT ON DELIVERY
# =============================================================================

@deliveries_bp.post("/<int:delivery_id>/payment")
def collect_payment(delivery_id: int):
    """Body: {"amount_cents", "payment_method" (cash | direct_debit), "recorded_by", "receipt_ref"?, "notes"?}"""
    payload = json_body()
    if payload.get("amount_cents") is None:
        raise ValidationError("amount_cents is required", details={"field": "amount_cents"})
    payment = invoice_service.record_delivery_payment(
        delivery_id,
        coerce_int("amount_cents", payload["amount_cents"]),
        payload.get("payment_method"),
        actor_id(payload, "recorded_by"),
        receipt_ref=payload.get("receipt_ref"),
        notes=payload.get("notes"),
    )
    return jsonify({"payment": payment.to_dict(), "invoice": payment.invoice.to_dict()}), 201
