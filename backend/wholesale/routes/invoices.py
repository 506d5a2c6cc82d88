# Overview: Flask API routes for invoices, office payments and the overdue/reminder sweeps.

from flask import Blueprint, jsonify, request

from ..validation import ValidationError, coerce_int
from ..time_utils import parse_iso_date
from ..services import invoice_service, reminder_service
from .common import json_body, actor_id, int_arg

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _invoice_detail(invoice) -> dict:
    data = invoice.to_dict()
    data["payments"] = [p.to_dict() for p in invoice.payments]
    return data


def _as_of(payload: dict):
    """Optional "today" override (YYYY-MM-DD) for the sweeps."""
    try:
        return parse_iso_date(payload.get("today"))
    except ValueError:
        raise ValidationError("today must be YYYY-MM-DD", details={"field": "today"}) from None


@invoices_bp.get("")
def list_invoices():
    """Query params: store_id, payment_status (pending | paid | overdue), limit."""
    invoices = invoice_service.list_invoices(
        store_id=int_arg("store_id"),
        payment_status=request.args.get("payment_status") or None,
        limit=min(int_arg("limit") or 200, 1000),
    )
    return jsonify({"invoices": [i.to_dict() for i in invoices]}), 200


@invoices_bp.get("/<int:invoice_id>")
def get_invoice(invoice_id: int):
    return jsonify(_invoice_detail(invoice_service.get_invoice(invoice_id))), 200


@invoices_bp.post("/<int:invoice_id>/payments")
def record_payment(invoice_id: int):
    """Body: {"amount_cents", "payment_method", "recorded_by", "receipt_ref"?, "notes"?}"""
    payload = json_body()
    if payload.get("amount_cents") is None:
        raise ValidationError("amount_cents is required", details={"field": "amount_cents"})

    payment = invoice_service.record_payment(
        invoice_id,
        coerce_int("amount_cents", payload["amount_cents"]),
        payload.get("payment_method"),
        actor_id(payload, "recorded_by"),
        receipt_ref=payload.get("receipt_ref"),
        notes=payload.get("notes"),
    )
    return jsonify({"payment": payment.to_dict(), "invoice": payment.invoice.to_dict()}), 201


@invoices_bp.get("/<int:invoice_id>/reminders")
def list_reminders(invoice_id: int):
    invoice_service.get_invoice(invoice_id)
    reminders = reminder_service.list_reminders(invoice_id)
    return jsonify({"reminders": [r.to_dict() for r in reminders]}), 200


@invoices_bp.post("/mark-overdue")
def mark_overdue():
    flipped = invoice_service.mark_overdue_invoices(_as_of(json_body()))
    return jsonify({"marked_overdue": len(flipped), "invoices": [i.to_dict() for i in flipped]}), 200


@invoices_bp.post("/send-reminders")
def send_reminders():
    result = reminder_service.send_payment_reminders(_as_of(json_body()))
    return jsonify(result.to_dict()), 200
