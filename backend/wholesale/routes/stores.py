# Overview: Flask API routes for customer stores and their credit position.

# backend/wholesale/routes/stores.py
from flask import Blueprint, jsonify

from ..models import Store
from ..validation import validate_payload, enforce_rules_store
from ..services import store_service, credit_service
from ..services.store_service import STORE_POLICY
from .common import json_body, actor_id, bool_arg, int_arg

stores_bp = Blueprint("stores", __name__, url_prefix="/api/stores")


@stores_bp.get("")
def list_stores():
    stores = store_service.list_stores(active_only=bool_arg("active_only"))
    return jsonify({"stores": [s.to_dict() for s in stores]}), 200


@stores_bp.post("")
def create_store():
    payload = json_body()
    actor = actor_id(payload)
    payload.pop("actor_id", None)

    patch = validate_payload(model=Store, payload=payload, policy=STORE_POLICY, partial=False)
    enforce_rules_store(patch)

    store = store_service.create_store(patch=patch, actor_id=actor)
    return jsonify(store.to_dict()), 201


@stores_bp.get("/<int:store_id>")
def get_store(store_id: int):
    return jsonify(store_service.get_store(store_id).to_dict()), 200


@stores_bp.put("/<int:store_id>")
def update_store(store_id: int):
    payload = json_body()
    actor = actor_id(payload)
    payload.pop("actor_id", None)

    patch = validate_payload(model=Store, payload=payload, policy=STORE_POLICY, partial=True)
    enforce_rules_store(patch)

    store = store_service.update_store(store_id, patch=patch, actor_id=actor)
    return jsonify(store.to_dict()), 200


@stores_bp.get("/<int:store_id>/credit")
def credit_position(store_id: int):
    """
    Credit headroom for the store.

    ?amount_cents=N evaluates a hypothetical order of that size.
    """
    store = store_service.get_store(store_id)
    check = credit_service.evaluate_credit(store, int_arg("amount_cents") or 0)
    return jsonify(check.to_dict()), 200
