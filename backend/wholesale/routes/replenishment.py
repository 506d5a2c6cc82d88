# Overview: Flask API routes for the replenishment generator (stock shortfalls -> draft orders).

from flask import Blueprint, jsonify

from ..services import replenishment_service
from .common import json_body, actor_id

replenishment_bp = Blueprint("replenishment", __name__, url_prefix="/api/replenishment")


@replenishment_bp.get("/stores/<int:store_id>/needs")
def store_needs(store_id: int):
    needs = replenishment_service.check_needs(store_id)
    return jsonify({"store_id": store_id, "needs": [n.to_dict() for n in needs]}), 200


@replenishment_bp.post("/stores/<int:store_id>/generate")
def generate_for_store(store_id: int):
    """Body: {"run_key"?, "created_by"?}. A draft already made for the run key is returned as-is."""
    payload = json_body()
    result = replenishment_service.generate(
        store_id,
        payload.get("run_key") or None,
        created_by=actor_id(payload, "created_by"),
    )
    status = 201 if result.outcome == replenishment_service.CREATED else 200
    return jsonify(result.to_dict()), status


@replenishment_bp.post("/generate")
def generate_all():
    payload = json_body()
    run = replenishment_service.generate_all(
        payload.get("run_key") or None,
        created_by=actor_id(payload, "created_by"),
    )
    return jsonify(run.to_dict()), 200
