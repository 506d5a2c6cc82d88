# Overview: Flask API routes for the product catalogue; parses input and returns JSON responses.

# backend/wholesale/routes/products.py
"""
Product catalogue routes.

The catalogue is shared by all stores. Prices are integer cents and must be
positive; SKU is unique across the catalogue (409 on conflict).
"""
from flask import Blueprint, jsonify

from ..models import Product
from ..validation import validate_payload, enforce_rules_product, ValidationError
from ..services import products_service
from ..services.products_service import PRODUCT_POLICY
from .common import json_body, bool_arg

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """Query params: active_only=true to hide deactivated products."""
    products = products_service.list_products(active_only=bool_arg("active_only"))
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.post("")
def create_product_route():
    payload = json_body()
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    created = products_service.create_product(patch=patch)
    return jsonify(created.to_dict()), 201


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    return jsonify(products_service.get_product(product_id).to_dict()), 200


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    payload = json_body()
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    updated = products_service.update_product(product_id, patch=patch)
    return jsonify(updated.to_dict()), 200


@products_bp.post("/bulk")
def bulk_update_route():
    """
    Update many products at once.

    Body: {"products": [{"id": 1, "price_cents": 250}, ...]}
    All rows are validated first; on any failure nothing is written and every
    problem is returned under details.errors.
    """
    payload = json_body()
    rows = payload.get("products")
    if rows is None:
        raise ValidationError("products is required", details={"field": "products"})

    updated = products_service.bulk_update_products(rows)
    return jsonify({"updated": len(updated), "products": [p.to_dict() for p in updated]}), 200
