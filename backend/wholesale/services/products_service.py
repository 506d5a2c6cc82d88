# backend/wholesale/services/products_service.py
"""
Product catalogue service.

One catalogue is shared by every store. SKU is globally unique and is checked
here before the UNIQUE constraint ever fires, so callers get a ConflictError
instead of an IntegrityError. Bulk updates validate every row first and apply
nothing unless all rows are clean.
"""
from __future__ import annotations

from ..extensions import db
from ..errors import NotFound, ConflictError, ValidationFailed
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    validate_payload,
    product_rule_violations,
)
from .concurrency import run_with_retry

PRODUCT_MUTABLE_FIELDS = {"sku", "name", "description", "unit", "price_cents", "min_stock_level", "is_active"}

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_MUTABLE_FIELDS,
    required_on_create={"sku", "name", "price_cents"},
)


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _sku_taken(sku: str, exclude_id: int | None = None) -> bool:
    q = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    return q.first() is not None


def list_products(*, active_only: bool = False) -> list[Product]:
    q = db.session.query(Product)
    if active_only:
        q = q.filter(Product.is_active.is_(True))
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound("Product", product_id)
    return product


def create_product(*, patch: dict) -> Product:
    """Create a product from a validated patch (see PRODUCT_POLICY)."""
    def _op():
        if _sku_taken(patch["sku"]):
            raise ConflictError(f"SKU '{patch['sku']}' already exists", details={"sku": patch["sku"]})

        product = Product(min_stock_level=0, is_active=True)
        apply_product_patch(product, patch)
        db.session.add(product)
        db.session.commit()
        return product

    return run_with_retry(_op)


def update_product(product_id: int, *, patch: dict) -> Product:
    def _op():
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFound("Product", product_id)
        if "sku" in patch and _sku_taken(patch["sku"], exclude_id=product_id):
            raise ConflictError(f"SKU '{patch['sku']}' already exists", details={"sku": patch["sku"]})

        apply_product_patch(product, patch)
        db.session.commit()
        return product

    return run_with_retry(_op)


def bulk_update_products(rows: list[dict]) -> list[Product]:
    """
    Apply many product patches as one unit.

    Each row is {"id": <product_id>, <writable fields>...}. Every row is
    validated (payload shape, business rules, existence, SKU uniqueness
    within the batch and against the catalogue) before anything is written.
    Any violation raises ValidationFailed listing all of them.
    """
    if not isinstance(rows, list) or not rows:
        raise ValidationFailed("No products supplied", [{"index": None, "error": "rows must be a non-empty list"}])

    def _op():
        errors: list[dict] = []
        staged: list[tuple[Product, dict]] = []
        seen_skus: dict[str, int] = {}

        for index, row in enumerate(rows):
            if not isinstance(row, dict):
                errors.append({"index": index, "error": "row must be an object"})
                continue
            row = dict(row)
            product_id = row.pop("id", None)
            if product_id is None:
                errors.append({"index": index, "error": "id is required"})
                continue

            try:
                patch = validate_payload(model=Product, payload=row, policy=PRODUCT_POLICY, partial=True)
            except ValidationError as e:
                errors.append({"index": index, "id": product_id, "error": e.message})
                continue

            for violation in product_rule_violations(patch):
                errors.append({"index": index, "id": product_id, **violation})

            product = db.session.get(Product, product_id)
            if product is None:
                errors.append({"index": index, "id": product_id, "error": "product not found"})
                continue

            sku = patch.get("sku")
            if sku is not None:
                if sku in seen_skus:
                    errors.append({
                        "index": index,
                        "id": product_id,
                        "field": "sku",
                        "error": f"duplicate SKU '{sku}' in batch (row {seen_skus[sku]})",
                    })
                elif _sku_taken(sku, exclude_id=product_id):
                    errors.append({"index": index, "id": product_id, "field": "sku", "error": f"SKU '{sku}' already exists"})
                seen_skus.setdefault(sku, index)

            staged.append((product, patch))

        if errors:
            raise ValidationFailed(f"{len(errors)} product update(s) failed validation", errors)

        for product, patch in staged:
            apply_product_patch(product, patch)

        db.session.commit()
        return [p for p, _ in staged]

    return run_with_retry(_op)
