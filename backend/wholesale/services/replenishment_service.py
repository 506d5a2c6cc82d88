# Overview: Replenishment generator; turns stock shortfalls into draft orders for human review.

"""
Replenishment Invariants (authoritative)

Needs:
- Every active product is checked for the store. Stock comes from StoreStock
  (0 when the store has never touched the product); the threshold is the
  store override when set, else the product's min_stock_level.
- current_stock < threshold is a need of (threshold - current_stock), never
  less than 1.
- The generator only reads stock; it never consumes it.

Dedup:
- Drafts carry replenishment_key = "<store_id>:<run_key>".
- run_key is caller-supplied, or the start of the current processing window
  (UTC, REPLENISHMENT_WINDOW_HOURS wide).
- A draft already carrying the key is returned unchanged.

Drafts are never approved here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import NotFound, InactiveStore, WholesaleError
from ..models import Store, Product, StoreStock, Order, OrderStatus, OrderSource
from wholesale.time_utils import utcnow, window_start
from .order_service import build_order
from .concurrency import lock_for_update, run_with_retry


CREATED = "created"
EXISTING = "existing"
NOT_NEEDED = "not_needed"


@dataclass(frozen=True)
class ReplenishmentNeed:
    product_id: int
    sku: str
    product_name: str
    current_stock: int
    threshold: int
    quantity: int
    unit_price_cents: int

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "sku": self.sku,
            "product_name": self.product_name,
            "current_stock": self.current_stock,
            "min_stock_level": self.threshold,
            "suggested_quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
        }


@dataclass
class ReplenishmentResult:
    store_id: int
    outcome: str
    needs: list[ReplenishmentNeed] = field(default_factory=list)
    order: Order | None = None

    @property
    def message(self) -> str:
        if self.outcome == NOT_NEEDED:
            return "No replenishment needed"
        if self.outcome == EXISTING:
            return f"Replenishment draft {self.order.order_number} already exists for this run"
        return f"Created replenishment draft {self.order.order_number}"

    def to_dict(self) -> dict:
        return {
            "store_id": self.store_id,
            "outcome": self.outcome,
            "message": self.message,
            "needs": [n.to_dict() for n in self.needs],
            "order": self.order.to_dict() if self.order is not None else None,
        }


@dataclass
class ReplenishmentRun:
    run_key: str
    results: list[ReplenishmentResult] = field(default_factory=list)
    failures: list[dict] = field(default_factory=list)

    def count(self, outcome: str) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    def to_dict(self) -> dict:
        return {
            "run_key": self.run_key,
            "created": self.count(CREATED),
            "existing": self.count(EXISTING),
            "not_needed": self.count(NOT_NEEDED),
            "failed": len(self.failures),
            "results": [r.to_dict() for r in self.results],
            "failures": self.failures,
        }


def default_run_key(now: datetime | None = None) -> str:
    hours = int(current_app.config.get("REPLENISHMENT_WINDOW_HOURS", 24))
    start = window_start(now or utcnow(), hours)
    return start.strftime("%Y-%m-%dT%H:%MZ")


def dedup_key(store_id: int, run_key: str) -> str:
    return f"{store_id}:{run_key}"


def _open_draft(key: str) -> Order | None:
    return (
        db.session.query(Order)
        .filter(
            Order.replenishment_key == key,
            Order.status == OrderStatus.DRAFT.value,
        )
        .order_by(Order.id.asc())
        .first()
    )


def check_needs(store_id: int) -> list[ReplenishmentNeed]:
    if db.session.get(Store, store_id) is None:
        raise NotFound("Store", store_id)

    entries = {
        entry.product_id: entry
        for entry in db.session.query(StoreStock).filter(StoreStock.store_id == store_id).all()
    }
    products = (
        db.session.query(Product)
        .filter(Product.is_active.is_(True))
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )

    needs = []
    for product in products:
        entry = entries.get(product.id)
        current = entry.current_stock if entry is not None else 0
        threshold = entry.threshold if entry is not None else (product.min_stock_level or 0)
        if current < threshold:
            needs.append(ReplenishmentNeed(
                product_id=product.id,
                sku=product.sku,
                product_name=product.name,
                current_stock=current,
                threshold=threshold,
                quantity=max(1, threshold - current),
                unit_price_cents=product.price_cents,
            ))
    return needs


def generate(store_id: int, run_key: str | None = None, *, created_by: str | None = None) -> ReplenishmentResult:
    run_key = run_key or default_run_key()
    key = dedup_key(store_id, run_key)

    def _op():
        store = lock_for_update(db.session.query(Store).filter_by(id=store_id)).first()
        if store is None:
            raise NotFound("Store", store_id)
        if not store.is_active:
            raise InactiveStore(store.id)

        needs = check_needs(store.id)
        if not needs:
            return ReplenishmentResult(store_id=store.id, outcome=NOT_NEEDED)

        existing = _open_draft(key)
        if existing is not None:
            return ReplenishmentResult(store_id=store.id, outcome=EXISTING, needs=needs, order=existing)

        try:
            order = build_order(
                store=store,
                items=[
                    {"product_id": n.product_id, "quantity": n.quantity, "unit_price_cents": n.unit_price_cents}
                    for n in needs
                ],
                status=OrderStatus.DRAFT,
                source=OrderSource.REPLENISHMENT,
                replenishment_key=key,
                notes=f"Auto-generated replenishment order (run {run_key})",
                created_by=created_by,
            )
            db.session.commit()
        except IntegrityError:
            # Another run committed the draft for this key first
            db.session.rollback()
            existing = _open_draft(key)
            if existing is None:
                raise
            return ReplenishmentResult(store_id=store_id, outcome=EXISTING, needs=needs, order=existing)
        current_app.logger.info(
            "Replenishment draft %s created for store %s (%d lines)", order.order_number, store.id, len(needs)
        )
        return ReplenishmentResult(store_id=store.id, outcome=CREATED, needs=needs, order=order)

    return run_with_retry(_op)


def generate_all(run_key: str | None = None, *, created_by: str | None = None) -> ReplenishmentRun:
    """
    Run generate() for every active store under one run key.

    A failing store is rolled back, logged and reported; the batch carries on.
    """
    run = ReplenishmentRun(run_key=run_key or default_run_key())
    store_ids = [
        sid for (sid,) in
        db.session.query(Store.id).filter(Store.is_active.is_(True)).order_by(Store.id.asc()).all()
    ]

    for store_id in store_ids:
        try:
            run.results.append(generate(store_id, run.run_key, created_by=created_by))
        except WholesaleError as e:
            db.session.rollback()
            current_app.logger.warning("Replenishment skipped for store %s: %s", store_id, e.message)
            run.failures.append({"store_id": store_id, "error": e.message, "code": e.code})
        except Exception as e:
            db.session.rollback()
            current_app.logger.exception("Replenishment failed for store %s", store_id)
            run.failures.append({"store_id": store_id, "error": str(e), "code": "error"})

    current_app.logger.info(
        "Replenishment run %s: %d created, %d existing, %d not needed, %d failed",
        run.run_key, run.count(CREATED), run.count(EXISTING), run.count(NOT_NEEDED), len(run.failures),
    )
    return run
