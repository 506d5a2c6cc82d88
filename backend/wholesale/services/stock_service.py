# Overview: Per-store stock ledger; every change is a StockMovement folded into StoreStock.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import NotFound, InvalidQuantity, InvalidReason
from ..models import Store, Product, StoreStock, StockMovement, StockReason
from wholesale.time_utils import utcnow
from .ledger_service import append_ledger_event
from .concurrency import lock_for_update, run_with_retry
from . import notification_service
"""
Stock Ledger Invariants (authoritative)

Journal:
- StockMovement is append-only: (store, product, delta, reason, resulting_stock,
  actor, order/return reference, occurred_at).
- StoreStock.current_stock is the projection of that journal and is written in
  the same transaction as the movement, never on its own.
- A StoreStock row is created on first touch with current_stock = 0.

Floors:
- adjust_stock() is the primitive and enforces no floor.
- Callers decide whether a negative result is acceptable:
    manual_adjustment          may go negative only with allow_negative=True
    wastage                    negative deltas only, never below zero
    replenishment_consumption  negative deltas only, never below zero
    return                     positive deltas only, written by returns processing

Alerts:
- An adjustment that moves stock from at/above its threshold to below it
  dispatches a low-stock notification after the commit.
"""


# Reasons an operator may post directly; 'return' belongs to returns processing
MANUAL_REASONS = frozenset({
    StockReason.MANUAL_ADJUSTMENT,
    StockReason.WASTAGE,
    StockReason.REPLENISHMENT_CONSUMPTION,
})

_CONSUMPTION_REASONS = frozenset({StockReason.WASTAGE, StockReason.REPLENISHMENT_CONSUMPTION})


def _get_or_create_entry(store_id: int, product_id: int) -> StoreStock:
    query = db.session.query(StoreStock).filter_by(store_id=store_id, product_id=product_id)
    entry = lock_for_update(query).first()
    if entry is not None:
        return entry

    try:
        with db.session.begin_nested():
            entry = StoreStock(store_id=store_id, product_id=product_id, current_stock=0)
            db.session.add(entry)
    except IntegrityError:
        # Lost the first-touch race; the other writer's row is now visible
        entry = lock_for_update(query).first()
        if entry is None:
            raise
    return entry


def adjust_stock(
    *,
    store_id: int,
    product_id: int,
    delta: int,
    reason,
    actor_id: str | None = None,
    order_id: int | None = None,
    return_id: int | None = None,
    note: str | None = None,
) -> StockMovement:
    """
    Append a movement and fold it into the store's current stock.

    Runs inside the caller's transaction (flushes, never commits).
    """
    stock_reason = StockReason.parse(reason)
    if stock_reason is None:
        raise InvalidReason(
            f"Invalid stock reason '{reason}'",
            details={"reason": reason, "allowed": StockReason.values()},
        )
    delta = int(delta)
    if delta == 0:
        raise InvalidQuantity("Stock adjustment quantity must be non-zero", details={"delta": delta})

    entry = _get_or_create_entry(store_id, product_id)
    entry.current_stock = (entry.current_stock or 0) + delta
    entry.updated_by = actor_id
    entry.last_updated = utcnow()

    movement = StockMovement(
        store_id=store_id,
        product_id=product_id,
        quantity_delta=delta,
        reason=stock_reason.value,
        resulting_stock=entry.current_stock,
        order_id=order_id,
        return_id=return_id,
        actor_id=actor_id,
        note=note[:255] if note else None,
        occurred_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def crossed_below_threshold(previous_stock: int, resulting_stock: int, threshold: int) -> bool:
    return threshold > 0 and previous_stock >= threshold > resulting_stock


def record_adjustment(
    store_id: int,
    product_id: int,
    delta: int,
    reason,
    *,
    actor_id: str | None = None,
    note: str | None = None,
    allow_negative: bool = False,
) -> StockMovement:
    """Operator-posted stock change with the caller-side floor rules applied."""
    stock_reason = StockReason.parse(reason)
    if stock_reason not in MANUAL_REASONS:
        raise InvalidReason(
            f"Invalid stock adjustment reason '{reason}'",
            details={"reason": reason, "allowed": sorted(r.value for r in MANUAL_REASONS)},
        )
    try:
        delta = int(delta)
    except (TypeError, ValueError):
        raise InvalidQuantity("quantity must be an integer", details={"quantity": delta}) from None
    if stock_reason in _CONSUMPTION_REASONS and delta >= 0:
        raise InvalidQuantity(
            f"{stock_reason.value} adjustments must decrease stock",
            details={"reason": stock_reason.value, "delta": delta},
        )

    def _op():
        if db.session.get(Store, store_id) is None:
            raise NotFound("Store", store_id)
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFound("Product", product_id)

        entry = _get_or_create_entry(store_id, product_id)
        previous = entry.current_stock or 0
        resulting = previous + delta
        may_go_negative = allow_negative and stock_reason == StockReason.MANUAL_ADJUSTMENT
        if resulting < 0 and not may_go_negative:
            raise InvalidQuantity(
                f"Stock adjustment would result in negative stock. Current: {previous}, Adjustment: {delta}",
                details={"current_stock": previous, "delta": delta},
            )

        movement = adjust_stock(
            store_id=store_id,
            product_id=product_id,
            delta=delta,
            reason=stock_reason,
            actor_id=actor_id,
            note=note,
        )
        append_ledger_event(
            store_id=store_id,
            event_type="stock.adjusted",
            event_category="stock",
            entity_type="stock_movement",
            entity_id=movement.id,
            actor_id=actor_id,
            occurred_at=movement.occurred_at,
            note=note,
            payload={
                "product_id": product_id,
                "delta": delta,
                "reason": stock_reason.value,
                "resulting_stock": movement.resulting_stock,
            },
        )
        db.session.commit()
        return movement, previous, entry.threshold, product

    movement, previous, threshold, product = run_with_retry(_op)

    if crossed_below_threshold(previous, movement.resulting_stock, threshold):
        notification_service.dispatch(
            notification_type=notification_service.LOW_STOCK,
            store_id=store_id,
            title=f"Low stock: {product.name}",
            message=(
                f"{product.name} ({product.sku}) is at {movement.resulting_stock}, "
                f"below the minimum of {threshold}."
            ),
            entity_type="product",
            entity_id=product_id,
        )
    return movement


def set_stock_level(
    store_id: int,
    product_id: int,
    new_level: int,
    *,
    actor_id: str | None = None,
    note: str | None = None,
) -> StockMovement | None:
    """
    Record a counted stock level as a manual adjustment of the difference.

    Returns None when the count matches the current stock.
    """
    try:
        new_level = int(new_level)
    except (TypeError, ValueError):
        raise InvalidQuantity("current_stock must be an integer", details={"current_stock": new_level}) from None
    if new_level < 0:
        raise InvalidQuantity("current_stock cannot be negative", details={"current_stock": new_level})

    delta = new_level - get_stock_level(store_id, product_id)
    if delta == 0:
        return None
    return record_adjustment(
        store_id,
        product_id,
        delta,
        StockReason.MANUAL_ADJUSTMENT,
        actor_id=actor_id,
        note=note or "Stock count",
    )


def set_min_stock_level(store_id: int, product_id: int, min_stock_level: int | None) -> StoreStock:
    """Set (or clear with None) the store-specific replenishment threshold."""
    if min_stock_level is not None:
        try:
            min_stock_level = int(min_stock_level)
        except (TypeError, ValueError):
            raise InvalidQuantity("min_stock_level must be an integer") from None
        if min_stock_level < 0:
            raise InvalidQuantity("min_stock_level cannot be negative", details={"min_stock_level": min_stock_level})

    def _op():
        if db.session.get(Store, store_id) is None:
            raise NotFound("Store", store_id)
        if db.session.get(Product, product_id) is None:
            raise NotFound("Product", product_id)
        entry = _get_or_create_entry(store_id, product_id)
        entry.min_stock_level = min_stock_level
        db.session.commit()
        return entry

    return run_with_retry(_op)


# =============================================================================
# READS
# =============================================================================

def get_stock_level(store_id: int, product_id: int) -> int:
    entry = db.session.query(StoreStock).filter_by(store_id=store_id, product_id=product_id).first()
    return entry.current_stock if entry else 0


def list_store_stock(store_id: int) -> list[StoreStock]:
    if db.session.get(Store, store_id) is None:
        raise NotFound("Store", store_id)
    return (
        db.session.query(StoreStock)
        .join(Product, Product.id == StoreStock.product_id)
        .filter(StoreStock.store_id == store_id)
        .order_by(Product.name.asc())
        .all()
    )


def list_movements(store_id: int, product_id: int | None = None, limit: int = 200) -> list[StockMovement]:
    q = db.session.query(StockMovement).filter(StockMovement.store_id == store_id)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    return q.order_by(StockMovement.id.desc()).limit(limit).all()
