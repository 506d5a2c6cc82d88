# Overview: Delivery state machine, driver assignment and proof-of-delivery capture.

"""
Delivery Service

Deliveries are created only by order approval, in 'pending', and cancelled
only by order cancellation. Everything else moves through
transition_delivery(), which checks the lifecycle table.

Entering 'delivered':
- stamps delivered_at once (a retried delivered request is a no-op)
- completes the underlying order in the same transaction
"""

from __future__ import annotations

from datetime import date, timedelta

from flask import current_app

from ..extensions import db
from ..errors import NotFound, InvalidState
from ..models import Order, Delivery, DeliveryProof, DeliveryStatus
from ..validation import ValidationError
from wholesale.time_utils import utcnow, utctoday, parse_iso_date
from .lifecycle_service import require_transition, is_terminal
from .ledger_service import append_ledger_event
from .concurrency import lock_for_update, run_with_retry


def create_delivery_for_order(order: Order, *, scheduled_date: date | None = None) -> Delivery:
    """Spawn the order's delivery record inside the approval transaction (never commits)."""
    if scheduled_date is None:
        lead_days = int(current_app.config.get("DEFAULT_DELIVERY_LEAD_DAYS", 1))
        scheduled_date = utctoday() + timedelta(days=lead_days)

    delivery = Delivery(
        order_id=order.id,
        status=DeliveryStatus.PENDING.value,
        scheduled_date=scheduled_date,
    )
    db.session.add(delivery)
    db.session.flush()
    return delivery


def cancel_delivery_for_order(order: Order) -> Delivery | None:
    """
    Cancel the order's open delivery (inside the caller's transaction).

    This is the only path into 'cancelled'; the lifecycle table has no
    direct edge to it.
    """
    delivery = order.delivery
    if delivery is None or is_terminal("delivery", delivery.status):
        return None
    delivery.status = DeliveryStatus.CANCELLED.value
    delivery.cancelled_at = utcnow()
    return delivery


def _load_locked(delivery_id: int) -> Delivery:
    delivery = lock_for_update(db.session.query(Delivery).filter_by(id=delivery_id)).first()
    if delivery is None:
        raise NotFound("Delivery", delivery_id)
    return delivery


def _log_transition(delivery: Delivery, previous: str, actor_id: str | None, **payload) -> None:
    append_ledger_event(
        store_id=delivery.order.store_id,
        event_type=f"delivery.{delivery.status}",
        event_category="deliveries",
        entity_type="delivery",
        entity_id=delivery.id,
        actor_id=actor_id,
        order_id=delivery.order_id,
        delivery_id=delivery.id,
        payload={"from": previous, "to": delivery.status, **payload},
    )


def transition_delivery(
    delivery_id: int,
    target: str,
    *,
    actor_id: str | None = None,
    driver_id: str | None = None,
) -> Delivery:
    """
    Move a delivery along one edge of its lifecycle.

    Raises InvalidTransition (with the allowed next states) for any edge
    outside the table; 'delivered' -> 'delivered' is accepted as a no-op.
    """
    def _op():
        delivery = _load_locked(delivery_id)
        previous = delivery.status
        target_status = DeliveryStatus.parse(target)

        if target_status == DeliveryStatus.DELIVERED and previous == DeliveryStatus.DELIVERED.value:
            return delivery

        require_transition("delivery", previous, target)

        if target_status == DeliveryStatus.ASSIGNED:
            new_driver = driver_id or delivery.driver_id
            if not new_driver:
                raise ValidationError("driver_id is required to assign a delivery", details={"field": "driver_id"})
            delivery.driver_id = new_driver
        elif target_status == DeliveryStatus.PENDING:
            delivery.driver_id = None
        elif target_status == DeliveryStatus.IN_TRANSIT:
            delivery.dispatched_at = utcnow()
        elif target_status == DeliveryStatus.DELIVERED:
            if delivery.delivered_at is None:
                delivery.delivered_at = utcnow()

        delivery.status = target_status.value

        if target_status == DeliveryStatus.DELIVERED:
            from .order_service import mark_order_completed
            mark_order_completed(delivery.order, actor_id=actor_id)

        _log_transition(delivery, previous, actor_id, driver_id=delivery.driver_id)
        db.session.commit()
        return delivery

    return run_with_retry(_op)


def assign_driver(delivery_id: int, driver_id: str, *, actor_id: str | None = None) -> Delivery:
    """Assign a pending delivery, or hand an assigned one to another driver."""
    if not driver_id:
        raise ValidationError("driver_id is required", details={"field": "driver_id"})

    def _op():
        delivery = _load_locked(delivery_id)
        if delivery.status != DeliveryStatus.ASSIGNED.value:
            return None
        previous_driver = delivery.driver_id
        delivery.driver_id = driver_id
        _log_transition(delivery, delivery.status, actor_id, driver_id=driver_id, previous_driver_id=previous_driver)
        db.session.commit()
        return delivery

    reassigned = run_with_retry(_op)
    if reassigned is not None:
        return reassigned
    return transition_delivery(delivery_id, DeliveryStatus.ASSIGNED.value, actor_id=actor_id, driver_id=driver_id)


def unassign(delivery_id: int, *, actor_id: str | None = None) -> Delivery:
    return transition_delivery(delivery_id, DeliveryStatus.PENDING.value, actor_id=actor_id)


def start_transit(delivery_id: int, *, actor_id: str | None = None) -> Delivery:
    return transition_delivery(delivery_id, DeliveryStatus.IN_TRANSIT.value, actor_id=actor_id)


def mark_delivered(delivery_id: int, *, actor_id: str | None = None) -> Delivery:
    return transition_delivery(delivery_id, DeliveryStatus.DELIVERED.value, actor_id=actor_id)


def reschedule(delivery_id: int, scheduled_date, *, actor_id: str | None = None) -> Delivery:
    new_date = parse_iso_date(scheduled_date)
    if new_date is None:
        raise ValidationError("scheduled_date is required", details={"field": "scheduled_date"})

    def _op():
        delivery = _load_locked(delivery_id)
        if is_terminal("delivery", delivery.status):
            raise InvalidState(
                f"Cannot reschedule a {delivery.status} delivery",
                details={"delivery_id": delivery_id, "status": delivery.status},
            )
        delivery.scheduled_date = new_date
        db.session.commit()
        return delivery

    return run_with_retry(_op)


# =============================================================================
# PROOF OF DELIVERY
# =============================================================================

def record_proof_of_delivery(
    delivery_id: int,
    *,
    signature_ref: str | None = None,
    photo_ref: str | None = None,
    signed_by_name: str | None = None,
    captured_by: str | None = None,
) -> DeliveryProof:
    """
    Upsert the delivery's proof record; the latest write wins.

    At least one of signature_ref / photo_ref is required.
    """
    if not signature_ref and not photo_ref:
        raise ValidationError("signature_ref or photo_ref is required", details={"fields": ["signature_ref", "photo_ref"]})

    def _op():
        delivery = _load_locked(delivery_id)
        if delivery.status == DeliveryStatus.CANCELLED.value:
            raise InvalidState(
                "Cannot record proof for a cancelled delivery",
                details={"delivery_id": delivery_id, "status": delivery.status},
            )

        proof = delivery.proof
        if proof is None:
            proof = DeliveryProof(delivery_id=delivery.id)
            delivery.proof = proof
        proof.signature_ref = signature_ref
        proof.photo_ref = photo_ref
        proof.signed_by_name = signed_by_name
        proof.captured_by = captured_by
        proof.captured_at = utcnow()

        # Bumps the delivery version so concurrent proof writers serialize
        delivery.updated_at = utcnow()

        db.session.flush()
        append_ledger_event(
            store_id=delivery.order.store_id,
            event_type="delivery.proof_recorded",
            event_category="deliveries",
            entity_type="delivery_proof",
            entity_id=proof.id,
            actor_id=captured_by,
            order_id=delivery.order_id,
            delivery_id=delivery.id,
        )
        db.session.commit()
        return proof

    return run_with_retry(_op)


# =============================================================================
# READS
# =============================================================================

def get_delivery(delivery_id: int) -> Delivery:
    delivery = db.session.get(Delivery, delivery_id)
    if delivery is None:
        raise NotFound("Delivery", delivery_id)
    return delivery


def list_deliveries(
    *,
    status: str | None = None,
    driver_id: str | None = None,
    scheduled_date=None,
    limit: int = 200,
) -> list[Delivery]:
    q = db.session.query(Delivery)
    if status:
        q = q.filter(Delivery.status == status)
    if driver_id:
        q = q.filter(Delivery.driver_id == driver_id)
    day = parse_iso_date(scheduled_date)
    if day is not None:
        q = q.filter(Delivery.scheduled_date == day)
    return q.order_by(Delivery.scheduled_date.asc(), Delivery.id.asc()).limit(limit).all()
