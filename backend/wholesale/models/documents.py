from __future__ import annotations

from ..extensions import db
from wholesale.time_utils import to_utc_z


class DeliveryReturn(db.Model):
    """
    Goods handed back to the driver on a delivered delivery.

    Immutable once written. Its existence is the only thing that raises
    Invoice.return_amount_cents and credits the store's stock with reason
    'return'; line_value_cents records the credit this line contributed.
    """
    __tablename__ = "delivery_returns"
    __table_args__ = (
        db.Index("ix_delivery_returns_delivery_product", "delivery_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    delivery_id = db.Column(db.Integer, db.ForeignKey("deliveries.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(16), nullable=False, index=True)

    batch_number = db.Column(db.String(64), nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.String(255), nullable=True)

    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_value_cents = db.Column(db.Integer, nullable=False)

    returned_by = db.Column(db.String(64), nullable=False)
    returned_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    delivery = db.relationship("Delivery", backref=db.backref("returns", lazy=True, order_by="DeliveryReturn.id"))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "delivery_id": self.delivery_id,
            "product_id": self.product_id,
            "sku": self.product.sku if self.product else None,
            "quantity": self.quantity,
            "reason": self.reason,
            "batch_number": self.batch_number,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "notes": self.notes,
            "unit_price_cents": self.unit_price_cents,
            "line_value_cents": self.line_value_cents,
            "returned_by": self.returned_by,
            "returned_at": to_utc_z(self.returned_at),
        }


class LedgerEvent(db.Model):
    """Append-only audit trail of domain events; never updated or deleted."""
    __tablename__ = "ledger_events"
    __table_args__ = (
        db.Index("ix_ledger_events_store_occurred", "store_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    # What happened
    event_type = db.Column(db.String(64), nullable=False, index=True)  # e.g., order.approved, delivery.delivered
    event_category = db.Column(db.String(32), nullable=False, index=True)  # orders, deliveries, stock, returns, invoices

    # What it refers to (generic pointer)
    entity_type = db.Column(db.String(64), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    actor_id = db.Column(db.String(64), nullable=True, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    delivery_id = db.Column(db.Integer, db.ForeignKey("deliveries.id"), nullable=True, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)

    # Business vs system time
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # Optional structured metadata (keep small; do not denormalize domain state)
    note = db.Column(db.String(255), nullable=True)
    payload = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "event_type": self.event_type,
            "event_category": self.event_category,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "order_id": self.order_id,
            "delivery_id": self.delivery_id,
            "invoice_id": self.invoice_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
            "note": self.note,
            "payload": self.payload,
        }


class DocumentSequence(db.Model):
    """
    Atomic per-store document sequences.

    WHY: Prevent race conditions when generating document numbers
    (orders, replenishment drafts, invoices).
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("store_id", "document_type", name="uq_doc_sequences_store_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
