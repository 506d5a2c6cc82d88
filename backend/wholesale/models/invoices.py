from __future__ import annotations

from ..extensions import db
from wholesale.time_utils import to_utc_z


class Invoice(db.Model):
    """
    Bill for one approved order.

    INVARIANTS:
    - total_amount_cents is fixed when the invoice is created (order.final_amount).
    - return_amount_cents only grows, and only through returns processing.
    - collectible = max(0, total - return_amount - paid_amount).
    - payment_status is 'paid' exactly when nothing is collectible.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_invoices_order"),
        db.UniqueConstraint("invoice_number", name="uq_invoices_number"),
        db.Index("ix_invoices_status_due", "payment_status", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(64), nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    total_amount_cents = db.Column(db.Integer, nullable=False)
    return_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    due_date = db.Column(db.Date, nullable=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    order = db.relationship("Order", backref=db.backref("invoice", uselist=False, lazy=True))
    store = db.relationship("Store", backref=db.backref("invoices", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def collectible_amount_cents(self) -> int:
        owed = (self.total_amount_cents or 0) - (self.return_amount_cents or 0) - (self.paid_amount_cents or 0)
        return max(0, owed)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "order_id": self.order_id,
            "store_id": self.store_id,
            "total_amount_cents": self.total_amount_cents,
            "return_amount_cents": self.return_amount_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "collectible_amount_cents": self.collectible_amount_cents,
            "payment_status": self.payment_status,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "paid_at": to_utc_z(self.paid_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Payment(db.Model):
    """
    Money received against an invoice.

    DESIGN: Payments are separate from invoices to support partial payments
    collected by drivers on delivery and later bank settlements.
    """
    __tablename__ = "payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    delivery_id = db.Column(db.Integer, db.ForeignKey("deliveries.id"), nullable=True, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False, index=True)
    receipt_ref = db.Column(db.String(512), nullable=True)
    notes = db.Column(db.String(255), nullable=True)

    recorded_by = db.Column(db.String(64), nullable=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    invoice = db.relationship("Invoice", backref=db.backref("payments", lazy=True, order_by="Payment.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "order_id": self.order_id,
            "delivery_id": self.delivery_id,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "receipt_ref": self.receipt_ref,
            "notes": self.notes,
            "recorded_by": self.recorded_by,
            "paid_at": to_utc_z(self.paid_at),
        }
