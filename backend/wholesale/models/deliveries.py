from __future__ import annotations

from ..extensions import db
from wholesale.time_utils import to_utc_z


class Delivery(db.Model):
    """
    Delivery note for one approved order.

    delivered_at is stamped once, on the first transition into 'delivered'.
    """
    __tablename__ = "deliveries"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_deliveries_order"),
        db.Index("ix_deliveries_driver_status", "driver_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    scheduled_date = db.Column(db.Date, nullable=True)
    driver_id = db.Column(db.String(64), nullable=True)

    dispatched_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    order = db.relationship("Order", backref=db.backref("delivery", uselist=False, lazy=True))
    proof = db.relationship(
        "DeliveryProof",
        backref="delivery",
        uselist=False,
        lazy=True,
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "status": self.status,
            "scheduled_date": self.scheduled_date.isoformat() if self.scheduled_date else None,
            "driver_id": self.driver_id,
            "dispatched_at": to_utc_z(self.dispatched_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "notes": self.notes,
            "proof": self.proof.to_dict() if self.proof else None,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class DeliveryProof(db.Model):
    """Proof-of-delivery; at most one row per delivery, latest write wins."""
    __tablename__ = "delivery_proofs"
    __table_args__ = (
        db.UniqueConstraint("delivery_id", name="uq_delivery_proofs_delivery"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    delivery_id = db.Column(db.Integer, db.ForeignKey("deliveries.id"), nullable=False, index=True)

    signature_ref = db.Column(db.String(512), nullable=True)
    photo_ref = db.Column(db.String(512), nullable=True)
    signed_by_name = db.Column(db.String(255), nullable=True)
    captured_by = db.Column(db.String(64), nullable=True)

    captured_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "delivery_id": self.delivery_id,
            "signature_ref": self.signature_ref,
            "photo_ref": self.photo_ref,
            "signed_by_name": self.signed_by_name,
            "captured_by": self.captured_by,
            "captured_at": to_utc_z(self.captured_at),
        }
