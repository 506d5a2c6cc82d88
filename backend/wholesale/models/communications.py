from __future__ import annotations

from ..extensions import db
from wholesale.time_utils import to_utc_z


class Notification(db.Model):
    """In-app notification addressed to a store (or to staff when store_id is NULL)."""
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_store_read", "store_id", "is_read"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)

    notification_type = db.Column(db.String(32), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)

    entity_type = db.Column(db.String(64), nullable=True)
    entity_id = db.Column(db.Integer, nullable=True)

    is_read = db.Column(db.Boolean, nullable=False, default=False)
    is_archived = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "notification_type": self.notification_type,
            "title": self.title,
            "message": self.message,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "is_read": self.is_read,
            "is_archived": self.is_archived,
            "created_at": to_utc_z(self.created_at),
        }


class PaymentReminder(db.Model):
    """One reminder sent for an overdue invoice; at most one per invoice per day."""
    __tablename__ = "payment_reminders"
    __table_args__ = (
        db.UniqueConstraint("invoice_id", "reminder_date", name="uq_payment_reminders_invoice_day"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    reminder_type = db.Column(db.String(16), nullable=False)
    reminder_date = db.Column(db.Date, nullable=False)
    days_overdue = db.Column(db.Integer, nullable=False)

    sent_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "store_id": self.store_id,
            "reminder_type": self.reminder_type,
            "reminder_date": self.reminder_date.isoformat() if self.reminder_date else None,
            "days_overdue": self.days_overdue,
            "sent_at": to_utc_z(self.sent_at),
        }
