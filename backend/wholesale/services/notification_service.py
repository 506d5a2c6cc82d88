# Overview: Fire-and-forget in-app notifications; a failed dispatch never undoes the change that triggered it.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Notification


ORDER_APPROVED = "order_approved"
ORDER_REJECTED = "order_rejected"
PAYMENT_REMINDER = "payment_reminder"
LOW_STOCK = "low_stock"


def dispatch(
    *,
    notification_type: str,
    title: str,
    message: str,
    store_id: int | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
) -> Notification | None:
    """
    Persist one notification in its own commit.

    Call only after the triggering transaction has committed. Failures are
    logged and rolled back; None is returned instead of raising.
    """
    try:
        notification = Notification(
            store_id=store_id,
            notification_type=notification_type,
            title=title[:255],
            message=message,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.session.add(notification)
        db.session.commit()
        return notification
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "Failed to dispatch %s notification (store_id=%s, %s=%s)",
            notification_type, store_id, entity_type, entity_id,
        )
        return None


def list_notifications(store_id: int | None = None, *, unread_only: bool = False, limit: int = 100) -> list[Notification]:
    q = db.session.query(Notification).filter(Notification.is_archived.is_(False))
    if store_id is not None:
        q = q.filter(Notification.store_id == store_id)
    if unread_only:
        q = q.filter(Notification.is_read.is_(False))
    return q.order_by(Notification.id.desc()).limit(limit).all()


def mark_read(notification_id: int) -> Notification | None:
    notification = db.session.get(Notification, notification_id)
    if notification is None:
        return None
    notification.is_read = True
    db.session.commit()
    return notification
