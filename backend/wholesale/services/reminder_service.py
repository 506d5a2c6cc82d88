# Overview: Payment reminder sweep for overdue invoices; at most one reminder per invoice per day.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Invoice, PaymentReminder, PaymentStatus, ReminderType
from wholesale.time_utils import utctoday
from . import notification_service


@dataclass
class ReminderRunResult:
    sent: list[PaymentReminder] = field(default_factory=list)
    skipped: int = 0
    failed: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "sent": len(self.sent),
            "skipped": self.skipped,
            "failed": self.failed,
            "reminders": [r.to_dict() for r in self.sent],
        }


def reminder_type_for(days_overdue: int) -> ReminderType:
    if days_overdue <= 7:
        return ReminderType.FIRST
    if days_overdue <= 14:
        return ReminderType.SECOND
    return ReminderType.FINAL


def send_payment_reminders(today: date | None = None) -> ReminderRunResult:
    """
    Persist one reminder per overdue invoice for `today` and notify its store.

    Invoices already reminded today are skipped. Each invoice commits on its
    own so one failure does not block the rest of the sweep; the store
    notification is fire-and-forget.
    """
    today = today or utctoday()
    result = ReminderRunResult()

    overdue = (
        db.session.query(Invoice)
        .filter(Invoice.payment_status == PaymentStatus.OVERDUE.value)
        .order_by(Invoice.due_date.asc(), Invoice.id.asc())
        .all()
    )
    targets = [(inv.id, inv.store_id, inv.invoice_number, inv.due_date, inv.collectible_amount_cents) for inv in overdue]

    for invoice_id, store_id, invoice_number, due_date, collectible in targets:
        already_sent = (
            db.session.query(PaymentReminder.id)
            .filter_by(invoice_id=invoice_id, reminder_date=today)
            .first()
        )
        if already_sent:
            result.skipped += 1
            continue

        days_overdue = (today - due_date).days
        reminder_type = reminder_type_for(days_overdue)
        try:
            reminder = PaymentReminder(
                invoice_id=invoice_id,
                store_id=store_id,
                reminder_type=reminder_type.value,
                reminder_date=today,
                days_overdue=days_overdue,
            )
            db.session.add(reminder)
            db.session.commit()
        except IntegrityError:
            # Another sweep got there first today
            db.session.rollback()
            result.skipped += 1
            continue
        except Exception as exc:
            db.session.rollback()
            current_app.logger.exception("Failed to record payment reminder for invoice %s", invoice_number)
            result.failed.append({"invoice_id": invoice_id, "error": str(exc)})
            continue

        result.sent.append(reminder)
        notification_service.dispatch(
            notification_type=notification_service.PAYMENT_REMINDER,
            store_id=store_id,
            title=f"Payment reminder ({reminder_type.value}): {invoice_number}",
            message=(
                f"Invoice {invoice_number} is {days_overdue} day(s) overdue. "
                f"Amount outstanding: {collectible} cents."
            ),
            entity_type="invoice",
            entity_id=invoice_id,
        )

    current_app.logger.info(
        "Payment reminders: %d sent, %d skipped, %d failed",
        len(result.sent), result.skipped, len(result.failed),
    )
    return result


def list_reminders(invoice_id: int) -> list[PaymentReminder]:
    return (
        db.session.query(PaymentReminder)
        .filter_by(invoice_id=invoice_id)
        .order_by(PaymentReminder.sent_at.desc(), PaymentReminder.id.desc())
        .all()
    )
