# Overview: Kitchen preparation sheets; one per approved order, one line per order item.

from __future__ import annotations

from ..extensions import db
from ..errors import NotFound, InvalidState
from ..models import Order, KitchenSheet, KitchenSheetItem, KitchenSheetStatus
from wholesale.time_utils import utcnow, parse_iso_date
from .lifecycle_service import require_transition, is_terminal
from .ledger_service import append_ledger_event
from .concurrency import lock_for_update, run_with_retry


def create_sheet_for_order(order: Order) -> KitchenSheet:
    """
    Spawn the order's kitchen sheet inside the approval transaction.

    Never commits; a failure here aborts the approval.
    """
    sheet = KitchenSheet(order_id=order.id, status=KitchenSheetStatus.PENDING.value)
    for item in order.items:
        sheet.items.append(KitchenSheetItem(product_id=item.product_id, quantity=item.quantity))
    db.session.add(sheet)
    db.session.flush()
    return sheet


def cancel_sheet_for_order(order: Order) -> KitchenSheet | None:
    """Cancel the order's sheet unless it is already terminal (inside the caller's transaction)."""
    sheet = order.kitchen_sheet
    if sheet is None or is_terminal("kitchen_sheet", sheet.status):
        return None
    require_transition("kitchen_sheet", sheet.status, KitchenSheetStatus.CANCELLED)
    sheet.status = KitchenSheetStatus.CANCELLED.value
    return sheet


def get_sheet(sheet_id: int) -> KitchenSheet:
    sheet = db.session.get(KitchenSheet, sheet_id)
    if sheet is None:
        raise NotFound("KitchenSheet", sheet_id)
    return sheet


def list_sheets(*, status: str | None = None, limit: int = 200) -> list[KitchenSheet]:
    q = db.session.query(KitchenSheet)
    if status:
        q = q.filter(KitchenSheet.status == status)
    return q.order_by(KitchenSheet.id.desc()).limit(limit).all()


def transition_sheet(sheet_id: int, target: str, *, actor_id: str | None = None) -> KitchenSheet:
    """
    Move a sheet to in_progress or completed.

    Cancellation only happens through order cancellation.
    """
    target_status = KitchenSheetStatus.parse(target)
    if target_status == KitchenSheetStatus.CANCELLED:
        raise InvalidState(
            "Kitchen sheets are cancelled by cancelling their order",
            details={"kitchen_sheet_id": sheet_id},
        )

    def _op():
        sheet = lock_for_update(db.session.query(KitchenSheet).filter_by(id=sheet_id)).first()
        if sheet is None:
            raise NotFound("KitchenSheet", sheet_id)

        previous = sheet.status
        require_transition("kitchen_sheet", previous, target)

        sheet.status = target_status.value
        if target_status == KitchenSheetStatus.COMPLETED:
            sheet.completed_at = utcnow()
            sheet.prepared_by = actor_id or sheet.prepared_by
        elif actor_id:
            sheet.prepared_by = actor_id

        append_ledger_event(
            store_id=sheet.order.store_id,
            event_type=f"kitchen_sheet.{target_status.value}",
            event_category="kitchen",
            entity_type="kitchen_sheet",
            entity_id=sheet.id,
            actor_id=actor_id,
            order_id=sheet.order_id,
            payload={"from": previous, "to": target_status.value},
        )
        db.session.commit()
        return sheet

    return run_with_retry(_op)


def record_batch(
    sheet_id: int,
    item_id: int,
    *,
    batch_number: str | None = None,
    expiry_date=None,
) -> KitchenSheetItem:
    """Record the production batch and expiry for one sheet line."""
    expiry = parse_iso_date(expiry_date)

    def _op():
        sheet = lock_for_update(db.session.query(KitchenSheet).filter_by(id=sheet_id)).first()
        if sheet is None:
            raise NotFound("KitchenSheet", sheet_id)
        if sheet.status == KitchenSheetStatus.CANCELLED.value:
            raise InvalidState(
                "Cannot record batches on a cancelled kitchen sheet",
                details={"kitchen_sheet_id": sheet_id, "status": sheet.status},
            )

        item = (
            db.session.query(KitchenSheetItem)
            .filter_by(id=item_id, kitchen_sheet_id=sheet_id)
            .first()
        )
        if item is None:
            raise NotFound("KitchenSheetItem", item_id)

        if batch_number is not None:
            item.batch_number = batch_number.strip() or None
        if expiry is not None:
            item.expiry_date = expiry
        db.session.commit()
        return item

    return run_with_retry(_op)
