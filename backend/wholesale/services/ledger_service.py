# Overview: Append-only audit ledger for domain events.

from __future__ import annotations

import json
from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import LedgerEvent
"""
Audit Ledger Invariants (authoritative)

- Append-only audit log for cross-cutting domain events.
- No domain/business logic in the ledger itself.
- Events are written inside the same DB transaction as the domain event they record.
- occurred_at is business time; created_at is system time (DB default).
"""


def append_ledger_event(
    *,
    store_id: int,
    event_type: str,
    event_category: str,
    entity_type: str,
    entity_id: int,
    actor_id: str | None = None,
    order_id: int | None = None,
    delivery_id: int | None = None,
    invoice_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict] = None,
) -> LedgerEvent:
    """
    Append-only ledger event.

    - No domain logic here.
    - No deletes/updates of existing events.
    - The caller owns the transaction; this only flushes.
    """
    ev = LedgerEvent(
        store_id=store_id,
        event_type=event_type,
        event_category=event_category,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=str(actor_id) if actor_id is not None else None,
        order_id=order_id,
        delivery_id=delivery_id,
        invoice_id=invoice_id,
        occurred_at=occurred_at,  # if None, db default applies
        note=note[:255] if note else None,
        payload=json.dumps(payload, sort_keys=True, default=str) if payload is not None else None,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_ledger_events(
    *,
    store_id: int | None = None,
    order_id: int | None = None,
    event_category: str | None = None,
    limit: int = 200,
) -> list[LedgerEvent]:
    q = db.session.query(LedgerEvent)
    if store_id is not None:
        q = q.filter(LedgerEvent.store_id == store_id)
    if order_id is not None:
        q = q.filter(LedgerEvent.order_id == order_id)
    if event_category is not None:
        q = q.filter(LedgerEvent.event_category == event_category)
    return q.order_by(LedgerEvent.id.desc()).limit(limit).all()
