# Overview: Per-store document numbering for orders, replenishment drafts and invoices.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def next_document_number(
    *,
    store_id: int,
    document_type: str,
    prefix: str,
    pad: int = 6,
) -> str:
    """
    Allocate the next document number for a store/type inside the caller's transaction.

    The counter row is bumped with a single UPDATE so concurrent allocators
    serialize on it; the first allocation for a (store, type) inserts the row
    under a savepoint so a racing insert does not poison the outer transaction.
    """
    if not store_id:
        raise DocumentSequenceError("store_id is required")
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.store_id == store_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current_number(store_id, document_type) - 1
    else:
        try:
            with db.session.begin_nested():
                db.session.add(
                    DocumentSequence(store_id=store_id, document_type=document_type, next_number=2)
                )
            next_num = 1
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _current_number(store_id, document_type) - 1

    return f"{prefix}-{store_id:03d}-{next_num:0{pad}d}"


def _current_number(store_id: int, document_type: str) -> int:
    db.session.flush()
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(store_id=store_id, document_type=document_type)
        .scalar()
    )
