from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import NotFound, ConflictError
from ..models import Store
from ..validation import ModelValidationPolicy
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import append_ledger_event


STORE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "code", "email", "address", "credit_limit_cents", "is_active"},
    required_on_create={"name"},
)


def create_store(*, patch: dict, actor_id: str | None = None) -> Store:
    def _op():
        store = Store(
            name=patch["name"],
            code=patch.get("code"),
            email=patch.get("email"),
            address=patch.get("address"),
            credit_limit_cents=patch.get("credit_limit_cents"),
            current_balance_cents=0,
            is_active=patch.get("is_active", True),
        )
        db.session.add(store)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(f"Store code '{patch.get('code')}' already exists") from None

        append_ledger_event(
            store_id=store.id,
            event_type="store.created",
            event_category="stores",
            entity_type="store",
            entity_id=store.id,
            actor_id=actor_id,
            note=f"Store {store.name} created",
        )
        db.session.commit()
        return store

    return run_with_retry(_op)


def update_store(store_id: int, *, patch: dict, actor_id: str | None = None) -> Store:
    """Apply an allowlisted patch. current_balance_cents is never writable here."""
    def _op():
        store = lock_for_update(db.session.query(Store).filter_by(id=store_id)).first()
        if not store:
            raise NotFound("Store", store_id)

        changed = {}
        for key, value in patch.items():
            if key not in STORE_POLICY.writable_fields:
                continue
            if getattr(store, key) != value:
                changed[key] = {"from": getattr(store, key), "to": value}
                setattr(store, key, value)

        if not changed:
            return store

        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(f"Store code '{patch.get('code')}' already exists") from None

        append_ledger_event(
            store_id=store.id,
            event_type="store.updated",
            event_category="stores",
            entity_type="store",
            entity_id=store.id,
            actor_id=actor_id,
            payload=changed,
        )
        db.session.commit()
        return store

    return run_with_retry(_op)


def get_store(store_id: int) -> Store:
    store = db.session.get(Store, store_id)
    if store is None:
        raise NotFound("Store", store_id)
    return store


def list_stores(*, active_only: bool = False) -> list[Store]:
    q = db.session.query(Store)
    if active_only:
        q = q.filter(Store.is_active.is_(True))
    return q.order_by(Store.name.asc(), Store.id.asc()).all()
