from __future__ import annotations

from ..extensions import db
from wholesale.time_utils import to_utc_z


class Store(db.Model):
    """
    Customer store buying on credit.

    CREDIT LEDGER:
    - credit_limit_cents: ceiling on current_balance_cents; NULL means unlimited.
      A stored 0 is the legacy "unlimited" sentinel and is honoured as such.
    - current_balance_cents: signed; positive means the store owes money.
      Approval adds the order's final amount, accepted returns and payments
      subtract from it. There is no separate credit journal; the balance is
      evaluated against the limit at approval time.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.Index("ix_stores_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    credit_limit_cents = db.Column(db.Integer, nullable=True)
    current_balance_cents = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def has_credit_limit(self) -> bool:
        return self.credit_limit_cents is not None and self.credit_limit_cents > 0

    @property
    def available_credit_cents(self) -> int | None:
        if not self.has_credit_limit:
            return None
        return self.credit_limit_cents - (self.current_balance_cents or 0)

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "email": self.email,
            "address": self.address,
            "credit_limit_cents": self.credit_limit_cents,
            "current_balance_cents": self.current_balance_cents,
            "available_credit_cents": self.available_credit_cents,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
