# Overview: Credit ledger rule gating order approval, and the balance movements that follow it.

"""
Credit Ledger

A store's credit position is the pair (credit_limit_cents, current_balance_cents)
on the Store row. It is evaluated, not journaled: every approval re-reads the
locked store row and checks

    new_balance = current_balance + order.final_amount
    reject when the store has a limit and new_balance > limit

A NULL limit means unlimited; a limit of 0 is the legacy "unlimited" sentinel
and is honoured the same way.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import CreditLimitExceeded
from ..models import Store


@dataclass(frozen=True)
class CreditCheck:
    store_id: int
    credit_limit_cents: int | None
    current_balance_cents: int
    amount_cents: int
    new_balance_cents: int
    unlimited: bool
    within_limit: bool

    def to_dict(self) -> dict:
        return {
            "store_id": self.store_id,
            "credit_limit_cents": self.credit_limit_cents,
            "current_balance_cents": self.current_balance_cents,
            "amount_cents": self.amount_cents,
            "new_balance_cents": self.new_balance_cents,
            "unlimited": self.unlimited,
            "within_limit": self.within_limit,
        }


def evaluate_credit(store: Store, amount_cents: int) -> CreditCheck:
    balance = store.current_balance_cents or 0
    new_balance = balance + int(amount_cents)
    unlimited = not store.has_credit_limit
    within = unlimited or new_balance <= store.credit_limit_cents
    return CreditCheck(
        store_id=store.id,
        credit_limit_cents=store.credit_limit_cents,
        current_balance_cents=balance,
        amount_cents=int(amount_cents),
        new_balance_cents=new_balance,
        unlimited=unlimited,
        within_limit=within,
    )


def require_credit_available(store: Store, amount_cents: int) -> CreditCheck:
    check = evaluate_credit(store, amount_cents)
    if not check.within_limit:
        raise CreditLimitExceeded(
            store.id,
            store.credit_limit_cents,
            check.current_balance_cents,
            check.amount_cents,
        )
    return check


def charge(store: Store, amount_cents: int) -> int:
    """Add an approved order's amount to the store's balance (caller holds the lock)."""
    store.current_balance_cents = (store.current_balance_cents or 0) + int(amount_cents)
    return store.current_balance_cents


def credit(store: Store, amount_cents: int) -> int:
    """Subtract a payment, return credit or reversal from the store's balance."""
    store.current_balance_cents = (store.current_balance_cents or 0) - int(amount_cents)
    return store.current_balance_cents
