"""
Domain error taxonomy.

Every service-level failure is one of these classes. Routes translate them to
JSON with `to_dict()` and `http_status`; anything else is an unexpected 500.
Batch operations (multi-line returns, bulk product updates) collect every
violation before raising so the caller can fix everything in one round trip.
"""

from __future__ import annotations


class WholesaleError(Exception):
    """Base exception for all domain errors."""

    http_status = 400
    code = "error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class NotFound(WholesaleError):
    http_status = 404
    code = "not_found"

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} {entity_id} not found",
            details={"entity": entity, "id": entity_id},
        )


class InvalidTransition(WholesaleError):
    """Raised when a state machine is asked to move along an edge it does not have."""

    http_status = 409
    code = "invalid_transition"

    def __init__(self, entity: str, current: str, target: str, allowed: list[str]):
        self.entity = entity
        self.current = current
        self.target = target
        self.allowed = list(allowed)
        allowed_str = ", ".join(self.allowed) if self.allowed else "none (terminal)"
        super().__init__(
            f"Cannot move {entity} from '{current}' to '{target}'. Allowed: {allowed_str}",
            details={"current": current, "target": target, "allowed": self.allowed},
        )


class CreditLimitExceeded(WholesaleError):
    http_status = 409
    code = "credit_limit_exceeded"

    def __init__(self, store_id: int, credit_limit_cents: int, current_balance_cents: int, amount_cents: int):
        self.store_id = store_id
        self.credit_limit_cents = credit_limit_cents
        self.current_balance_cents = current_balance_cents
        self.amount_cents = amount_cents
        self.new_balance_cents = current_balance_cents + amount_cents
        super().__init__(
            f"Order would exceed credit limit. Current balance: {current_balance_cents}, "
            f"order amount: {amount_cents}, credit limit: {credit_limit_cents}",
            details={
                "store_id": store_id,
                "credit_limit_cents": credit_limit_cents,
                "current_balance_cents": current_balance_cents,
                "order_amount_cents": amount_cents,
                "new_balance_cents": self.new_balance_cents,
            },
        )


class InactiveStore(WholesaleError):
    http_status = 409
    code = "inactive_store"

    def __init__(self, store_id: int):
        self.store_id = store_id
        super().__init__(f"Store {store_id} is not active", details={"store_id": store_id})


class InactiveProduct(WholesaleError):
    http_status = 409
    code = "inactive_product"

    def __init__(self, product_ids: list[int]):
        self.product_ids = list(product_ids)
        super().__init__(
            "Order contains inactive products",
            details={"product_ids": self.product_ids},
        )


class EmptyOrder(WholesaleError):
    code = "empty_order"

    def __init__(self, order_id: int | None = None):
        self.order_id = order_id
        super().__init__("Order has no items", details={"order_id": order_id})


class InvalidQuantity(WholesaleError):
    code = "invalid_quantity"


class InvalidReason(WholesaleError):
    code = "invalid_reason"


class InvalidState(WholesaleError):
    """The entity exists but is not in a state that permits the operation."""

    http_status = 409
    code = "invalid_state"


class OverReturn(WholesaleError):
    http_status = 409
    code = "over_return"

    def __init__(self, violations: list[dict]):
        self.violations = list(violations)
        super().__init__(
            "Return quantity exceeds the quantity still returnable",
            details={"violations": self.violations},
        )


class ValidationFailed(WholesaleError):
    """Aggregate of every violation found in a batch request."""

    code = "validation_failed"

    def __init__(self, message: str, errors: list[dict]):
        self.errors = list(errors)
        super().__init__(message, details={"errors": self.errors})


class ConflictError(WholesaleError):
    """409-level business rule conflict (e.g., duplicate SKU)."""

    http_status = 409
    code = "conflict"
