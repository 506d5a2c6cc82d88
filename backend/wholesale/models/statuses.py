"""
Closed status vocabularies.

Columns store the enum's string value; services compare against the enum,
never against bare strings. Transition tables live in lifecycle_service.
"""

from __future__ import annotations

from enum import Enum


class _StrEnum(str, Enum):
    def __str__(self) -> str:
        return self.value

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]

    @classmethod
    def parse(cls, value):
        """Return the member for `value` or None when it is not a member."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class OrderStatus(_StrEnum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class DeliveryStatus(_StrEnum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class KitchenSheetStatus(_StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(_StrEnum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class PaymentMethod(_StrEnum):
    CASH = "cash"
    DIRECT_DEBIT = "direct_debit"
    BANK_TRANSFER = "bank_transfer"


class ReturnReason(_StrEnum):
    EXPIRED = "expired"
    DAMAGED = "damaged"
    UNSOLD = "unsold"


class StockReason(_StrEnum):
    MANUAL_ADJUSTMENT = "manual_adjustment"
    WASTAGE = "wastage"
    RETURN = "return"
    REPLENISHMENT_CONSUMPTION = "replenishment_consumption"


class OrderSource(_StrEnum):
    MANUAL = "manual"
    REPLENISHMENT = "replenishment"


class ReminderType(_StrEnum):
    FIRST = "first"
    SECOND = "second"
    FINAL = "final"
