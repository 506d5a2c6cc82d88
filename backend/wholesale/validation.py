from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime, Date
from sqlalchemy.orm import DeclarativeMeta

from .errors import WholesaleError
from .time_utils import parse_iso_datetime, parse_iso_date


# Upper bound on any money column: 9,999,999.99
MAX_AMOUNT_CENTS = 999_999_999


class ValidationError(WholesaleError):
    """400-level payload problem (wrong type, unknown field, missing field)."""

    code = "invalid_payload"


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    What a client may write on one model.

    - writable_fields: the allowlist; anything else in a payload is rejected
    - required_on_create: fields that must be present when partial=False
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    return {c.key: c for c in model.__mapper__.columns}


def coerce_int(key: str, value: Any) -> int:
    """Strict integer coercion: ints and plain digit strings only, never floats or bools."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
        raise ValidationError(f"{key} must be a plain integer", details={"field": key})
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal", details={"field": key})
    raise ValidationError(f"{key} must be an integer", details={"field": key})


def coerce_bool(key: str, value: Any) -> bool:
    """JSON booleans, or the strings true/false/1/0."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0"):
        return value.strip().lower() in ("true", "1")
    raise ValidationError(f"{key} must be a boolean", details={"field": key})


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        return coerce_bool(col.key, value)

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        try:
            dt = parse_iso_datetime(str(value))
        except ValueError:
            dt = None
        if dt is None:
            raise ValidationError(f"{col.key} must be an ISO-8601 datetime", details={"field": col.key})
        return dt

    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        try:
            d = parse_iso_date(value)
        except ValueError:
            d = None
        if d is None:
            raise ValidationError(f"{col.key} must be an ISO-8601 date", details={"field": col.key})
        return d

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validate and normalize a JSON payload against the model's columns.

    partial=False: create semantics (required_on_create enforced)
    partial=True: patch semantics (only the provided keys are checked)

    Returns a patch dict containing writable fields only.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                details={"missing": missing},
            )

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields or k not in cols:
            raise ValidationError(f"Field not allowed: {k}", details={"field": k})

    patch: dict = {}
    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", details={"field": k})
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable and val == "":
            raise ValidationError(f"{k} cannot be blank", details={"field": k})

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", details={"field": k})

        patch[k] = val

    return patch


# =============================================================================
# BUSINESS RULES NOT EXPRESSED BY COLUMN METADATA
# =============================================================================

def product_rule_violations(patch: dict) -> list[dict]:
    violations = []
    if "price_cents" in patch:
        price = patch["price_cents"]
        if price is None or price <= 0:
            violations.append({"field": "price_cents", "error": "price_cents must be > 0"})
        elif price > MAX_AMOUNT_CENTS:
            violations.append({"field": "price_cents", "error": f"price_cents cannot exceed {MAX_AMOUNT_CENTS}"})
    if "min_stock_level" in patch and patch["min_stock_level"] is not None and patch["min_stock_level"] < 0:
        violations.append({"field": "min_stock_level", "error": "min_stock_level must be >= 0"})
    return violations


def enforce_rules_product(patch: dict) -> None:
    violations = product_rule_violations(patch)
    if violations:
        raise ValidationError(violations[0]["error"], details={"errors": violations})


def enforce_rules_store(patch: dict) -> None:
    limit = patch.get("credit_limit_cents")
    if limit is not None:
        if limit < 0:
            raise ValidationError("credit_limit_cents must be >= 0", details={"field": "credit_limit_cents"})
        if limit > MAX_AMOUNT_CENTS:
            raise ValidationError(
                f"credit_limit_cents cannot exceed {MAX_AMOUNT_CENTS}",
                details={"field": "credit_limit_cents"},
            )
