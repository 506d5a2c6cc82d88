# Overview: Request helpers shared by the API blueprints.

from __future__ import annotations

from flask import request

from ..validation import ValidationError, coerce_int


def json_body() -> dict:
    """The request's JSON object, or {} when the body is empty."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def actor_id(payload: dict | None = None, key: str = "actor_id") -> str | None:
    """Who is acting: the payload field when given, else the X-Actor-Id header."""
    if payload and payload.get(key):
        return str(payload[key])
    return request.headers.get("X-Actor-Id") or None


def int_arg(name: str) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    return coerce_int(name, raw)


def bool_arg(name: str, default: bool = False) -> bool:
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes")
