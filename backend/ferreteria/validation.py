# Overview: Request payload validation against model column metadata.

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError

# $9,999,999.99; guards against overflow and typos
MAX_PRICE_CENTS = 999_999_999


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    - writable_fields: what clients are allowed to set
    - required_on_create: fields required for POST
    - extra_fields: accepted keys that are not model columns (passed through untouched)
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    extra_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    return {c.key: c for c in model.__mapper__.columns}


def coerce_int(value: Any, field: str) -> int:
    """Strict integer coercion: ints and digit strings only; floats, bools and 1e3 are rejected."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{field} must be an integer")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def coerce_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("1", "true", "yes", "on"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("0", "false", "no", "off", ""):
        return False
    if isinstance(value, int):
        return bool(value)
    raise ValidationError(f"{field} must be a boolean")


def _coerce_column(col, raw: Any):
    """Coerce one payload value to its column type; None only where the column allows it."""
    if raw is None:
        if not col.nullable:
            raise ValidationError("cannot be null")
        return None

    coltype = col.type
    if isinstance(coltype, Integer):
        val = coerce_int(raw, col.key)
    elif isinstance(coltype, Boolean):
        val = coerce_bool(raw, col.key)
    elif isinstance(coltype, (String, Text)):
        val = str(raw).strip()
        if not col.nullable and not val:
            raise ValidationError("cannot be blank")
        if isinstance(coltype, String) and coltype.length and len(val) > coltype.length:
            raise ValidationError(f"exceeds max length {coltype.length}")
    else:
        val = raw
    return val


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Check and normalize a JSON body against the model's columns and a policy.

    Every offending field is reported at once: the ValidationError carries
    details={"fields": {name: problem}}. Keys listed in extra_fields are
    returned untouched for the route to interpret.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    problems: dict[str, str] = {}
    if not partial:
        for name in sorted(policy.required_on_create or ()):
            if name not in payload:
                problems[name] = "required"

    cols = _columns_by_key(model)
    extra = policy.extra_fields or set()
    cleaned: dict = {}
    for name, raw in payload.items():
        if name in extra:
            cleaned[name] = raw
        elif name not in policy.writable_fields or name not in cols:
            problems[name] = "not allowed"
        else:
            try:
                cleaned[name] = _coerce_column(cols[name], raw)
            except ValidationError as e:
                problems[name] = e.message

    if problems:
        listed = "; ".join(f"{k}: {v}" for k, v in problems.items())
        raise ValidationError(f"Invalid fields: {listed}", details={"fields": problems})
    return cleaned


def enforce_rules_product(patch: dict) -> None:
    """Product rules not captured by column metadata alone."""
    price = patch.get("price_cents")
    if price is not None:
        if price < 0:
            raise ValidationError("price_cents must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS}")
    min_stock = patch.get("min_stock")
    if min_stock is not None and min_stock < 0:
        raise ValidationError("min_stock must be >= 0")


def enforce_rules_customer(patch: dict) -> None:
    limit = patch.get("credit_limit_cents")
    if limit is not None and limit < 0:
        raise ValidationError("credit_limit_cents must be >= 0")
