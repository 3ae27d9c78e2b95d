from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, Float, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: 999,999,999.99 in any currency
# This prevents database overflow issues and nonsensical prices
MAX_PRICE = 999_999_999.99

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationError(ValueError):
    """400-level input problem. `details` maps field names to messages."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": str(self)}
        if self.details:
            body["details"] = self.details
        return body


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU, last managing director)."""


class NotFoundError(LookupError):
    """404-level: a referenced product, category, user or sale does not exist."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which columns a client may send for a model.

    writable_fields is the allowlist; anything else in a payload is rejected.
    required_on_create must be present on create (partial=False).
    """
    writable_fields: set[str]
    required_on_create: set[str] = frozenset()


def _as_integer(key: str, value: Any) -> int:
    # JSON ints, or strings of plain digits; never floats, bools or 1e3
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if isinstance(value, str) and re.fullmatch(r"-?\d+", value.strip()):
        return int(value.strip())
    raise ValidationError(f"{key} must be an integer")


def _as_number(key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{key} must be a number")
    return float(value)


def _as_bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be true or false")
    return value


def _as_text(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value.strip()


_COERCERS = (
    (Integer, _as_integer),
    (Float, _as_number),
    (Boolean, _as_bool),
    ((String, Text), _as_text),
)


def _coerce(col, value: Any):
    for coltype, coerce in _COERCERS:
        if isinstance(col.type, coltype):
            return coerce(col.key, value)
    return value


def _check_column(col, raw: Any):
    """Coerced value for one column; ValidationError carries the field message."""
    if raw is None:
        if not col.nullable:
            raise ValidationError(f"{col.key} cannot be null")
        return None

    value = _coerce(col, raw)

    if isinstance(value, str):
        if value == "" and not col.nullable:
            raise ValidationError(f"{col.key} cannot be blank")
        length = getattr(col.type, "length", None)
        if length and len(value) > length:
            raise ValidationError(f"{col.key} exceeds max length {length}")

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Check a JSON body against the model's columns and the policy allowlist.

    Returns the cleaned patch (writable fields only). Every field problem is
    collected into one ValidationError.details. partial=True validates only
    the keys that were sent (PATCH); partial=False also enforces
    required_on_create (POST).
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    columns = {c.key: c for c in model.__mapper__.columns}
    errors: dict[str, str] = {}

    if not partial:
        for key in sorted(policy.required_on_create):
            if key not in payload:
                errors[key] = "This field is required"

    patch: dict = {}
    for key, raw in payload.items():
        if key not in policy.writable_fields or key not in columns:
            errors[key] = "Field not allowed"
            continue
        try:
            patch[key] = _check_column(columns[key], raw)
        except ValidationError as e:
            errors[key] = str(e)

    _raise_if(errors)
    return patch


def _raise_if(errors: dict) -> None:
    if errors:
        raise ValidationError("Invalid request data", details=errors)


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value or ""))


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    errors: dict[str, str] = {}
    for field in ("price", "cost_price"):
        if field in patch and patch[field] is not None:
            value = patch[field]
            if value <= 0:
                errors[field] = f"{field} must be a positive number"
            elif value > MAX_PRICE:
                errors[field] = f"{field} cannot exceed {MAX_PRICE:,.2f}"

    if "name" in patch and len(patch["name"]) < 2:
        errors["name"] = "Product name must be at least 2 characters"
    if "sku" in patch and len(patch["sku"]) < 2:
        errors["sku"] = "SKU must be at least 2 characters"
    _raise_if(errors)


def enforce_rules_category(patch: dict) -> None:
    if "name" in patch and not patch["name"]:
        raise ValidationError("Invalid request data", details={"name": "Category name is required"})


def enforce_rules_inventory(patch: dict) -> None:
    # Stock entry requires qty > 0, a named location and a non-negative minimum
    errors: dict[str, str] = {}
    if "quantity" in patch and patch["quantity"] is not None and patch["quantity"] <= 0:
        errors["quantity"] = "Quantity must be a positive integer"
    if "location" in patch and len(patch["location"] or "") < 2:
        errors["location"] = "Location must be at least 2 characters"
    if "min_stock_level" in patch and patch["min_stock_level"] is not None and patch["min_stock_level"] < 0:
        errors["min_stock_level"] = "Minimum stock level must be a non-negative integer"
    _raise_if(errors)


def enforce_rules_user(patch: dict) -> None:
    from .permissions import parse_role

    errors: dict[str, str] = {}
    if "name" in patch and len(patch["name"]) < 2:
        errors["name"] = "Name must be at least 2 characters"
    if "email" in patch and not is_valid_email(patch["email"]):
        errors["email"] = "Invalid email address"
    if "role" in patch:
        role = parse_role(patch["role"])
        if role is None:
            errors["role"] = "Unknown role"
        else:
            patch["role"] = role.value
    _raise_if(errors)
