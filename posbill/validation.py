from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, JSON, Numeric, String, Text

from .money import MAX_AMOUNT, to_money


class ValidationError(ValueError):
    """400-level input problem, optionally with field-level detail."""

    def __init__(self, message: str, errors: list[dict] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []

    def to_dict(self) -> dict:
        body: dict = {"message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


class NotFoundError(LookupError):
    """404-level lookup miss."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: wire (camelCase) names clients are allowed to set
    - required_on_create: wire names required for POST
    - non_negative: wire names whose numeric value must be >= 0
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    non_negative: set[str] = field(default_factory=set)


_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def to_column_key(name: str) -> str:
    """upiId -> upi_id, minStockLevel -> min_stock_level."""
    return _CAMEL_RE.sub("_", name).lower()


def _columns_by_key(model) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _parse_decimal(value: Any, name: str) -> Decimal:
    """
    Exact decimal with at most two fractional digits, as a 2-place Decimal.

    Values with more precision are rejected rather than rounded.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a decimal number")
    if isinstance(value, float):
        value = repr(value)
    try:
        raw = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{name} must be a decimal number")
    if not raw.is_finite():
        raise ValidationError(f"{name} must be a decimal number")
    if raw.normalize().as_tuple().exponent < -2:
        raise ValidationError(f"{name} must have at most 2 decimal places")
    return to_money(raw)


def _coerce_value(col, name: str, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or "e" in stripped.lower() or "." in stripped:
                raise ValidationError(f"{name} must be an integer")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{name} must be an integer")
        raise ValidationError(f"{name} must be an integer")

    # Money and other fixed-point amounts
    if isinstance(coltype, Numeric):
        amount = _parse_decimal(value, name)
        if abs(amount) > MAX_AMOUNT:
            raise ValidationError(f"{name} exceeds maximum allowed value of {MAX_AMOUNT}")
        return amount

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{name} must be true or false")

    if isinstance(coltype, JSON):
        if not isinstance(value, dict):
            raise ValidationError(f"{name} must be an object")
        return value

    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{name} must be a string")
        text = str(value).strip()
        length = getattr(coltype, "length", None)
        if length is not None and len(text) > length:
            raise ValidationError(f"{name} must be at most {length} characters")
        return text

    return value


def validate_payload(
    *,
    model,
    payload: Any,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a patch dict keyed by column name with only writable fields.

    All field problems are collected and raised together as one
    ValidationError whose `errors` lists {"field", "message"} entries.
    Unknown keys are ignored, not rejected, so clients may send back the
    full object they received.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: list[dict] = []

    if not partial:
        for name in sorted(policy.required_on_create):
            raw = payload.get(name)
            if raw is None or (isinstance(raw, str) and not raw.strip()):
                errors.append({"field": name, "message": f"{name} is required"})

    cols = _columns_by_key(model)
    patch: dict = {}

    for name, raw in payload.items():
        if name not in policy.writable_fields:
            continue
        key = to_column_key(name)
        col = cols[key]

        if raw is None:
            if not col.nullable and col.default is None:
                errors.append({"field": name, "message": f"{name} cannot be null"})
            elif col.nullable:
                patch[key] = None
            continue

        try:
            value = _coerce_value(col, name, raw)
        except ValidationError as e:
            errors.append({"field": name, "message": e.message})
            continue

        if name in policy.non_negative and value is not None and value < 0:
            errors.append({"field": name, "message": f"{name} must not be negative"})
            continue

        if isinstance(value, str) and not value and not col.nullable:
            if not any(err["field"] == name for err in errors):
                errors.append({"field": name, "message": f"{name} is required"})
            continue

        patch[key] = value

    if errors:
        raise ValidationError("Invalid request data", errors=errors)

    return patch


def parse_positive_int(value: Any, name: str) -> int:
    """Integer > 0; accepts ints and digit strings."""
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a positive integer")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
    else:
        raise ValidationError(f"{name} must be a positive integer")
    if parsed <= 0:
        raise ValidationError(f"{name} must be a positive integer")
    return parsed


def parse_amount(value: Any, name: str, *, allow_negative: bool = False) -> Decimal:
    amount = _parse_decimal(value, name)
    if not allow_negative and amount < 0:
        raise ValidationError(f"{name} must not be negative")
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{name} exceeds maximum allowed value of {MAX_AMOUNT}")
    return amount
