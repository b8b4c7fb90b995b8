from __future__ import annotations

import math
from dataclasses import dataclass, field as dc_field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Upper bound for any single amount (smallest currency unit).
# Keeps totals far away from integer overflow on every backend.
MAX_AMOUNT = 999_999_999


class ValidationError(ValueError):
    """400-level input problem, carrying a machine code for the API."""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR", field: str | None = None):
        super().__init__(message)
        self.code = code
        self.field = field


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""

    def __init__(self, message: str, code: str = "CONFLICT"):
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - error_codes: machine code reported when a given field is invalid
    """
    writable_fields: set[str]
    required_on_create: set[str] = dc_field(default_factory=set)
    error_codes: dict[str, str] = dc_field(default_factory=dict)

    def code_for(self, key: str) -> str:
        return self.error_codes.get(key, "VALIDATION_ERROR")


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def parse_strict_int(value: Any, name: str, code: str = "VALIDATION_ERROR") -> int:
    """
    Integers only: rejects bools, floats, decimals and scientific notation.
    Plain digit strings (optional leading minus) are accepted.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer", code, name)
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)", code, name)
        # Reject decimal points (e.g., "12.5")
        if "." in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)", code, name)
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer", code, name)
    if isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal", code, name)
    raise ValidationError(f"{name} must be an integer", code, name)


def parse_integral_number(value: Any, name: str, code: str = "VALIDATION_ERROR") -> int:
    """
    Any finite number with no fractional part: 2, 2.0, "2", "2.0", "1e3".

    Used for checkout quantities and payment amounts, where JSON clients may
    send integral floats. Bools are rejected.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer", code, name)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if "_" in stripped:
            raise ValidationError(f"{name} must be an integer", code, name)
        try:
            return int(stripped)
        except ValueError:
            pass
        try:
            value = float(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer", code, name)
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise ValidationError(f"{name} must be an integer, not a decimal", code, name)
        return int(value)
    raise ValidationError(f"{name} must be an integer", code, name)


def _coerce_value(col, value: Any, code: str):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return parse_strict_int(value, col.key, code)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        for key in sorted(policy.required_on_create):
            raw = payload.get(key)
            if raw is None or (isinstance(raw, str) and not raw.strip()):
                raise ValidationError(f"{key} is required", policy.code_for(key), key)

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields or k not in cols:
            raise ValidationError(f"Field not allowed: {k}", "FIELD_NOT_ALLOWED", k)

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]
        code = policy.code_for(k)

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", code, k)
            patch[k] = None
            continue

        val = _coerce_value(col, raw, code)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", code, k)

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", code, k)

        patch[k] = val

    return patch


def enforce_rules_catalog_item(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "item_type" in patch:
        item_type = (patch["item_type"] or "").upper()
        if item_type not in ("PRODUCT", "SERVICE"):
            raise ValidationError("item_type must be PRODUCT or SERVICE", "TYPE_INVALID", "item_type")
        patch["item_type"] = item_type

    if "category" in patch and patch["category"] is not None:
        patch["category"] = patch["category"].upper()

    if "sku" in patch and patch["sku"] == "":
        patch["sku"] = None

    for key, code in (("price_amount", "PRICE_INVALID"), ("cost_amount", "COST_INVALID")):
        amount = patch.get(key)
        if amount is None:
            continue
        if amount < 0:
            raise ValidationError(f"{key} must be >= 0", code, key)
        if amount > MAX_AMOUNT:
            raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT}", code, key)

    if patch.get("stock_qty") is not None and patch["stock_qty"] < 0:
        raise ValidationError("stock_qty must be >= 0", "STOCK_INVALID", "stock_qty")


def parse_cart(raw_items: Any) -> list[dict]:
    """
    Normalize checkout lines to [{"item_id": int, "qty": raw}].

    Only the shape is checked here. Quantities are validated by the checkout
    engine in submitted order so the first failing line decides the error.
    """
    if raw_items is None:
        return []
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list", "EMPTY_CART", "items")

    lines = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raw = {}
        item_id = raw.get("item_id", raw.get("itemId"))
        lines.append({"item_id": item_id, "qty": raw.get("qty")})
    return lines


def parse_payments(raw_payments: Any) -> list[dict]:
    """Normalize payment entries; unknown shapes are left for the checkout policy to judge."""
    if raw_payments is None:
        return []
    if not isinstance(raw_payments, list):
        raise ValidationError("payments must be a list", "PAYMENT_INVALID", "payments")
    return [p if isinstance(p, dict) else {"method": None, "amount": p} for p in raw_payments]
