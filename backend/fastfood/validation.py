from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .pricing.snapshots import (
    BUY_X_GET_Y,
    DISCOUNT_TYPES,
    FIXED_AMOUNT,
    FREE,
    FREE_PRODUCT_DISCOUNT_TYPES,
    PERCENTAGE,
)
from .time_utils import parse_iso_datetime


# 999,999,999,999 đồng. Keeps amounts inside Numeric(18, 2).
MAX_AMOUNT = Decimal("999999999999")


class ValidationError(ValueError):
    """400-level input problem."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate discount code, stale version)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(LookupError):
    """404-level missing entity."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set
    - required_on_create: fields required for POST
    - list_fields: non-column keys accepted as lists of ids or names
    """
    writable_fields: set[str]
    required_on_create: set[str] = frozenset()
    list_fields: set[str] = frozenset()


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(key: str, value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{key} must be a plain integer")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(key: str, col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{key} must be true or false")

    # Money: accept numbers or numeric strings, never binary floats directly
    if isinstance(coltype, Numeric):
        if isinstance(value, bool):
            raise ValidationError(f"{key} must be a number")
        if isinstance(value, float):
            value = str(value)
        try:
            dec = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{key} must be a number")
        if not dec.is_finite():
            raise ValidationError(f"{key} must be a finite number")
        if abs(dec) > MAX_AMOUNT:
            raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT}")
        return dec

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def _coerce_list(key: str, value: Any) -> list:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{key} must be a list")
    if key.endswith("_ids"):
        return sorted({_coerce_int(key, v) for v in value})
    return [str(v).strip() for v in value if str(v).strip()]


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
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                details={"missing": missing},
            )

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}", details={"field": k})
        if k not in cols and k not in policy.list_fields:
            raise ValidationError(f"Unknown field: {k}", details={"field": k})

    patch: dict = {}

    for k, raw in payload.items():
        if k in policy.list_fields:
            patch[k] = _coerce_list(k, raw)
            continue

        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", details={"field": k})
            patch[k] = None
            continue

        val = _coerce_value(k, col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", details={"field": k})

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", details={"field": k})

        patch[k] = val

    return patch


def enforce_rules_discount(merged: dict) -> None:
    """
    Cross-field rules for a discount, checked on the full merged state
    (existing row + patch) so partial updates can't leave it inconsistent.
    """
    dtype = merged.get("type")
    if dtype not in DISCOUNT_TYPES:
        raise ValidationError(
            f"type must be one of {', '.join(DISCOUNT_TYPES)}",
            details={"field": "type"},
        )

    start, end = merged.get("start_date"), merged.get("end_date")
    if start is None or end is None:
        raise ValidationError("start_date and end_date are required")
    if start >= end:
        raise ValidationError("start_date must be before end_date", details={"field": "start_date"})

    value = merged.get("discount_value")
    if dtype == PERCENTAGE:
        if value is None or value <= 0 or value > 100:
            raise ValidationError("Percentage discount_value must be in (0, 100]", details={"field": "discount_value"})
    elif dtype == FIXED_AMOUNT:
        if value is None or value <= 0:
            raise ValidationError("Fixed discount_value must be > 0", details={"field": "discount_value"})
    elif value is not None and value < 0:
        raise ValidationError("discount_value must be >= 0", details={"field": "discount_value"})

    for key in ("min_order_amount", "max_discount_amount"):
        v = merged.get(key)
        if v is not None and v < 0:
            raise ValidationError(f"{key} must be >= 0", details={"field": key})

    limit = merged.get("usage_limit")
    if limit is not None and limit < 1:
        raise ValidationError("usage_limit must be >= 1 (or null for unlimited)", details={"field": "usage_limit"})

    if dtype != BUY_X_GET_Y:
        return

    buy = merged.get("buy_quantity")
    if buy is None or buy < 1:
        raise ValidationError("buy_quantity must be >= 1 for BUY_X_GET_Y", details={"field": "buy_quantity"})
    if merged.get("free_product_id") is None:
        raise ValidationError("free_product_id is required for BUY_X_GET_Y", details={"field": "free_product_id"})
    free_qty = merged.get("free_product_quantity")
    if free_qty is not None and free_qty < 1:
        raise ValidationError("free_product_quantity must be >= 1", details={"field": "free_product_quantity"})

    free_type = merged.get("free_product_discount_type") or FREE
    if free_type not in FREE_PRODUCT_DISCOUNT_TYPES:
        raise ValidationError(
            f"free_product_discount_type must be one of {', '.join(FREE_PRODUCT_DISCOUNT_TYPES)}",
            details={"field": "free_product_discount_type"},
        )
    free_value = merged.get("free_product_discount_value")
    if free_type == PERCENTAGE:
        if free_value is None or free_value < 0 or free_value > 100:
            raise ValidationError(
                "free_product_discount_value must be in [0, 100] for PERCENTAGE",
                details={"field": "free_product_discount_value"},
            )
    elif free_type == FIXED_AMOUNT:
        if free_value is None or free_value < 0:
            raise ValidationError(
                "free_product_discount_value must be >= 0 for FIXED_AMOUNT",
                details={"field": "free_product_discount_value"},
            )


def validate_order_items(raw_items: Any) -> list[dict]:
    """
    Normalize a cart payload into [{product_id, quantity, special_instructions}].

    All problems are collected so the cashier sees every bad line at once.
    """
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")

    cleaned: list[dict] = []
    errors: list[dict] = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            errors.append({"index": index, "error": "item must be an object"})
            continue
        try:
            product_id = _coerce_int("product_id", raw.get("product_id"))
        except ValidationError as exc:
            errors.append({"index": index, "error": str(exc)})
            continue
        try:
            quantity = _coerce_int("quantity", raw.get("quantity"))
        except ValidationError as exc:
            errors.append({"index": index, "product_id": product_id, "error": str(exc)})
            continue
        if quantity < 1:
            errors.append({"index": index, "product_id": product_id, "error": "quantity must be >= 1"})
            continue
        note = raw.get("special_instructions")
        cleaned.append({
            "product_id": product_id,
            "quantity": quantity,
            "special_instructions": str(note).strip()[:500] if note else None,
        })

    if errors:
        raise ValidationError("Invalid order items", details={"items": errors})
    return cleaned
