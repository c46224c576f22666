# Overview: Discount repository: validated CRUD, lookups and atomic usage counting.

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func, or_, update

from ..extensions import db
from ..models import Category, CustomerTier, Discount, Order, Product
from ..models.staff import EMPLOYEE_ROLES
from ..pricing import DiscountNotApplicableError
from ..pricing.snapshots import BUY_X_GET_Y, FREE
from ..time_utils import utcnow
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_discount,
    validate_payload,
)
from .concurrency import run_with_retry


SCOPE_FIELDS = ("product_ids", "category_ids", "customer_tier_ids", "employee_roles")

DISCOUNT_POLICY = ModelValidationPolicy(
    writable_fields={
        "code", "name", "description", "type", "discount_value",
        "min_order_amount", "max_discount_amount", "start_date", "end_date",
        "is_active", "usage_limit",
        "buy_quantity", "free_product_id", "free_product_quantity",
        "free_product_discount_type", "free_product_discount_value",
        *SCOPE_FIELDS,
    },
    required_on_create={"code", "name", "type", "start_date", "end_date"},
    list_fields=set(SCOPE_FIELDS),
)

_COLUMN_FIELDS = sorted(DISCOUNT_POLICY.writable_fields - set(SCOPE_FIELDS))


def get_discount(discount_id: int) -> Discount:
    discount = db.session.get(Discount, discount_id)
    if not discount:
        raise NotFoundError(f"Discount {discount_id} not found")
    return discount


def find_by_code(code: str) -> Discount | None:
    """Case-insensitive code lookup."""
    if not code or not code.strip():
        return None
    return (
        db.session.query(Discount)
        .filter(func.upper(Discount.code) == code.strip().upper())
        .first()
    )


def list_discounts(active_only: bool = False) -> list[Discount]:
    q = db.session.query(Discount)
    if active_only:
        q = q.filter_by(is_active=True)
    return q.order_by(Discount.created_at.desc(), Discount.id.desc()).all()


def find_active(now: datetime | None = None) -> list[Discount]:
    """Discounts that are switched on, inside their window, and not used up."""
    now = now or utcnow()
    return (
        db.session.query(Discount)
        .filter(
            Discount.is_active.is_(True),
            Discount.start_date <= now,
            Discount.end_date >= now,
            or_(Discount.usage_limit.is_(None), Discount.used_count < Discount.usage_limit),
        )
        .order_by(Discount.end_date.asc(), Discount.id.asc())
        .all()
    )


def validate_code(code: str, now: datetime | None = None) -> Discount:
    """Order-independent check behind the code-entry box. Returns the discount or raises."""
    discount = find_by_code(code)
    if discount is None:
        raise NotFoundError(f"Discount code '{code}' not found")
    reason = discount.validity_reason(now)
    if reason:
        raise DiscountNotApplicableError(reason, details={"discount_id": discount.id, "code": discount.code})
    return discount


def _load_all(model, ids: list[int], field: str) -> list:
    if not ids:
        return []
    rows = db.session.query(model).filter(model.id.in_(ids)).all()
    missing = sorted(set(ids) - {r.id for r in rows})
    if missing:
        raise ValidationError(f"Unknown ids in {field}", details={"field": field, "missing": missing})
    return rows


def _merged_state(discount: Discount | None, patch: dict) -> dict:
    merged = {}
    if discount is not None:
        merged = {k: getattr(discount, k) for k in _COLUMN_FIELDS}
    merged.update({k: v for k, v in patch.items() if k not in SCOPE_FIELDS})
    return merged


def _apply(discount: Discount, patch: dict) -> None:
    merged = _merged_state(discount if discount.id is not None else None, patch)

    if "code" in patch:
        code = patch["code"].upper()
        existing = find_by_code(code)
        if existing is not None and existing.id != discount.id:
            raise ConflictError(f"Discount code '{code}' already exists", details={"code": code})
        patch["code"] = code
        merged["code"] = code

    if merged.get("type") == BUY_X_GET_Y:
        if merged.get("free_product_quantity") is None:
            patch["free_product_quantity"] = merged["free_product_quantity"] = 1
        if not merged.get("free_product_discount_type"):
            patch["free_product_discount_type"] = merged["free_product_discount_type"] = FREE
    if merged.get("discount_value") is None:
        patch["discount_value"] = merged["discount_value"] = Decimal("0")

    enforce_rules_discount(merged)

    if merged.get("free_product_id") is not None and db.session.get(Product, merged["free_product_id"]) is None:
        raise ValidationError("free_product_id does not exist", details={"field": "free_product_id"})

    if "employee_roles" in patch:
        roles = [r.upper() for r in patch["employee_roles"]]
        unknown = sorted(set(roles) - set(EMPLOYEE_ROLES))
        if unknown:
            raise ValidationError("Unknown employee roles", details={"field": "employee_roles", "unknown": unknown})
        discount.employee_roles = roles
    if "product_ids" in patch:
        discount.products = _load_all(Product, patch["product_ids"], "product_ids")
    if "category_ids" in patch:
        discount.categories = _load_all(Category, patch["category_ids"], "category_ids")
    if "customer_tier_ids" in patch:
        discount.customer_tiers = _load_all(CustomerTier, patch["customer_tier_ids"], "customer_tier_ids")

    for key, value in patch.items():
        if key not in SCOPE_FIELDS:
            setattr(discount, key, value)


def create_discount(payload: dict) -> Discount:
    patch = validate_payload(model=Discount, payload=payload, policy=DISCOUNT_POLICY, partial=False)

    def _op():
        discount = Discount(used_count=0)
        _apply(discount, dict(patch))
        db.session.add(discount)
        db.session.commit()
        return discount

    discount = run_with_retry(_op)
    current_app.logger.info("Created discount %s (%s)", discount.code, discount.type)
    return discount


def update_discount(discount_id: int, payload: dict) -> Discount:
    """
    Patch a discount. Retried on StaleDataError: a confirmation may bump
    version_id through increment_usage between our read and our write.
    """
    patch = validate_payload(model=Discount, payload=payload, policy=DISCOUNT_POLICY, partial=True)

    def _op():
        discount = get_discount(discount_id)
        _apply(discount, dict(patch))
        db.session.commit()
        return discount

    return run_with_retry(_op)


def toggle_status(discount_id: int) -> Discount:
    def _op():
        discount = get_discount(discount_id)
        discount.is_active = not discount.is_active
        db.session.commit()
        return discount

    discount = run_with_retry(_op)
    current_app.logger.info(
        "Discount %s %s", discount.code, "enabled" if discount.is_active else "disabled"
    )
    return discount


def delete_discount(discount_id: int) -> None:
    def _op():
        discount = get_discount(discount_id)
        referenced = (
            db.session.query(Order.id)
            .filter(or_(Order.discount_id == discount_id, Order.redeemed_discount_id == discount_id))
            .first()
        )
        if referenced:
            raise ConflictError(
                "Discount is used by existing orders; disable it instead",
                details={"discount_id": discount_id, "order_id": referenced[0]},
            )
        db.session.delete(discount)
        db.session.commit()

    run_with_retry(_op)


def increment_usage(discount_id: int) -> bool:
    """
    Consume one use of a discount inside the caller's transaction.

    The limit check and the increment are a single UPDATE, so two sessions
    can never both take the last use. Returns whether a use was taken;
    False means the discount is used up (or gone). Does not commit.
    """
    table = Discount.__table__
    result = db.session.execute(
        update(table)
        .where(table.c.id == discount_id)
        .where(or_(table.c.usage_limit.is_(None), table.c.used_count < table.c.usage_limit))
        .values(used_count=table.c.used_count + 1, version_id=table.c.version_id + 1)
    )
    if result.rowcount != 1:
        return False

    cached = db.session.identity_map.get(db.session.identity_key(Discount, discount_id))
    if cached is not None:
        db.session.expire(cached, ["used_count", "version_id"])
    return True
