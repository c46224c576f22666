# Overview: Customer tiers and tier membership derived from lifetime spend.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, CustomerTier, Order, discount_customer_tiers
from ..models.orders import STATUS_CANCELLED
from ..pricing.money import ZERO
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    validate_payload,
)


TIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "minimum_spent", "color_hex", "description", "display_order"},
    required_on_create={"name", "minimum_spent"},
)


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def total_spent(customer_id: int, exclude_order_id: int | None = None) -> Decimal:
    """
    Sum of total_amount across the customer's orders, cancelled ones excluded.

    exclude_order_id leaves out the order currently being priced, whose total
    depends on the tier this feeds.
    """
    q = (
        db.session.query(func.coalesce(func.sum(Order.total_amount), 0))
        .filter(Order.customer_id == customer_id, Order.status != STATUS_CANCELLED)
    )
    if exclude_order_id is not None:
        q = q.filter(Order.id != exclude_order_id)
    value = q.scalar()
    return Decimal(str(value or 0))


def effective_tier(customer_id: int | None, exclude_order_id: int | None = None) -> CustomerTier | None:
    """Highest tier whose minimum_spent the customer has reached. Guests have none."""
    if customer_id is None:
        return None
    spent = total_spent(customer_id, exclude_order_id)
    return (
        db.session.query(CustomerTier)
        .filter(CustomerTier.minimum_spent <= spent)
        .order_by(CustomerTier.minimum_spent.desc(), CustomerTier.id.asc())
        .first()
    )


def customer_tier_summary(customer_id: int) -> dict:
    get_customer(customer_id)
    spent = total_spent(customer_id)
    tier = effective_tier(customer_id)
    next_tier = (
        db.session.query(CustomerTier)
        .filter(CustomerTier.minimum_spent > spent)
        .order_by(CustomerTier.minimum_spent.asc())
        .first()
    )
    return {
        "customer_id": customer_id,
        "total_spent": str(spent),
        "tier": tier.to_dict() if tier else None,
        "next_tier": next_tier.to_dict() if next_tier else None,
        "amount_to_next_tier": str(max(ZERO, next_tier.minimum_spent - spent)) if next_tier else None,
    }


def list_tiers() -> list[CustomerTier]:
    return (
        db.session.query(CustomerTier)
        .order_by(CustomerTier.display_order.asc(), CustomerTier.minimum_spent.asc())
        .all()
    )


def get_tier(tier_id: int) -> CustomerTier:
    tier = db.session.get(CustomerTier, tier_id)
    if not tier:
        raise NotFoundError(f"Customer tier {tier_id} not found")
    return tier


def _check_tier(patch: dict, tier_id: int | None = None) -> None:
    if "minimum_spent" in patch and patch["minimum_spent"] is not None and patch["minimum_spent"] < 0:
        raise ValidationError("minimum_spent must be >= 0", details={"field": "minimum_spent"})
    color = patch.get("color_hex")
    if color is not None and (len(color) != 7 or not color.startswith("#")):
        raise ValidationError("color_hex must look like #RRGGBB", details={"field": "color_hex"})
    if "name" in patch:
        q = db.session.query(CustomerTier).filter(func.lower(CustomerTier.name) == patch["name"].lower())
        if tier_id is not None:
            q = q.filter(CustomerTier.id != tier_id)
        if q.first():
            raise ConflictError(f"Customer tier '{patch['name']}' already exists")


def create_tier(payload: dict) -> CustomerTier:
    patch = validate_payload(model=CustomerTier, payload=payload, policy=TIER_POLICY, partial=False)
    _check_tier(patch)
    tier = CustomerTier(**patch)
    db.session.add(tier)
    db.session.commit()
    return tier


def update_tier(tier_id: int, payload: dict) -> CustomerTier:
    tier = get_tier(tier_id)
    patch = validate_payload(model=CustomerTier, payload=payload, policy=TIER_POLICY, partial=True)
    _check_tier(patch, tier_id)
    for key, value in patch.items():
        setattr(tier, key, value)
    db.session.commit()
    return tier


def delete_tier(tier_id: int) -> None:
    tier = get_tier(tier_id)
    # Dropping the tier would silently open those discounts to every customer
    in_use = db.session.execute(
        db.select(discount_customer_tiers.c.discount_id).where(discount_customer_tiers.c.customer_tier_id == tier_id)
    ).first()
    if in_use:
        raise ConflictError(
            "Customer tier is referenced by a discount",
            details={"discount_id": in_use[0]},
        )
    db.session.delete(tier)
    db.session.commit()
