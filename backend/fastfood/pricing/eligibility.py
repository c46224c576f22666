# Overview: Structural eligibility of discounts against an order snapshot.

"""
Discount eligibility.

Checks run in a fixed order and stop at the first failure, so the reason
reported to the cashier is always the most basic one (an expired code says
"expired" even if the order is also below the minimum).

Tier and role restrictions fail closed: a discount limited to some tiers is
not offered to an order with no identified customer, and likewise for roles.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from .errors import (
    DiscountNotApplicableError,
    INACTIVE,
    NOT_STARTED,
    EXPIRED,
    USAGE_EXHAUSTED,
    MIN_ORDER_NOT_MET,
    TIER_INELIGIBLE,
    ROLE_INELIGIBLE,
    PRODUCT_INELIGIBLE,
    INSUFFICIENT_QUANTITY,
    FREE_PRODUCT_UNAVAILABLE,
)
from .snapshots import BUY_X_GET_Y, DiscountRule, OrderContext, PricingSettings
from .calculator import qualifying_quantity, granted_free_quantity


def validity_reason(rule: DiscountRule, now: datetime, usage_reserved: bool = False) -> Optional[str]:
    """Order-independent checks: switched on, inside its window, uses left."""
    if not rule.is_active:
        return INACTIVE
    if now < rule.start_date:
        return NOT_STARTED
    if now > rule.end_date:
        return EXPIRED
    if not usage_reserved and not rule.usage_available():
        return USAGE_EXHAUSTED
    return None


def check_eligibility(
    rule: DiscountRule,
    ctx: OrderContext,
    now: datetime,
    *,
    settings: PricingSettings | None = None,
    usage_reserved: bool = False,
) -> Optional[str]:
    """
    Return the first failing reason code, or None when the discount applies.

    usage_reserved: the order already holds one redemption of this discount,
    so the usage limit no longer concerns it.
    """
    reason = validity_reason(rule, now, usage_reserved)
    if reason:
        return reason

    if rule.min_order_amount is not None and ctx.sub_total < rule.min_order_amount:
        return MIN_ORDER_NOT_MET

    if rule.customer_tier_ids:
        if ctx.customer_tier_id is None or ctx.customer_tier_id not in rule.customer_tier_ids:
            return TIER_INELIGIBLE

    if rule.employee_roles:
        if ctx.employee_role is None or ctx.employee_role not in rule.employee_roles:
            return ROLE_INELIGIBLE

    purchased = ctx.purchased_items
    if rule.has_item_scope and not any(rule.covers(item) for item in purchased):
        return PRODUCT_INELIGIBLE

    if rule.type == BUY_X_GET_Y:
        if not rule.buy_quantity or qualifying_quantity(rule, ctx) < rule.buy_quantity:
            return INSUFFICIENT_QUANTITY
        if granted_free_quantity(rule, ctx, settings or PricingSettings()) < 1:
            return FREE_PRODUCT_UNAVAILABLE

    return None


def is_eligible(rule: DiscountRule, ctx: OrderContext, now: datetime, **kwargs) -> bool:
    return check_eligibility(rule, ctx, now, **kwargs) is None


def ensure_applicable(rule: DiscountRule, ctx: OrderContext, now: datetime, **kwargs) -> None:
    reason = check_eligibility(rule, ctx, now, **kwargs)
    if reason:
        raise DiscountNotApplicableError(
            reason,
            details={"discount_id": rule.id, "code": rule.code},
        )


def find_applicable(
    discounts: Iterable[DiscountRule],
    ctx: OrderContext,
    now: datetime,
    *,
    settings: PricingSettings | None = None,
) -> list[DiscountRule]:
    """All discounts that pass every check. Input order is preserved."""
    return [d for d in discounts if is_eligible(d, ctx, now, settings=settings)]
