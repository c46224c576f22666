# Overview: Composes subtotal, VAT, delivery fee and discount into an order total.

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from .calculator import compute_discount
from .eligibility import ensure_applicable
from .errors import ComputationInvariantError
from .money import ZERO, round_money, to_decimal
from .snapshots import DiscountRule, OrderContext, OrderTotals, PricingSettings
from ..time_utils import utcnow


def _check_lines(ctx: OrderContext) -> None:
    for item in ctx.purchased_items:
        if item.quantity < 1:
            raise ComputationInvariantError(f"Line for product {item.product_id} has quantity {item.quantity}")
        if item.unit_price < ZERO:
            raise ComputationInvariantError(f"Line for product {item.product_id} has a negative price")


def recompute(
    ctx: OrderContext,
    discount: DiscountRule | None = None,
    *,
    settings: PricingSettings | None = None,
    include_vat: bool = False,
    delivery_fee: Decimal | int | str = ZERO,
    now: datetime | None = None,
    usage_reserved: bool = False,
) -> OrderTotals:
    """
    Price an order from scratch.

    Promotional lines already present in `ctx` are ignored and regenerated,
    so calling this twice on the same input gives the same totals.

    VAT is charged on the subtotal less the Buy X Get Y reward value, so
    free units carry no tax and discounted ones are taxed at their reduced
    price. Percentage and fixed discounts do not reduce the VAT base.

    Raises DiscountNotApplicableError when `discount` fails eligibility at
    `now`; the caller's previous totals stay untouched.
    """
    settings = settings or PricingSettings()
    now = now or utcnow()
    _check_lines(ctx)

    result = None
    if discount is not None:
        ensure_applicable(discount, ctx, now, settings=settings, usage_reserved=usage_reserved)
        result = compute_discount(discount, ctx, settings)

    items = ctx.purchased_items + (result.synthetic_items if result else ())
    sub_total = sum((i.total_price for i in items), ZERO)
    discount_amount = result.amount if result else ZERO
    taxable = sub_total - (result.reward_amount if result else ZERO)
    tax_amount = round_money(taxable * settings.vat_rate, settings.quantum) if include_vat else ZERO
    fee = to_decimal(delivery_fee, "delivery_fee")

    if sub_total < ZERO or tax_amount < ZERO or fee < ZERO or discount_amount < ZERO:
        raise ComputationInvariantError(
            f"Negative component: sub_total={sub_total} tax={tax_amount} fee={fee} discount={discount_amount}"
        )

    total_amount = max(ZERO, sub_total + tax_amount + fee - discount_amount)

    return OrderTotals(
        items=items,
        sub_total=sub_total,
        tax_amount=tax_amount,
        delivery_fee=fee,
        discount_id=discount.id if discount is not None else None,
        discount_amount=discount_amount,
        total_amount=total_amount,
    )
