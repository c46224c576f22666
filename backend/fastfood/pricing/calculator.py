# Overview: Monetary value of a single discount applied to an order snapshot.

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from .money import ZERO, HUNDRED, round_money
from .snapshots import (
    PERCENTAGE,
    FIXED_AMOUNT,
    BUY_X_GET_Y,
    FREE,
    POLICY_IN_CART,
    DiscountResult,
    DiscountRule,
    LineItem,
    OrderContext,
    PricingSettings,
    ProductInfo,
)


def applicable_sub_total(rule: DiscountRule, ctx: OrderContext) -> Decimal:
    """Subtotal of purchased lines inside the discount's product/category scope."""
    return sum((i.total_price for i in ctx.purchased_items if rule.covers(i)), ZERO)


def qualifying_quantity(rule: DiscountRule, ctx: OrderContext) -> int:
    return sum(i.quantity for i in ctx.purchased_items if rule.covers(i))


def _quantity_in_cart(product_id: int, ctx: OrderContext) -> int:
    return sum(i.quantity for i in ctx.purchased_items if i.product_id == product_id)


def _free_product(rule: DiscountRule, ctx: OrderContext) -> Optional[ProductInfo]:
    if rule.free_product_id is None:
        return None
    product = ctx.catalog.get(rule.free_product_id)
    if product is not None:
        return product
    # Not in the catalog snapshot: fall back to a purchased line of that product.
    for item in ctx.purchased_items:
        if item.product_id == rule.free_product_id:
            return ProductInfo(
                id=item.product_id,
                name=item.product_name,
                price=item.unit_price,
                category_id=item.category_id,
            )
    return None


def granted_free_quantity(rule: DiscountRule, ctx: OrderContext, settings: PricingSettings) -> int:
    """
    Units of the reward product a Buy X Get Y discount hands out for this order.

    Zero whenever the reward product cannot be served right now. The policy
    caps apply in order: in-cart quantity (in_cart mode), remaining stock,
    then the configured hard maximum.
    """
    if not rule.buy_quantity or rule.buy_quantity < 1 or rule.free_product_quantity < 1:
        return 0

    multiples = qualifying_quantity(rule, ctx) // rule.buy_quantity
    granted = multiples * rule.free_product_quantity
    if granted < 1:
        return 0

    product = _free_product(rule, ctx)
    if product is None or not product.can_be_served:
        return 0

    policy = settings.bogo
    already_ordered = _quantity_in_cart(product.id, ctx)
    if policy.mode == POLICY_IN_CART:
        granted = min(granted, already_ordered)
    elif policy.respect_stock and product.available_quantity is not None:
        granted = min(granted, max(0, product.available_quantity - already_ordered))

    if policy.max_free_quantity is not None:
        granted = min(granted, policy.max_free_quantity)

    return max(0, granted)


def _percentage_amount(rule: DiscountRule, base: Decimal) -> Decimal:
    amount = base * rule.discount_value / HUNDRED
    if rule.max_discount_amount is not None:
        amount = min(amount, rule.max_discount_amount)
    return max(ZERO, min(amount, base))


def _fixed_amount(rule: DiscountRule, base: Decimal) -> Decimal:
    return max(ZERO, min(rule.discount_value, base))


def _buy_x_get_y(rule: DiscountRule, ctx: OrderContext, settings: PricingSettings) -> DiscountResult:
    granted = granted_free_quantity(rule, ctx, settings)
    product = _free_product(rule, ctx)
    if granted < 1 or product is None:
        return DiscountResult(amount=ZERO)

    if settings.bogo.mode == POLICY_IN_CART:
        # Price the reward at what the customer is actually charged for it.
        unit_price = next(i.unit_price for i in ctx.purchased_items if i.product_id == product.id)
    else:
        unit_price = product.price

    gross = unit_price * granted
    value = rule.free_product_discount_value or ZERO
    if rule.free_product_discount_type == PERCENTAGE:
        amount = min(gross * value / HUNDRED, gross)
    elif rule.free_product_discount_type == FIXED_AMOUNT:
        amount = min(value * granted, gross)
    else:
        amount = gross

    synthetic: tuple = ()
    if settings.bogo.mode != POLICY_IN_CART:
        label = "Free with promotion" if rule.free_product_discount_type == FREE else "Discounted by promotion"
        synthetic = (
            LineItem(
                product_id=product.id,
                product_name=product.name,
                quantity=granted,
                unit_price=unit_price,
                category_id=product.category_id,
                special_instructions=f"{label}: {rule.name}",
                is_promotional=True,
            ),
        )

    amount = round_money(max(ZERO, amount), settings.quantum)
    return DiscountResult(
        amount=amount,
        reward_amount=amount,
        synthetic_items=synthetic,
        applicable_sub_total=applicable_sub_total(rule, ctx),
        granted_free_quantity=granted,
    )


def compute_discount(
    rule: DiscountRule,
    ctx: OrderContext,
    settings: PricingSettings | None = None,
) -> DiscountResult:
    """
    Value of `rule` for this order. Does not check eligibility.

    Percentage and fixed discounts only ever reduce the in-scope part of the
    subtotal. Buy X Get Y leaves purchased lines alone and values the reward
    units instead.
    """
    settings = settings or PricingSettings()

    if rule.type == BUY_X_GET_Y:
        return _buy_x_get_y(rule, ctx, settings)

    base = applicable_sub_total(rule, ctx)
    if rule.type == PERCENTAGE:
        amount = _percentage_amount(rule, base)
    elif rule.type == FIXED_AMOUNT:
        amount = _fixed_amount(rule, base)
    else:
        raise ValueError(f"Unknown discount type: {rule.type}")

    return DiscountResult(
        amount=round_money(amount, settings.quantum),
        applicable_sub_total=base,
    )
