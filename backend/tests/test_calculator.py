# Overview: Pytest coverage for discount amount calculation.

from decimal import Decimal

import pytest

from fastfood.pricing import (
    BogoPolicy,
    PricingSettings,
    ProductInfo,
    applicable_sub_total,
    compute_discount,
    granted_free_quantity,
)
from fastfood.pricing.snapshots import BUY_X_GET_Y, FIXED_AMOUNT, FREE, PERCENTAGE, POLICY_IN_CART

from pricing_helpers import BURGER, CHEESE, COKE, FRIES, context, line, rule


def bogo(**kwargs):
    kwargs.setdefault("type", BUY_X_GET_Y)
    kwargs.setdefault("discount_value", 0)
    kwargs.setdefault("product_ids", {BURGER.id})
    kwargs.setdefault("buy_quantity", 2)
    kwargs.setdefault("free_product_id", COKE.id)
    kwargs.setdefault("free_product_quantity", 1)
    kwargs.setdefault("free_product_discount_type", FREE)
    return rule(**kwargs)


class TestPercentage:
    def test_cap_applies(self):
        """50% of 100,000 capped at 20,000."""
        d = rule(type=PERCENTAGE, discount_value=50, max_discount_amount=20000)
        result = compute_discount(d, context(line(BURGER, 2)))
        assert result.amount == Decimal("20000")

    def test_uncapped(self):
        d = rule(type=PERCENTAGE, discount_value=50)
        assert compute_discount(d, context(line(BURGER, 2))).amount == Decimal("50000")

    def test_no_reward_value(self):
        d = rule(type=PERCENTAGE, discount_value=50)
        assert compute_discount(d, context(line(BURGER, 2))).reward_amount == 0

    def test_only_in_scope_lines_are_discounted(self):
        d = rule(type=PERCENTAGE, discount_value=10, category_ids={BURGER.category_id})
        ctx = context(line(BURGER, 1), line(CHEESE, 1), line(COKE, 2))
        result = compute_discount(d, ctx)
        assert result.applicable_sub_total == Decimal("110000")
        assert result.amount == Decimal("11000")

    def test_rounds_half_up_at_the_end(self):
        d = rule(type=PERCENTAGE, discount_value=5)
        assert compute_discount(d, context(line(BURGER, 1, price=10010))).amount == Decimal("501")
        assert compute_discount(d, context(line(BURGER, 1, price=10009))).amount == Decimal("500")

    def test_rounds_to_configured_quantum(self):
        d = rule(type=PERCENTAGE, discount_value="12.5")
        settings = PricingSettings(quantum=Decimal("0.01"))
        result = compute_discount(d, context(line(BURGER, 1, price="99.99")), settings)
        assert result.amount == Decimal("12.50")

    def test_hundred_percent_never_exceeds_base(self):
        d = rule(type=PERCENTAGE, discount_value=100)
        assert compute_discount(d, context(line(FRIES, 3))).amount == Decimal("60000")


class TestFixedAmount:
    def test_never_exceeds_applicable_subtotal(self):
        d = rule(type=FIXED_AMOUNT, discount_value=50000, product_ids={FRIES.id})
        ctx = context(line(FRIES, 1, price=30000), line(BURGER, 2))
        assert compute_discount(d, ctx).amount == Decimal("30000")

    def test_full_value_when_base_is_larger(self):
        d = rule(type=FIXED_AMOUNT, discount_value=25000)
        assert compute_discount(d, context(line(BURGER, 2))).amount == Decimal("25000")


class TestBuyXGetY:
    def test_buy_two_get_one(self):
        """Four qualifying units with buy 2 get 1 free grants two rewards."""
        ctx = context(line(BURGER, 4), catalog=[COKE])
        result = compute_discount(bogo(), ctx)

        assert result.granted_free_quantity == 2
        assert result.amount == 2 * COKE.price
        assert result.reward_amount == result.amount
        assert len(result.synthetic_items) == 1
        free_line = result.synthetic_items[0]
        assert free_line.product_id == COKE.id
        assert free_line.quantity == 2
        assert free_line.unit_price == COKE.price
        assert free_line.is_promotional
        assert free_line.special_instructions.startswith("Free with promotion")

    def test_purchased_lines_untouched(self):
        ctx = context(line(BURGER, 4), catalog=[COKE])
        result = compute_discount(bogo(), ctx)
        assert result.applicable_sub_total == Decimal("200000")
        assert all(i.is_promotional for i in result.synthetic_items)

    def test_leftover_units_do_not_count(self):
        ctx = context(line(BURGER, 5), catalog=[COKE])
        assert granted_free_quantity(bogo(), ctx, PricingSettings()) == 2

    def test_free_product_quantity_multiplies(self):
        ctx = context(line(BURGER, 4), catalog=[COKE])
        assert compute_discount(bogo(free_product_quantity=3), ctx).granted_free_quantity == 6

    def test_percentage_reward(self):
        d = bogo(free_product_discount_type=PERCENTAGE, free_product_discount_value=50)
        result = compute_discount(d, context(line(BURGER, 4), catalog=[COKE]))
        assert result.amount == Decimal("15000")
        assert result.synthetic_items[0].special_instructions.startswith("Discounted by promotion")

    def test_fixed_reward_capped_at_reward_price(self):
        d = bogo(free_product_discount_type=FIXED_AMOUNT, free_product_discount_value=20000)
        assert compute_discount(d, context(line(BURGER, 4), catalog=[COKE])).amount == Decimal("30000")

    def test_fixed_reward(self):
        d = bogo(free_product_discount_type=FIXED_AMOUNT, free_product_discount_value=5000)
        assert compute_discount(d, context(line(BURGER, 4), catalog=[COKE])).amount == Decimal("10000")

    def test_unavailable_reward_contributes_zero(self):
        inactive = ProductInfo(id=COKE.id, name=COKE.name, price=COKE.price, category_id=COKE.category_id,
                               is_active=False)
        result = compute_discount(bogo(), context(line(BURGER, 4), catalog=[inactive]))
        assert result.amount == Decimal("0")
        assert result.synthetic_items == ()

    def test_stock_caps_granted_units(self):
        low_stock = ProductInfo(id=COKE.id, name=COKE.name, price=COKE.price, category_id=COKE.category_id,
                                available_quantity=1)
        result = compute_discount(bogo(), context(line(BURGER, 4), catalog=[low_stock]))
        assert result.granted_free_quantity == 1
        assert result.amount == COKE.price

    def test_stock_already_ordered_is_not_given_away(self):
        low_stock = ProductInfo(id=COKE.id, name=COKE.name, price=COKE.price, category_id=COKE.category_id,
                                available_quantity=1)
        ctx = context(line(BURGER, 4), line(COKE, 1), catalog=[low_stock])
        assert granted_free_quantity(bogo(), ctx, PricingSettings()) == 0

    def test_stock_ignored_when_configured(self):
        low_stock = ProductInfo(id=COKE.id, name=COKE.name, price=COKE.price, category_id=COKE.category_id,
                                available_quantity=1)
        settings = PricingSettings(bogo=BogoPolicy(respect_stock=False))
        assert granted_free_quantity(bogo(), context(line(BURGER, 4), catalog=[low_stock]), settings) == 2

    def test_hard_cap(self):
        settings = PricingSettings(bogo=BogoPolicy(max_free_quantity=1))
        result = compute_discount(bogo(), context(line(BURGER, 6), catalog=[COKE]), settings)
        assert result.granted_free_quantity == 1

    def test_in_cart_policy_discounts_existing_units_only(self):
        settings = PricingSettings(bogo=BogoPolicy(mode=POLICY_IN_CART))
        ctx = context(line(BURGER, 4), line(COKE, 1, price=14000), catalog=[COKE])
        result = compute_discount(bogo(), ctx, settings)
        assert result.granted_free_quantity == 1
        assert result.amount == Decimal("14000")
        assert result.synthetic_items == ()

    def test_in_cart_policy_without_reward_in_cart(self):
        settings = PricingSettings(bogo=BogoPolicy(mode=POLICY_IN_CART))
        result = compute_discount(bogo(), context(line(BURGER, 4), catalog=[COKE]), settings)
        assert result.amount == Decimal("0")

    def test_reward_same_as_qualifying_product(self):
        d = bogo(free_product_id=BURGER.id)
        result = compute_discount(d, context(line(BURGER, 4), catalog=[BURGER]))
        assert result.granted_free_quantity == 2
        assert result.amount == Decimal("100000")

    def test_reward_price_falls_back_to_cart_line(self):
        """Reward product missing from the catalog snapshot but present in the cart."""
        d = bogo(free_product_id=FRIES.id)
        result = compute_discount(d, context(line(BURGER, 2), line(FRIES, 1), catalog=[]))
        assert result.granted_free_quantity == 1
        assert result.amount == FRIES.price


class TestMisc:
    def test_applicable_subtotal_without_scope_is_whole_order(self):
        ctx = context(line(BURGER, 1), line(COKE, 2))
        assert applicable_sub_total(rule(), ctx) == Decimal("80000")

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError):
            compute_discount(rule(type="LOYALTY_POINTS"), context(line(BURGER, 1)))
