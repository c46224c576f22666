# Overview: Pytest coverage for discount eligibility checks.

from dataclasses import replace
from datetime import timedelta

import pytest

from fastfood.pricing import (
    DiscountNotApplicableError,
    ProductInfo,
    check_eligibility,
    ensure_applicable,
    find_applicable,
    is_eligible,
)
from fastfood.pricing import errors as reasons
from fastfood.pricing.snapshots import BUY_X_GET_Y, FIXED_AMOUNT

from pricing_helpers import BURGER, COKE, FRIES, NOW, context, line, rule


class TestValidity:
    """Switch, date window and usage limit."""

    def test_plain_discount_is_eligible(self):
        assert check_eligibility(rule(), context(line(BURGER, 1)), NOW) is None

    def test_inactive(self):
        assert check_eligibility(rule(is_active=False), context(line(BURGER, 1)), NOW) == reasons.INACTIVE

    def test_not_started(self):
        d = rule(start_date=NOW + timedelta(hours=1), end_date=NOW + timedelta(days=2))
        assert check_eligibility(d, context(line(BURGER, 1)), NOW) == reasons.NOT_STARTED

    def test_expired(self):
        d = rule(start_date=NOW - timedelta(days=2), end_date=NOW - timedelta(seconds=1))
        assert check_eligibility(d, context(line(BURGER, 1)), NOW) == reasons.EXPIRED

    def test_window_is_inclusive(self):
        ctx = context(line(BURGER, 1))
        assert is_eligible(rule(start_date=NOW), ctx, NOW)
        assert is_eligible(rule(end_date=NOW), ctx, NOW)

    def test_usage_exhausted(self):
        d = rule(usage_limit=5, used_count=5)
        assert check_eligibility(d, context(line(BURGER, 1)), NOW) == reasons.USAGE_EXHAUSTED

    def test_unlimited_usage(self):
        assert is_eligible(rule(usage_limit=None, used_count=10_000), context(line(BURGER, 1)), NOW)

    def test_reserved_usage_skips_limit(self):
        """An order that already holds a use is not blocked by the limit it filled."""
        d = rule(usage_limit=1, used_count=1)
        assert check_eligibility(d, context(line(BURGER, 1)), NOW, usage_reserved=True) is None

    def test_reserved_usage_still_checks_window(self):
        d = rule(end_date=NOW - timedelta(days=1), start_date=NOW - timedelta(days=3), usage_limit=1, used_count=1)
        assert check_eligibility(d, context(line(BURGER, 1)), NOW, usage_reserved=True) == reasons.EXPIRED

    def test_first_failure_wins(self):
        """Expired and below minimum: the validity reason is reported."""
        d = rule(end_date=NOW - timedelta(days=1), start_date=NOW - timedelta(days=3), min_order_amount=1_000_000)
        assert check_eligibility(d, context(line(BURGER, 1)), NOW) == reasons.EXPIRED


class TestMinimumOrder:
    def test_below_minimum_is_excluded(self):
        d = rule(min_order_amount=100000)
        ctx = context(line(BURGER, 1, price=99999))
        assert find_applicable([d], ctx, NOW) == []
        assert check_eligibility(d, ctx, NOW) == reasons.MIN_ORDER_NOT_MET

    def test_exact_minimum_qualifies(self):
        d = rule(min_order_amount=100000)
        assert is_eligible(d, context(line(BURGER, 2)), NOW)

    def test_minimum_ignores_promotional_lines(self):
        promo = replace(line(BURGER, 2), is_promotional=True)
        d = rule(min_order_amount=100000)
        assert check_eligibility(d, context(line(COKE, 1), promo), NOW) == reasons.MIN_ORDER_NOT_MET


class TestTierAndRole:
    def test_unknown_tier_fails_closed(self):
        d = rule(customer_tier_ids={3})
        ctx = context(line(BURGER, 1), tier=None)
        assert find_applicable([d], ctx, NOW) == []
        assert check_eligibility(d, ctx, NOW) == reasons.TIER_INELIGIBLE

    def test_matching_tier(self):
        assert is_eligible(rule(customer_tier_ids={3}), context(line(BURGER, 1), tier=3), NOW)

    def test_other_tier(self):
        d = rule(customer_tier_ids={3})
        assert check_eligibility(d, context(line(BURGER, 1), tier=2), NOW) == reasons.TIER_INELIGIBLE

    def test_no_tier_restriction_allows_guests(self):
        assert is_eligible(rule(), context(line(BURGER, 1), tier=None), NOW)

    def test_unknown_role_fails_closed(self):
        d = rule(employee_roles={"ADMIN"})
        assert check_eligibility(d, context(line(BURGER, 1)), NOW) == reasons.ROLE_INELIGIBLE

    def test_role_mismatch(self):
        d = rule(employee_roles={"ADMIN"})
        assert check_eligibility(d, context(line(BURGER, 1), role="CASHIER"), NOW) == reasons.ROLE_INELIGIBLE

    def test_role_match(self):
        d = rule(employee_roles={"ADMIN", "CASHIER"})
        assert is_eligible(d, context(line(BURGER, 1), role="CASHIER"), NOW)


class TestItemScope:
    def test_product_scope_needs_one_matching_item(self):
        d = rule(product_ids={COKE.id})
        assert check_eligibility(d, context(line(BURGER, 1)), NOW) == reasons.PRODUCT_INELIGIBLE
        assert is_eligible(d, context(line(BURGER, 1), line(COKE, 1)), NOW)

    def test_category_scope(self):
        d = rule(category_ids={FRIES.category_id})
        assert check_eligibility(d, context(line(BURGER, 1)), NOW) == reasons.PRODUCT_INELIGIBLE
        assert is_eligible(d, context(line(BURGER, 1), line(FRIES, 1)), NOW)

    def test_product_or_category_is_enough(self):
        """Product and category filters are OR'd."""
        d = rule(product_ids={COKE.id}, category_ids={FRIES.category_id})
        assert is_eligible(d, context(line(FRIES, 1)), NOW)
        assert is_eligible(d, context(line(COKE, 1)), NOW)
        assert not is_eligible(d, context(line(BURGER, 1)), NOW)


class TestBuyXGetY:
    def _bogo(self, **kwargs):
        kwargs.setdefault("type", BUY_X_GET_Y)
        kwargs.setdefault("discount_value", 0)
        kwargs.setdefault("product_ids", {BURGER.id})
        kwargs.setdefault("buy_quantity", 2)
        kwargs.setdefault("free_product_id", COKE.id)
        kwargs.setdefault("free_product_quantity", 1)
        return rule(**kwargs)

    def test_not_enough_qualifying_units(self):
        ctx = context(line(BURGER, 1), catalog=[COKE])
        assert check_eligibility(self._bogo(), ctx, NOW) == reasons.INSUFFICIENT_QUANTITY

    def test_enough_units(self):
        ctx = context(line(BURGER, 2), catalog=[COKE])
        assert is_eligible(self._bogo(), ctx, NOW)

    def test_unavailable_reward_product(self):
        sold_out = ProductInfo(id=COKE.id, name=COKE.name, price=COKE.price, category_id=COKE.category_id,
                               is_available=False, available_quantity=0)
        ctx = context(line(BURGER, 2), catalog=[sold_out])
        assert check_eligibility(self._bogo(), ctx, NOW) == reasons.FREE_PRODUCT_UNAVAILABLE

    def test_missing_reward_product(self):
        ctx = context(line(BURGER, 2), catalog=[])
        assert check_eligibility(self._bogo(), ctx, NOW) == reasons.FREE_PRODUCT_UNAVAILABLE


class TestHelpers:
    def test_find_applicable_keeps_input_order(self):
        a = rule(id=1, code="A")
        b = rule(id=2, code="B", is_active=False)
        c = rule(id=3, code="C", type=FIXED_AMOUNT, discount_value=5000)
        assert [d.code for d in find_applicable([c, b, a], context(line(BURGER, 1)), NOW)] == ["C", "A"]

    def test_ensure_applicable_raises_with_reason(self):
        d = rule(id=7, code="OLD", is_active=False)
        with pytest.raises(DiscountNotApplicableError) as exc:
            ensure_applicable(d, context(line(BURGER, 1)), NOW)
        assert exc.value.reason == reasons.INACTIVE
        assert exc.value.details == {"discount_id": 7, "code": "OLD"}
        assert str(exc.value) == reasons.REASON_MESSAGES[reasons.INACTIVE]
