# Overview: Pytest coverage for customer tiers and spend-based membership.

from decimal import Decimal

import pytest

from fastfood.models import Order
from fastfood.models.orders import STATUS_CANCELLED, STATUS_DELIVERED, STATUS_PENDING
from fastfood.services import customer_service
from fastfood.validation import ConflictError, ValidationError


def _order(db_session, customer, number, total, status=STATUS_DELIVERED):
    order = Order(
        order_number=number,
        customer_id=customer.id,
        status=status,
        sub_total=Decimal(total),
        total_amount=Decimal(total),
    )
    db_session.add(order)
    db_session.commit()
    return order


class TestSpendAndTier:
    def test_new_customer_has_no_tier(self, db_session, tiers, customer):
        assert customer_service.total_spent(customer.id) == Decimal("0")
        assert customer_service.effective_tier(customer.id) is None

    def test_guest_has_no_tier(self, db_session, tiers):
        assert customer_service.effective_tier(None) is None

    def test_cancelled_orders_do_not_count(self, db_session, tiers, customer):
        _order(db_session, customer, "ORD-T-1", "400000")
        _order(db_session, customer, "ORD-T-2", "300000", status=STATUS_CANCELLED)
        assert customer_service.total_spent(customer.id) == Decimal("400000")
        assert customer_service.effective_tier(customer.id) is None

    def test_highest_reached_tier_wins(self, db_session, tiers, customer):
        _order(db_session, customer, "ORD-T-1", "1500000")
        _order(db_session, customer, "ORD-T-2", "600000", status=STATUS_PENDING)
        assert customer_service.effective_tier(customer.id).name == "Gold"

    def test_threshold_is_inclusive(self, db_session, tiers, customer):
        _order(db_session, customer, "ORD-T-1", "500000")
        assert customer_service.effective_tier(customer.id).name == "Silver"

    def test_excluded_order(self, db_session, tiers, customer):
        current = _order(db_session, customer, "ORD-T-1", "500000", status=STATUS_PENDING)
        assert customer_service.effective_tier(customer.id, exclude_order_id=current.id) is None

    def test_summary(self, db_session, tiers, customer):
        _order(db_session, customer, "ORD-T-1", "750000")
        summary = customer_service.customer_tier_summary(customer.id)
        assert summary["tier"]["name"] == "Silver"
        assert summary["next_tier"]["name"] == "Gold"
        assert Decimal(summary["amount_to_next_tier"]) == Decimal("1250000")


class TestTierAdmin:
    def test_create(self, db_session):
        tier = customer_service.create_tier({"name": "Bronze", "minimum_spent": "100000", "color_hex": "#CD7F32"})
        assert tier.id is not None
        assert tier.minimum_spent == Decimal("100000")

    def test_missing_fields(self, db_session):
        with pytest.raises(ValidationError) as exc:
            customer_service.create_tier({"name": "Bronze"})
        assert exc.value.details["missing"] == ["minimum_spent"]

    def test_negative_threshold(self, db_session):
        with pytest.raises(ValidationError):
            customer_service.create_tier({"name": "Bronze", "minimum_spent": -1})

    def test_bad_color(self, db_session):
        with pytest.raises(ValidationError):
            customer_service.create_tier({"name": "Bronze", "minimum_spent": 0, "color_hex": "red"})

    def test_duplicate_name(self, db_session, tiers):
        with pytest.raises(ConflictError):
            customer_service.create_tier({"name": "silver", "minimum_spent": 1})

    def test_update(self, db_session, tiers):
        tier = customer_service.update_tier(tiers["gold"].id, {"minimum_spent": "3000000"})
        assert tier.minimum_spent == Decimal("3000000")

    def test_delete_referenced_tier_is_blocked(self, db_session, tiers, make_discount):
        make_discount(code="GOLDONLY", customer_tiers=[tiers["gold"]])
        with pytest.raises(ConflictError):
            customer_service.delete_tier(tiers["gold"].id)

    def test_delete(self, db_session, tiers):
        customer_service.delete_tier(tiers["silver"].id)
        assert [t.name for t in customer_service.list_tiers()] == ["Gold"]
