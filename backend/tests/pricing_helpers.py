"""Snapshot builders for the pricing engine tests."""

from datetime import datetime, timedelta
from decimal import Decimal

from fastfood.pricing import DiscountRule, LineItem, OrderContext, ProductInfo
from fastfood.pricing.snapshots import PERCENTAGE

NOW = datetime(2026, 3, 15, 12, 0, 0)

BURGER = ProductInfo(id=1, name="Classic Burger", price=Decimal("50000"), category_id=10, available_quantity=100)
CHEESE = ProductInfo(id=2, name="Cheese Burger", price=Decimal("60000"), category_id=10, available_quantity=100)
COKE = ProductInfo(id=3, name="Coca-Cola", price=Decimal("15000"), category_id=20, available_quantity=100)
FRIES = ProductInfo(id=4, name="French Fries", price=Decimal("20000"), category_id=30, available_quantity=100)


def line(product: ProductInfo, quantity: int, price=None) -> LineItem:
    return LineItem(
        product_id=product.id,
        product_name=product.name,
        quantity=quantity,
        unit_price=Decimal(str(price)) if price is not None else product.price,
        category_id=product.category_id,
    )


def rule(**kwargs) -> DiscountRule:
    defaults = dict(
        id=1,
        code="SAVE10",
        name="Save 10",
        type=PERCENTAGE,
        discount_value=Decimal("10"),
        start_date=NOW - timedelta(days=1),
        end_date=NOW + timedelta(days=1),
    )
    defaults.update(kwargs)
    for key in ("discount_value", "min_order_amount", "max_discount_amount", "free_product_discount_value"):
        if defaults.get(key) is not None:
            defaults[key] = Decimal(str(defaults[key]))
    for key in ("product_ids", "category_ids", "customer_tier_ids", "employee_roles"):
        if key in defaults:
            defaults[key] = frozenset(defaults[key])
    return DiscountRule(**defaults)


def context(*lines, tier=None, role=None, catalog=()) -> OrderContext:
    return OrderContext(
        items=tuple(lines),
        customer_tier_id=tier,
        employee_role=role,
        catalog={p.id: p for p in catalog},
    )
