# Overview: Immutable snapshots the pricing engine works on.

"""
Pricing snapshots.

The engine never touches the database. Services copy ORM rows into these
dataclasses, so the same functions price a persisted order, a preview cart,
or a test fixture.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Mapping, Optional

from .money import ZERO, DEFAULT_QUANTUM


# Discount types
PERCENTAGE = "PERCENTAGE"
FIXED_AMOUNT = "FIXED_AMOUNT"
BUY_X_GET_Y = "BUY_X_GET_Y"
DISCOUNT_TYPES = (PERCENTAGE, FIXED_AMOUNT, BUY_X_GET_Y)

# How the granted units of a Buy X Get Y promotion are priced
FREE = "FREE"
FREE_PRODUCT_DISCOUNT_TYPES = (FREE, PERCENTAGE, FIXED_AMOUNT)

# Where Buy X Get Y units come from
POLICY_SYNTHESIZE = "synthesize"
POLICY_IN_CART = "in_cart"
BOGO_POLICIES = (POLICY_SYNTHESIZE, POLICY_IN_CART)


@dataclass(frozen=True)
class ProductInfo:
    id: int
    name: str
    price: Decimal
    category_id: Optional[int] = None
    is_active: bool = True
    is_available: bool = True
    available_quantity: Optional[int] = None  # None = not tracked

    @property
    def can_be_served(self) -> bool:
        return self.is_active and self.is_available


@dataclass(frozen=True)
class LineItem:
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    category_id: Optional[int] = None
    special_instructions: Optional[str] = None
    is_promotional: bool = False

    @property
    def total_price(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class DiscountRule:
    id: int
    code: str
    name: str
    type: str
    discount_value: Decimal
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    min_order_amount: Optional[Decimal] = None
    max_discount_amount: Optional[Decimal] = None
    usage_limit: Optional[int] = None
    used_count: int = 0
    product_ids: frozenset = frozenset()
    category_ids: frozenset = frozenset()
    customer_tier_ids: frozenset = frozenset()
    employee_roles: frozenset = frozenset()
    buy_quantity: Optional[int] = None
    free_product_id: Optional[int] = None
    free_product_quantity: int = 1
    free_product_discount_type: str = FREE
    free_product_discount_value: Optional[Decimal] = None

    @property
    def has_item_scope(self) -> bool:
        return bool(self.product_ids or self.category_ids)

    def usage_available(self) -> bool:
        return self.usage_limit is None or self.used_count < self.usage_limit

    def covers(self, item: LineItem) -> bool:
        """Item is inside the product/category scope (either filter is enough)."""
        if not self.has_item_scope:
            return True
        if self.product_ids and item.product_id in self.product_ids:
            return True
        if self.category_ids and item.category_id is not None and item.category_id in self.category_ids:
            return True
        return False


@dataclass(frozen=True)
class OrderContext:
    """
    What an order looks like to the pricing engine.

    `catalog` only needs to hold products referenced as Buy X Get Y rewards;
    purchased lines already carry their price and category.
    """
    items: tuple = ()
    customer_tier_id: Optional[int] = None
    employee_role: Optional[str] = None
    catalog: Mapping[int, ProductInfo] = field(default_factory=dict)

    @property
    def purchased_items(self) -> tuple:
        return tuple(i for i in self.items if not i.is_promotional)

    @property
    def sub_total(self) -> Decimal:
        return sum((i.total_price for i in self.purchased_items), ZERO)


@dataclass(frozen=True)
class BogoPolicy:
    mode: str = POLICY_SYNTHESIZE
    max_free_quantity: Optional[int] = None
    respect_stock: bool = True


@dataclass(frozen=True)
class PricingSettings:
    vat_rate: Decimal = Decimal("0.10")
    quantum: Decimal = DEFAULT_QUANTUM
    bogo: BogoPolicy = BogoPolicy()


@dataclass(frozen=True)
class DiscountResult:
    """
    reward_amount is the part of amount that prices Buy X Get Y reward units
    down. Those units are sold at the reduced price, so it leaves the VAT base.
    """
    amount: Decimal
    reward_amount: Decimal = ZERO
    synthetic_items: tuple = ()
    applicable_sub_total: Decimal = ZERO
    granted_free_quantity: int = 0


@dataclass(frozen=True)
class OrderTotals:
    items: tuple
    sub_total: Decimal
    tax_amount: Decimal
    delivery_fee: Decimal
    discount_id: Optional[int]
    discount_amount: Decimal
    total_amount: Decimal
