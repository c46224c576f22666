from __future__ import annotations

import json
from decimal import Decimal

from ..extensions import db
from ..pricing.eligibility import validity_reason
from ..pricing.snapshots import FREE, DiscountRule
from ..time_utils import to_naive_utc, to_utc_z, utcnow


discount_products = db.Table(
    "discount_products",
    db.Column("discount_id", db.Integer, db.ForeignKey("discounts.id", ondelete="CASCADE"), primary_key=True),
    db.Column("product_id", db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
)

discount_categories = db.Table(
    "discount_categories",
    db.Column("discount_id", db.Integer, db.ForeignKey("discounts.id", ondelete="CASCADE"), primary_key=True),
    db.Column("category_id", db.Integer, db.ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)

discount_customer_tiers = db.Table(
    "discount_customer_tiers",
    db.Column("discount_id", db.Integer, db.ForeignKey("discounts.id", ondelete="CASCADE"), primary_key=True),
    db.Column("customer_tier_id", db.Integer, db.ForeignKey("customer_tiers.id", ondelete="CASCADE"), primary_key=True),
)


class Discount(db.Model):
    """
    Discount code.

    PERCENTAGE and FIXED_AMOUNT reduce the in-scope subtotal. BUY_X_GET_Y
    grants free_product_quantity units of free_product_id for every
    buy_quantity qualifying units, priced per free_product_discount_type.

    Empty product/category/tier/role sets mean "no restriction".
    used_count only moves through the conditional UPDATE in
    discount_service.increment_usage.
    """
    __tablename__ = "discounts"
    __table_args__ = (
        db.Index("ix_discounts_active_window", "is_active", "start_date", "end_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), nullable=False, unique=True)  # stored uppercase
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.String(1000), nullable=True)

    type = db.Column(db.String(32), nullable=False)  # PERCENTAGE, FIXED_AMOUNT, BUY_X_GET_Y
    discount_value = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    min_order_amount = db.Column(db.Numeric(18, 2), nullable=True)
    max_discount_amount = db.Column(db.Numeric(18, 2), nullable=True)

    # UTC, naive
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    usage_limit = db.Column(db.Integer, nullable=True)  # NULL = unlimited
    used_count = db.Column(db.Integer, nullable=False, default=0)

    # JSON array of role names; NULL or [] = any role
    employee_roles_json = db.Column("employee_roles", db.Text, nullable=True)

    # Buy X Get Y
    buy_quantity = db.Column(db.Integer, nullable=True)
    free_product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    free_product_quantity = db.Column(db.Integer, nullable=True)
    free_product_discount_type = db.Column(db.String(32), nullable=True)  # FREE, PERCENTAGE, FIXED_AMOUNT
    free_product_discount_value = db.Column(db.Numeric(18, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    products = db.relationship("Product", secondary=discount_products, lazy="selectin")
    categories = db.relationship("Category", secondary=discount_categories, lazy="selectin")
    customer_tiers = db.relationship("CustomerTier", secondary=discount_customer_tiers, lazy="selectin")
    free_product = db.relationship("Product", foreign_keys=[free_product_id])

    @property
    def employee_roles(self) -> list[str]:
        if not self.employee_roles_json:
            return []
        return list(json.loads(self.employee_roles_json))

    @employee_roles.setter
    def employee_roles(self, roles) -> None:
        roles = sorted({str(r).strip().upper() for r in (roles or []) if str(r).strip()})
        self.employee_roles_json = json.dumps(roles) if roles else None

    @property
    def remaining_uses(self) -> int | None:
        if self.usage_limit is None:
            return None
        return max(0, self.usage_limit - (self.used_count or 0))

    def to_rule(self) -> DiscountRule:
        """Snapshot for the pricing engine."""
        def _dec(v):
            return Decimal(v) if v is not None else None

        return DiscountRule(
            id=self.id,
            code=self.code,
            name=self.name,
            type=self.type,
            discount_value=Decimal(self.discount_value or 0),
            start_date=to_naive_utc(self.start_date),
            end_date=to_naive_utc(self.end_date),
            is_active=self.is_active,
            min_order_amount=_dec(self.min_order_amount),
            max_discount_amount=_dec(self.max_discount_amount),
            usage_limit=self.usage_limit,
            used_count=self.used_count or 0,
            product_ids=frozenset(p.id for p in self.products),
            category_ids=frozenset(c.id for c in self.categories),
            customer_tier_ids=frozenset(t.id for t in self.customer_tiers),
            employee_roles=frozenset(self.employee_roles),
            buy_quantity=self.buy_quantity,
            free_product_id=self.free_product_id,
            free_product_quantity=self.free_product_quantity or 1,
            free_product_discount_type=self.free_product_discount_type or FREE,
            free_product_discount_value=_dec(self.free_product_discount_value),
        )

    def validity_reason(self, now=None) -> str | None:
        """Order-independent reason code (inactive, not_started, expired, usage_exhausted) or None."""
        return validity_reason(self.to_rule(), now or utcnow())

    def is_valid(self, now=None) -> bool:
        return self.validity_reason(now) is None

    def to_dict(self) -> dict:
        def _money(v):
            return str(v) if v is not None else None

        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "discount_value": _money(self.discount_value),
            "min_order_amount": _money(self.min_order_amount),
            "max_discount_amount": _money(self.max_discount_amount),
            "start_date": to_utc_z(self.start_date),
            "end_date": to_utc_z(self.end_date),
            "is_active": self.is_active,
            "is_valid": self.is_valid(),
            "usage_limit": self.usage_limit,
            "used_count": self.used_count,
            "remaining_uses": self.remaining_uses,
            "product_ids": sorted(p.id for p in self.products),
            "category_ids": sorted(c.id for c in self.categories),
            "customer_tier_ids": sorted(t.id for t in self.customer_tiers),
            "employee_roles": self.employee_roles,
            "buy_quantity": self.buy_quantity,
            "free_product_id": self.free_product_id,
            "free_product_quantity": self.free_product_quantity,
            "free_product_discount_type": self.free_product_discount_type,
            "free_product_discount_value": _money(self.free_product_discount_value),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
