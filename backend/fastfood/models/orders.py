from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


ORDER_DINE_IN = "DINE_IN"
ORDER_TAKEAWAY = "TAKEAWAY"
ORDER_DELIVERY = "DELIVERY"
ORDER_TYPES = (ORDER_DINE_IN, ORDER_TAKEAWAY, ORDER_DELIVERY)

STATUS_PENDING = "PENDING"
STATUS_CONFIRMED = "CONFIRMED"
STATUS_PREPARING = "PREPARING"
STATUS_READY = "READY"
STATUS_DELIVERING = "DELIVERING"
STATUS_DELIVERED = "DELIVERED"
STATUS_CANCELLED = "CANCELLED"
ORDER_STATUSES = (
    STATUS_PENDING,
    STATUS_CONFIRMED,
    STATUS_PREPARING,
    STATUS_READY,
    STATUS_DELIVERING,
    STATUS_DELIVERED,
    STATUS_CANCELLED,
)
TERMINAL_STATUSES = (STATUS_DELIVERED, STATUS_CANCELLED)


def _money(v):
    return str(v) if v is not None else None


class Order(db.Model):
    """
    Customer order.

    Monetary columns are derived: only order_service writes them, always
    from a full recompute. redeemed_discount_id is the discount this order
    has consumed a use of; it survives clearing discount_id so re-applying
    the same discount does not take a second use.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True)
    order_type = db.Column(db.String(16), nullable=False, default=ORDER_DINE_IN)
    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True, index=True)
    discount_id = db.Column(db.Integer, db.ForeignKey("discounts.id"), nullable=True, index=True)
    redeemed_discount_id = db.Column(db.Integer, db.ForeignKey("discounts.id"), nullable=True)

    include_vat = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.String(1000), nullable=True)

    sub_total = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    delivery_fee = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    prepared_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    customer = db.relationship("Customer")
    employee = db.relationship("Employee")
    discount = db.relationship("Discount", foreign_keys=[discount_id])

    @property
    def discount_redeemed(self) -> bool:
        """The current discount already holds one use for this order."""
        return self.discount_id is not None and self.redeemed_discount_id == self.discount_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "order_type": self.order_type,
            "status": self.status,
            "customer_id": self.customer_id,
            "employee_id": self.employee_id,
            "discount_id": self.discount_id,
            "discount_code": self.discount.code if self.discount else None,
            "discount_redeemed": self.discount_redeemed,
            "redeemed_discount_id": self.redeemed_discount_id,
            "include_vat": self.include_vat,
            "notes": self.notes,
            "sub_total": _money(self.sub_total),
            "tax_amount": _money(self.tax_amount),
            "delivery_fee": _money(self.delivery_fee),
            "discount_amount": _money(self.discount_amount),
            "total_amount": _money(self.total_amount),
            "items": [i.to_dict() for i in self.items],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "confirmed_at": to_utc_z(self.confirmed_at),
            "prepared_at": to_utc_z(self.prepared_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "version_id": self.version_id,
        }


class OrderItem(db.Model):
    """Order line. is_promotional lines are generated by Buy X Get Y discounts."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Snapshot at order time; later catalog price changes don't reprice the order
    product_name = db.Column(db.String(200), nullable=False)
    unit_price = db.Column(db.Numeric(18, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    total_price = db.Column(db.Numeric(18, 2), nullable=False)

    special_instructions = db.Column(db.String(500), nullable=True)
    is_promotional = db.Column(db.Boolean, nullable=False, default=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_price": _money(self.unit_price),
            "quantity": self.quantity,
            "total_price": _money(self.total_price),
            "special_instructions": self.special_instructions,
            "is_promotional": self.is_promotional,
        }
