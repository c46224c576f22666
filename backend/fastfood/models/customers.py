from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class CustomerTier(db.Model):
    """
    Spend-based customer segment (e.g. Silver, Gold).

    A customer belongs to the tier with the highest minimum_spent that their
    lifetime spend reaches. Tiers are not stored on the customer.
    """
    __tablename__ = "customer_tiers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    minimum_spent = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    color_hex = db.Column(db.String(7), nullable=False, default="#FF6B35")
    description = db.Column(db.String(250), nullable=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "minimum_spent": str(self.minimum_spent),
            "color_hex": self.color_hex,
            "description": self.description,
            "display_order": self.display_order,
        }


class Customer(db.Model):
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(256), nullable=True, unique=True)
    phone = db.Column(db.String(20), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
