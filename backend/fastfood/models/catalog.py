from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    description = db.Column(db.String(500), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Menu item.

    is_active is the admin on/off switch; is_available is the kitchen's
    "sold out for now" flag. Either one off means the item cannot be ordered.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_active", "category_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)

    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.String(1000), nullable=True)
    sku = db.Column(db.String(50), nullable=True, unique=True)
    price = db.Column(db.Numeric(18, 2), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    is_available = db.Column(db.Boolean, nullable=False, default=True)

    # Used only when the product has no recipe (bottled drinks, packaged sides)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "name": self.name,
            "description": self.description,
            "sku": self.sku,
            "price": str(self.price),
            "is_active": self.is_active,
            "is_available": self.is_available,
            "stock_quantity": self.stock_quantity,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Ingredient(db.Model):
    __tablename__ = "ingredients"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    unit = db.Column(db.String(20), nullable=False)  # kg, g, ml, l, piece, pack
    quantity = db.Column(db.Numeric(18, 3), nullable=False, default=0)  # on hand
    min_quantity = db.Column(db.Numeric(18, 3), nullable=False, default=0)  # reorder warning level
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "unit": self.unit,
            "quantity": str(self.quantity),
            "min_quantity": str(self.min_quantity),
            "is_active": self.is_active,
        }


class ProductIngredient(db.Model):
    """Recipe line: how much of an ingredient one unit of a product consumes."""
    __tablename__ = "product_ingredients"
    __table_args__ = (
        db.UniqueConstraint("product_id", "ingredient_id", name="uq_product_ingredient"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    ingredient_id = db.Column(db.Integer, db.ForeignKey("ingredients.id"), nullable=False, index=True)
    quantity_required = db.Column(db.Numeric(18, 3), nullable=False)

    product = db.relationship("Product", backref=db.backref("recipe", lazy=True))
    ingredient = db.relationship("Ingredient")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "ingredient_id": self.ingredient_id,
            "quantity_required": str(self.quantity_required),
        }
