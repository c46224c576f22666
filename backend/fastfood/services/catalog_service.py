# Overview: Product and category lookups, plus the pricing-engine view of a product.

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import Category, Product, ProductIngredient
from ..pricing import ProductInfo
from ..validation import NotFoundError


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if not category:
        raise NotFoundError(f"Category {category_id} not found")
    return category


def list_products(category_id: int | None = None, active_only: bool = True) -> list[Product]:
    q = db.session.query(Product)
    if category_id is not None:
        q = q.filter_by(category_id=category_id)
    if active_only:
        q = q.filter_by(is_active=True)
    return q.order_by(Product.name.asc()).all()


def list_categories(active_only: bool = True) -> list[Category]:
    q = db.session.query(Category)
    if active_only:
        q = q.filter_by(is_active=True)
    return q.order_by(Category.name.asc()).all()


def available_quantity(product: Product) -> int:
    """
    Units that can still be made.

    With a recipe: limited by the scarcest ingredient. Without one: the
    product's own stock count.
    """
    recipe = db.session.query(ProductIngredient).filter_by(product_id=product.id).all()
    if not recipe:
        return max(0, product.stock_quantity or 0)

    counts = []
    for line in recipe:
        required = Decimal(line.quantity_required)
        if required <= 0:
            continue
        on_hand = Decimal(line.ingredient.quantity or 0)
        counts.append(int(on_hand // required))
    return max(0, min(counts)) if counts else 0


def product_info(product: Product, *, with_stock: bool = False) -> ProductInfo:
    return ProductInfo(
        id=product.id,
        name=product.name,
        price=Decimal(product.price),
        category_id=product.category_id,
        is_active=product.is_active,
        is_available=product.is_available,
        available_quantity=available_quantity(product) if with_stock else None,
    )


def product_with_availability(product: Product) -> dict:
    data = product.to_dict()
    data["available_quantity"] = available_quantity(product)
    return data
