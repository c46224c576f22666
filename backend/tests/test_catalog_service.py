# Overview: Pytest coverage for catalog lookups and availability.

from decimal import Decimal

import pytest

from fastfood.models import Ingredient, ProductIngredient
from fastfood.services import catalog_service
from fastfood.validation import NotFoundError


class TestAvailability:
    def test_without_recipe_uses_stock(self, db_session, menu):
        menu.coke.stock_quantity = 7
        db_session.commit()
        assert catalog_service.available_quantity(menu.coke) == 7

    def test_recipe_limited_by_scarcest_ingredient(self, db_session, menu):
        bun = Ingredient(name="Bun", unit="piece", quantity=Decimal("10"))
        patty = Ingredient(name="Beef patty", unit="piece", quantity=Decimal("3"))
        sauce = Ingredient(name="Sauce", unit="ml", quantity=Decimal("95"))
        db_session.add_all([bun, patty, sauce])
        db_session.flush()
        db_session.add_all([
            ProductIngredient(product_id=menu.burger.id, ingredient_id=bun.id, quantity_required=Decimal("1")),
            ProductIngredient(product_id=menu.burger.id, ingredient_id=patty.id, quantity_required=Decimal("1")),
            ProductIngredient(product_id=menu.burger.id, ingredient_id=sauce.id, quantity_required=Decimal("30")),
        ])
        db_session.commit()

        # bun 10, patty 3, sauce floor(95 / 30) = 3
        assert catalog_service.available_quantity(menu.burger) == 3

    def test_zero_requirement_lines_are_ignored(self, db_session, menu):
        salt = Ingredient(name="Salt", unit="g", quantity=Decimal("0"))
        oil = Ingredient(name="Oil", unit="ml", quantity=Decimal("1000"))
        db_session.add_all([salt, oil])
        db_session.flush()
        db_session.add_all([
            ProductIngredient(product_id=menu.fries.id, ingredient_id=salt.id, quantity_required=Decimal("0")),
            ProductIngredient(product_id=menu.fries.id, ingredient_id=oil.id, quantity_required=Decimal("50")),
        ])
        db_session.commit()
        assert catalog_service.available_quantity(menu.fries) == 20

    def test_product_info_snapshot(self, db_session, menu):
        info = catalog_service.product_info(menu.burger, with_stock=True)
        assert info.price == Decimal("50000")
        assert info.category_id == menu.burgers.id
        assert info.available_quantity == 100
        assert info.can_be_served


class TestLookups:
    def test_missing_product(self, db_session):
        with pytest.raises(NotFoundError):
            catalog_service.get_product(424242)

    def test_list_products_hides_inactive(self, db_session, menu):
        menu.fries.is_active = False
        db_session.commit()
        names = [p.name for p in catalog_service.list_products()]
        assert "French Fries" not in names
        assert "Classic Burger" in names

    def test_list_products_by_category(self, db_session, menu):
        products = catalog_service.list_products(category_id=menu.burgers.id)
        assert {p.name for p in products} == {"Classic Burger", "Cheese Burger"}
