"""
Pytest fixtures for fastfood backend tests.

Provides test database setup, a small menu, customer tiers, staff, and a
discount factory.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from fastfood import create_app
from fastfood.extensions import db
from fastfood.models import Category, Customer, CustomerTier, Discount, Employee, Product
from fastfood.models.staff import ROLE_ADMIN, ROLE_CASHIER
from fastfood.pricing.snapshots import PERCENTAGE
from fastfood.time_utils import utcnow


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'VAT_RATE': '0.10',
        'DELIVERY_FEE': '20000',
        'CURRENCY_QUANTUM': '1',
        'BOGO_FREE_ITEM_POLICY': 'synthesize',
        'BOGO_MAX_FREE_QUANTITY': None,
        'BOGO_RESPECT_STOCK': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


class Menu:
    """Handles to the fixture menu rows."""


@pytest.fixture(scope='function')
def menu(db_session):
    """
    Burgers: Classic Burger 50,000, Cheese Burger 60,000
    Drinks:  Coca-Cola 15,000
    Sides:   French Fries 20,000
    Every product has 100 units in stock.
    """
    m = Menu()
    m.burgers = Category(name="Burgers")
    m.drinks = Category(name="Drinks")
    m.sides = Category(name="Sides")
    db_session.add_all([m.burgers, m.drinks, m.sides])
    db_session.flush()

    m.burger = Product(category_id=m.burgers.id, name="Classic Burger", price=Decimal("50000"), stock_quantity=100)
    m.cheese = Product(category_id=m.burgers.id, name="Cheese Burger", price=Decimal("60000"), stock_quantity=100)
    m.coke = Product(category_id=m.drinks.id, name="Coca-Cola", price=Decimal("15000"), stock_quantity=100)
    m.fries = Product(category_id=m.sides.id, name="French Fries", price=Decimal("20000"), stock_quantity=100)
    db_session.add_all([m.burger, m.cheese, m.coke, m.fries])
    db_session.commit()
    return m


@pytest.fixture(scope='function')
def tiers(db_session):
    """Silver from 500,000 spent, Gold from 2,000,000."""
    silver = CustomerTier(name="Silver", minimum_spent=Decimal("500000"), display_order=1)
    gold = CustomerTier(name="Gold", minimum_spent=Decimal("2000000"), display_order=2)
    db_session.add_all([silver, gold])
    db_session.commit()
    return {"silver": silver, "gold": gold}


@pytest.fixture(scope='function')
def customer(db_session):
    c = Customer(first_name="Lan", last_name="Nguyen", email="lan@example.com", phone="0900000001")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def cashier(db_session):
    e = Employee(first_name="Front", last_name="Cashier", role=ROLE_CASHIER)
    db_session.add(e)
    db_session.commit()
    return e


@pytest.fixture(scope='function')
def admin_employee(db_session):
    e = Employee(first_name="Shop", last_name="Admin", role=ROLE_ADMIN)
    db_session.add(e)
    db_session.commit()
    return e


@pytest.fixture(scope='function')
def make_discount(db_session):
    """
    Factory for discounts valid from yesterday to tomorrow.

    Scope is passed as model lists: products=[...], categories=[...],
    customer_tiers=[...], employee_roles=[...].
    """
    def _make(code="SAVE10", type=PERCENTAGE, discount_value="10", **kwargs):
        now = utcnow()
        products = kwargs.pop("products", [])
        categories = kwargs.pop("categories", [])
        customer_tiers = kwargs.pop("customer_tiers", [])
        employee_roles = kwargs.pop("employee_roles", [])
        discount = Discount(
            code=code,
            name=kwargs.pop("name", f"Discount {code}"),
            type=type,
            discount_value=Decimal(str(discount_value)),
            start_date=kwargs.pop("start_date", now - timedelta(days=1)),
            end_date=kwargs.pop("end_date", now + timedelta(days=1)),
            used_count=kwargs.pop("used_count", 0),
            **kwargs,
        )
        discount.products = products
        discount.categories = categories
        discount.customer_tiers = customer_tiers
        discount.employee_roles = employee_roles
        db_session.add(discount)
        db_session.commit()
        return discount

    return _make

