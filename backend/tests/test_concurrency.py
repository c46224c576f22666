"""
Two cashiers confirming orders that share a single-use discount.

Runs against a file-backed SQLite database so each thread gets its own
connection, the way two gunicorn workers would.
"""

import threading
from datetime import timedelta
from decimal import Decimal

import pytest

from fastfood import create_app
from fastfood.extensions import db
from fastfood.models import Category, Discount, Order, Product
from fastfood.pricing import DiscountExhaustedError
from fastfood.pricing.snapshots import FIXED_AMOUNT
from fastfood.services import order_service
from fastfood.time_utils import utcnow


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'race.db'}",
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


def _seed(app) -> tuple[int, list[int]]:
    with app.app_context():
        category = Category(name="Burgers")
        db.session.add(category)
        db.session.flush()
        burger = Product(category_id=category.id, name="Classic Burger", price=Decimal("50000"), stock_quantity=50)
        now = utcnow()
        discount = Discount(
            code="LASTONE", name="Last one", type=FIXED_AMOUNT, discount_value=Decimal("5000"),
            start_date=now - timedelta(days=1), end_date=now + timedelta(days=1),
            usage_limit=1, used_count=0,
        )
        db.session.add_all([burger, discount])
        db.session.commit()

        order_ids = []
        for _ in range(2):
            order = order_service.create_order({
                "items": [{"product_id": burger.id, "quantity": 1}],
                "discount_code": "LASTONE",
            })
            order_ids.append(order.id)
        return discount.id, order_ids


def test_single_use_discount_redeemed_once(file_app):
    discount_id, order_ids = _seed(file_app)
    barrier = threading.Barrier(len(order_ids))
    outcomes = []
    lock = threading.Lock()

    def confirm(order_id):
        with file_app.app_context():
            barrier.wait()
            try:
                order_service.confirm_order(order_id)
                result = "confirmed"
            except DiscountExhaustedError:
                result = "exhausted"
            with lock:
                outcomes.append((order_id, result))

    threads = [threading.Thread(target=confirm, args=(oid,)) for oid in order_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(r for _, r in outcomes) == ["confirmed", "exhausted"]

    with file_app.app_context():
        assert db.session.get(Discount, discount_id).used_count == 1
        statuses = {o.id: o.status for o in db.session.query(Order).all()}
        winner = next(oid for oid, r in outcomes if r == "confirmed")
        loser = next(oid for oid, r in outcomes if r == "exhausted")
        assert statuses[winner] == "CONFIRMED"
        assert statuses[loser] == "PENDING"
