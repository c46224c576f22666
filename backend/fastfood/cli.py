# Overview: Flask CLI command groups for bootstrap and discount maintenance.

# backend/fastfood/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, customer tiers, menu categories/products, employees.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Discounts:
# - python -m flask discounts list [--active]
#   List discounts with validity and remaining uses.
# - python -m flask discounts toggle SUMMER10
#   Enable/disable a discount by code.

from decimal import Decimal

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, CustomerTier, Employee, Product
from .models.staff import ROLE_ADMIN, ROLE_CASHIER, ROLE_WAREHOUSE_STAFF
from .services import discount_service


SAMPLE_TIERS = (
    ("Member", Decimal("0"), "#9E9E9E", 0),
    ("Silver", Decimal("1000000"), "#C0C0C0", 1),
    ("Gold", Decimal("5000000"), "#FFD700", 2),
    ("Diamond", Decimal("15000000"), "#00BCD4", 3),
)

SAMPLE_MENU = {
    "Burgers": (("Classic Burger", Decimal("45000"), 100), ("Chicken Burger", Decimal("49000"), 100)),
    "Chicken": (("Fried Chicken (2 pcs)", Decimal("69000"), 100), ("Chicken Wings (6 pcs)", Decimal("59000"), 100)),
    "Sides": (("French Fries", Decimal("25000"), 200), ("Onion Rings", Decimal("29000"), 150)),
    "Drinks": (("Coca-Cola", Decimal("15000"), 300), ("Iced Lemon Tea", Decimal("18000"), 300)),
}

SAMPLE_EMPLOYEES = (
    ("Admin", "User", ROLE_ADMIN),
    ("Front", "Cashier", ROLE_CASHIER),
    ("Back", "Storekeeper", ROLE_WAREHOUSE_STAFF),
)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the database with sample reference data.

    Safe to run repeatedly: rows are matched by name and only missing ones are added.
    """
    click.echo("START Initializing fastfood system...")
    db.create_all()

    for name, minimum, color, order in SAMPLE_TIERS:
        if not db.session.query(CustomerTier).filter_by(name=name).first():
            db.session.add(CustomerTier(name=name, minimum_spent=minimum, color_hex=color, display_order=order))
            click.echo(f"PASS Created customer tier: {name}")

    if not current_app.config.get("SEED_SAMPLE_DATA", True):
        db.session.commit()
        click.echo("SKIP Sample menu and staff (SEED_SAMPLE_DATA is off)")
        click.echo("DONE System initialized.")
        return

    for category_name, products in SAMPLE_MENU.items():
        category = db.session.query(Category).filter_by(name=category_name).first()
        if not category:
            category = Category(name=category_name, is_active=True)
            db.session.add(category)
            db.session.flush()
            click.echo(f"PASS Created category: {category_name}")
        for product_name, price, stock in products:
            if not db.session.query(Product).filter_by(name=product_name).first():
                db.session.add(Product(
                    category_id=category.id,
                    name=product_name,
                    price=price,
                    stock_quantity=stock,
                    is_active=True,
                    is_available=True,
                ))
                click.echo(f"PASS Created product: {product_name}")

    for first, last, role in SAMPLE_EMPLOYEES:
        if not db.session.query(Employee).filter_by(first_name=first, last_name=last).first():
            db.session.add(Employee(first_name=first, last_name=last, role=role))
            click.echo(f"PASS Created employee: {first} {last} ({role})")

    db.session.commit()
    click.echo("DONE System initialized.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('discounts')
def discounts_group():
    """Discount inspection and maintenance."""


@discounts_group.command('list')
@click.option('--active', 'active_only', is_flag=True, help='Only discounts valid right now')
@with_appcontext
def list_discounts(active_only):
    """List discounts with type, validity window and usage."""
    discounts = discount_service.find_active() if active_only else discount_service.list_discounts()
    if not discounts:
        click.echo("No discounts found.")
        return

    click.echo(f"{'CODE':<16} {'TYPE':<14} {'VALID':<6} {'USED':>10}  WINDOW")
    for d in discounts:
        limit = d.usage_limit if d.usage_limit is not None else "-"
        click.echo(
            f"{d.code:<16} {d.type:<14} {('yes' if d.is_valid() else 'no'):<6} "
            f"{f'{d.used_count}/{limit}':>10}  {d.start_date:%Y-%m-%d} .. {d.end_date:%Y-%m-%d}"
        )


@discounts_group.command('toggle')
@click.argument('code')
@with_appcontext
def toggle_discount(code):
    """Flip is_active on the discount with this code."""
    discount = discount_service.find_by_code(code)
    if not discount:
        raise click.ClickException(f"Discount code '{code}' not found")
    discount = discount_service.toggle_status(discount.id)
    state = "enabled" if discount.is_active else "disabled"
    click.echo(f"PASS Discount {discount.code} {state}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(discounts_group)
