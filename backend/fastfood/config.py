# backend/fastfood/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str) -> int | None:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    return int(raw)


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/fastfood.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///fastfood.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Pricing. Parsed as Decimal.
    VAT_RATE = os.environ.get("VAT_RATE", "0.10")
    DELIVERY_FEE = os.environ.get("DELIVERY_FEE", "20000")
    CURRENCY_QUANTUM = os.environ.get("CURRENCY_QUANTUM", "1")

    # Buy X Get Y: "synthesize" adds promotional lines, "in_cart" only discounts
    # units of the free product the customer already ordered.
    BOGO_FREE_ITEM_POLICY = os.environ.get("BOGO_FREE_ITEM_POLICY", "synthesize")
    BOGO_MAX_FREE_QUANTITY = _env_int("BOGO_MAX_FREE_QUANTITY")
    BOGO_RESPECT_STOCK = _env_bool("BOGO_RESPECT_STOCK", True)

    # `flask system init` adds the demo menu and staff only when set
    SEED_SAMPLE_DATA = _env_bool("SEED_SAMPLE_DATA", True)
