# Overview: Read-only menu endpoints (products, categories).

from flask import Blueprint, current_app, jsonify, request

from ..services import catalog_service
from .errors import DOMAIN_ERRORS, error_response

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


@catalog_bp.get("/products")
def list_products_route():
    """Query: category_id, include_inactive=true"""
    try:
        category_id = request.args.get("category_id", type=int)
        include_inactive = request.args.get("include_inactive", "false").lower() == "true"
        products = catalog_service.list_products(category_id=category_id, active_only=not include_inactive)
        return jsonify({"products": [catalog_service.product_with_availability(p) for p in products]})
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/products/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
        return jsonify({"product": catalog_service.product_with_availability(product)})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get product")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/categories")
def list_categories_route():
    try:
        include_inactive = request.args.get("include_inactive", "false").lower() == "true"
        categories = catalog_service.list_categories(active_only=not include_inactive)
        return jsonify({"categories": [c.to_dict() for c in categories]})
    except Exception:
        current_app.logger.exception("Failed to list categories")
        return jsonify({"error": "Internal server error"}), 500
