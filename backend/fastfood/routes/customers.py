# Overview: Customer tier administration and per-customer tier lookup.

from flask import Blueprint, current_app, jsonify, request

from ..services import customer_service
from .errors import DOMAIN_ERRORS, error_response

tiers_bp = Blueprint("customer_tiers", __name__, url_prefix="/api/customer-tiers")
customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@tiers_bp.get("")
def list_tiers_route():
    try:
        return jsonify({"tiers": [t.to_dict() for t in customer_service.list_tiers()]})
    except Exception:
        current_app.logger.exception("Failed to list customer tiers")
        return jsonify({"error": "Internal server error"}), 500


@tiers_bp.post("")
def create_tier_route():
    try:
        tier = customer_service.create_tier(request.get_json(silent=True) or {})
        return jsonify({"tier": tier.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create customer tier")
        return jsonify({"error": "Internal server error"}), 500


@tiers_bp.put("/<int:tier_id>")
def update_tier_route(tier_id: int):
    try:
        tier = customer_service.update_tier(tier_id, request.get_json(silent=True) or {})
        return jsonify({"tier": tier.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update customer tier")
        return jsonify({"error": "Internal server error"}), 500


@tiers_bp.delete("/<int:tier_id>")
def delete_tier_route(tier_id: int):
    try:
        customer_service.delete_tier(tier_id)
        return "", 204
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete customer tier")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>/tier")
def customer_tier_route(customer_id: int):
    """Lifetime spend, current tier and distance to the next one."""
    try:
        return jsonify(customer_service.customer_tier_summary(customer_id))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get customer tier")
        return jsonify({"error": "Internal server error"}), 500
