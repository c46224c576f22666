# Overview: Discount administration and code validation endpoints.

from flask import Blueprint, current_app, jsonify, request

from ..pricing.errors import NOT_FOUND
from ..services import discount_service, order_service
from ..validation import NotFoundError
from .errors import DOMAIN_ERRORS, error_response

discounts_bp = Blueprint("discounts", __name__, url_prefix="/api/discounts")


@discounts_bp.get("")
def list_discounts_route():
    """Query: active_only=true"""
    try:
        active_only = request.args.get("active_only", "false").lower() == "true"
        discounts = discount_service.list_discounts(active_only=active_only)
        return jsonify({"discounts": [d.to_dict() for d in discounts]})
    except Exception:
        current_app.logger.exception("Failed to list discounts")
        return jsonify({"error": "Internal server error"}), 500


@discounts_bp.get("/active")
def active_discounts_route():
    """Currently valid discounts: switched on, inside their window, uses left."""
    try:
        return jsonify({"discounts": [d.to_dict() for d in discount_service.find_active()]})
    except Exception:
        current_app.logger.exception("Failed to list active discounts")
        return jsonify({"error": "Internal server error"}), 500


@discounts_bp.get("/<int:discount_id>")
def get_discount_route(discount_id: int):
    try:
        return jsonify({"discount": discount_service.get_discount(discount_id).to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get discount")
        return jsonify({"error": "Internal server error"}), 500


@discounts_bp.get("/<string:code>/validate")
def validate_code_route(code: str):
    """
    Check a code typed at the till.

    Without order_id only the discount's own validity is checked. With
    order_id the full eligibility check runs against that order and the
    response carries the discount amount it would get.
    """
    try:
        order_id = request.args.get("order_id", type=int)
        if order_id is not None:
            return jsonify(order_service.validate_code_for_order(code, order_id))
        discount = discount_service.validate_code(code)
        return jsonify({"valid": True, "discount": discount.to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e), "reason": NOT_FOUND}), 404
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to validate discount code")
        return jsonify({"error": "Internal server error"}), 500


@discounts_bp.post("")
def create_discount_route():
    try:
        discount = discount_service.create_discount(request.get_json(silent=True) or {})
        return jsonify({"discount": discount.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create discount")
        return jsonify({"error": "Internal server error"}), 500


@discounts_bp.put("/<int:discount_id>")
def update_discount_route(discount_id: int):
    try:
        discount = discount_service.update_discount(discount_id, request.get_json(silent=True) or {})
        return jsonify({"discount": discount.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update discount")
        return jsonify({"error": "Internal server error"}), 500


@discounts_bp.delete("/<int:discount_id>")
def delete_discount_route(discount_id: int):
    try:
        discount_service.delete_discount(discount_id)
        return "", 204
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete discount")
        return jsonify({"error": "Internal server error"}), 500


@discounts_bp.patch("/<int:discount_id>/toggle-status")
def toggle_status_route(discount_id: int):
    try:
        discount = discount_service.toggle_status(discount_id)
        return jsonify({"discount": discount.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to toggle discount status")
        return jsonify({"error": "Internal server error"}), 500
