# Overview: Order endpoints: cart edits, discount selection, confirmation and kitchen status.

from flask import Blueprint, current_app, jsonify, request

from ..services import order_service
from .errors import DOMAIN_ERRORS, error_response

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("")
def list_orders_route():
    """Query: status, customer_id, limit"""
    try:
        orders = order_service.list_orders(
            status=request.args.get("status"),
            customer_id=request.args.get("customer_id", type=int),
            limit=min(request.args.get("limit", 100, type=int), 500),
        )
        return jsonify({"orders": [o.to_dict() for o in orders]})
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("")
def create_order_route():
    """
    Body: {items: [{product_id, quantity, special_instructions?}], order_type?,
           customer_id?, employee_id?, discount_id? | discount_code?, include_vat?, notes?}
    """
    try:
        order = order_service.create_order(request.get_json(silent=True) or {})
        return jsonify({"order": order.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/preview")
def preview_order_route():
    """Same body as create; nothing is saved."""
    try:
        return jsonify({"totals": order_service.preview_totals(request.get_json(silent=True) or {})})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to preview order totals")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        return jsonify({"order": order_service.get_order(order_id).to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.route("/<int:order_id>", methods=["PUT", "POST"])
def update_order_route(order_id: int):
    """
    Body: any of {items, discount_id (null clears), discount_code, include_vat,
                  notes, employee_id, customer_id, order_type, version_id}
    """
    try:
        order = order_service.update_order(order_id, request.get_json(silent=True) or {})
        return jsonify({"order": order.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/confirm")
def confirm_order_route(order_id: int):
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.confirm_order(order_id, version_id=data.get("version_id"))
        return jsonify({"order": order.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to confirm order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/status")
def change_status_route(order_id: int):
    """Body: {status, version_id?}"""
    try:
        data = request.get_json(silent=True) or {}
        if not data.get("status"):
            return jsonify({"error": "status required"}), 400
        order = order_service.change_status(order_id, data["status"], version_id=data.get("version_id"))
        return jsonify({"order": order.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to change order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/cancel")
def cancel_order_route(order_id: int):
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.cancel_order(order_id, version_id=data.get("version_id"))
        return jsonify({"order": order.to_dict()})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>/discounts")
def applicable_discounts_route(order_id: int):
    """Discounts this order qualifies for, best first."""
    try:
        return jsonify({"discounts": order_service.applicable_discounts(order_id)})
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list applicable discounts")
        return jsonify({"error": "Internal server error"}), 500
