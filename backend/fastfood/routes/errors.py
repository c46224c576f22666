# Overview: JSON error bodies shared by the API blueprints.

from flask import jsonify

from ..pricing import DiscountExhaustedError, DiscountNotApplicableError
from ..validation import ConflictError, NotFoundError, ValidationError


def error_response(exc: Exception):
    """
    Map a known domain error to (body, status), or None for anything else.

    Body shape: {"error": message, "reason"?: code, "details"?: {...}}
    """
    if isinstance(exc, DiscountExhaustedError):
        return jsonify({"error": str(exc), "reason": exc.reason, "details": exc.details}), 409
    if isinstance(exc, DiscountNotApplicableError):
        return jsonify({"error": str(exc), "reason": exc.reason, "details": exc.details}), 400
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc), "details": exc.details}), 400
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc), "details": exc.details}), 409
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    return None


DOMAIN_ERRORS = (DiscountNotApplicableError, ValidationError, ConflictError, NotFoundError)
