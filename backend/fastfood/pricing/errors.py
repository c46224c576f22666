# Overview: Exceptions raised by discount evaluation and order-total computation.

from __future__ import annotations


# Reason codes surfaced to callers so the UI can explain a rejection.
INACTIVE = "inactive"
NOT_STARTED = "not_started"
EXPIRED = "expired"
USAGE_EXHAUSTED = "usage_exhausted"
MIN_ORDER_NOT_MET = "min_order_not_met"
TIER_INELIGIBLE = "tier_ineligible"
ROLE_INELIGIBLE = "role_ineligible"
PRODUCT_INELIGIBLE = "product_ineligible"
INSUFFICIENT_QUANTITY = "insufficient_quantity"
FREE_PRODUCT_UNAVAILABLE = "free_product_unavailable"
NOT_FOUND = "not_found"

REASON_MESSAGES = {
    INACTIVE: "Discount has been disabled",
    NOT_STARTED: "Discount is not active yet",
    EXPIRED: "Discount has expired",
    USAGE_EXHAUSTED: "Discount usage limit has been reached",
    MIN_ORDER_NOT_MET: "Order subtotal is below the discount minimum",
    TIER_INELIGIBLE: "Discount does not apply to this customer tier",
    ROLE_INELIGIBLE: "Discount does not apply to this employee role",
    PRODUCT_INELIGIBLE: "Discount does not apply to any product in this order",
    INSUFFICIENT_QUANTITY: "Order does not contain enough qualifying items",
    FREE_PRODUCT_UNAVAILABLE: "Promotional product is currently unavailable",
    NOT_FOUND: "Discount not found",
}


class PricingError(Exception):
    """Base class for pricing failures."""


class DiscountNotApplicableError(PricingError):
    """The discount exists but fails an eligibility check for this order."""

    def __init__(self, reason: str, message: str | None = None, details: dict | None = None):
        super().__init__(message or REASON_MESSAGES.get(reason, "Discount is not applicable"))
        self.reason = reason
        self.details = details or {}


class DiscountExhaustedError(DiscountNotApplicableError):
    """
    Lost the race for the last use of a limited discount.

    Callers should re-fetch eligible discounts rather than retry with the same one.
    """

    def __init__(self, message: str | None = None, details: dict | None = None):
        super().__init__(USAGE_EXHAUSTED, message, details)


class ComputationInvariantError(PricingError):
    """A computed total broke an order invariant. Indicates a bug; never persisted."""
