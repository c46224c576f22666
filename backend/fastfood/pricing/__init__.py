"""
Discount and order-total engine.

Pure functions over snapshots; the order service and the preview endpoint
both price through here so a quoted total always matches the saved one.
"""

from .calculator import applicable_sub_total, compute_discount, granted_free_quantity, qualifying_quantity
from .eligibility import check_eligibility, ensure_applicable, find_applicable, is_eligible, validity_reason
from .errors import ComputationInvariantError, DiscountExhaustedError, DiscountNotApplicableError, PricingError
from .selection import best_discount, rank_discounts
from .snapshots import (
    BogoPolicy,
    DiscountResult,
    DiscountRule,
    LineItem,
    OrderContext,
    OrderTotals,
    PricingSettings,
    ProductInfo,
)
from .totals import recompute

__all__ = [
    'applicable_sub_total', 'compute_discount', 'granted_free_quantity', 'qualifying_quantity',
    'check_eligibility', 'ensure_applicable', 'find_applicable', 'is_eligible', 'validity_reason',
    'ComputationInvariantError', 'DiscountExhaustedError', 'DiscountNotApplicableError', 'PricingError',
    'best_discount', 'rank_discounts',
    'BogoPolicy', 'DiscountResult', 'DiscountRule', 'LineItem', 'OrderContext', 'OrderTotals',
    'PricingSettings', 'ProductInfo',
    'recompute',
]
