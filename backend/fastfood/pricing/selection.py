# Overview: Ranking of eligible discounts when more than one could apply.

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from .calculator import compute_discount
from .eligibility import find_applicable
from .snapshots import DiscountResult, DiscountRule, OrderContext, PricingSettings


def rank_discounts(
    discounts: Iterable[DiscountRule],
    ctx: OrderContext,
    now: datetime,
    *,
    settings: PricingSettings | None = None,
) -> list[tuple[DiscountRule, DiscountResult]]:
    """
    Eligible discounts paired with their value, best first.

    Ties on amount go to the discount that expires first, then the lowest id,
    so two terminals looking at the same cart always suggest the same code.
    """
    settings = settings or PricingSettings()
    ranked = [
        (rule, compute_discount(rule, ctx, settings))
        for rule in find_applicable(discounts, ctx, now, settings=settings)
    ]
    ranked.sort(key=lambda pair: (-pair[1].amount, pair[0].end_date, pair[0].id))
    return ranked


def best_discount(
    discounts: Iterable[DiscountRule],
    ctx: OrderContext,
    now: datetime,
    *,
    settings: PricingSettings | None = None,
) -> Optional[tuple[DiscountRule, DiscountResult]]:
    ranked = rank_discounts(discounts, ctx, now, settings=settings)
    return ranked[0] if ranked else None
