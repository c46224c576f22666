"""
Order service: cart edits, discount selection, confirmation and kitchen status.

Every mutation re-prices the order from scratch through the pricing engine
and writes the result in the same transaction, so the stored totals are
always the ones the engine produced. Any failure rolls the whole mutation
back (see concurrency.run_with_retry).

Discount usage is counted once per order, at confirmation. A discount set on
an order that is already confirmed is redeemed on the spot.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Discount, Employee, Order, OrderItem, Product, Customer
from ..models.orders import (
    ORDER_DELIVERY,
    ORDER_DINE_IN,
    ORDER_TYPES,
    STATUS_CANCELLED,
    STATUS_CONFIRMED,
    STATUS_DELIVERED,
    STATUS_DELIVERING,
    STATUS_PENDING,
    STATUS_PREPARING,
    STATUS_READY,
    TERMINAL_STATUSES,
)
from ..pricing import (
    BogoPolicy,
    ComputationInvariantError,
    DiscountExhaustedError,
    DiscountNotApplicableError,
    LineItem,
    OrderContext,
    OrderTotals,
    PricingSettings,
    check_eligibility,
    compute_discount,
    rank_discounts,
    recompute,
)
from ..pricing.errors import NOT_FOUND, USAGE_EXHAUSTED
from ..pricing.money import ZERO, to_decimal
from ..pricing.snapshots import BOGO_POLICIES, BUY_X_GET_Y
from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError, ValidationError, validate_order_items
from . import catalog_service, customer_service, discount_service
from .concurrency import begin_write, lock_for_update, run_with_retry


# Kitchen flow. Confirmation is not listed: it only happens through confirm_order.
ALLOWED_TRANSITIONS = {
    STATUS_PENDING: {STATUS_CANCELLED},
    STATUS_CONFIRMED: {STATUS_PREPARING, STATUS_CANCELLED},
    STATUS_PREPARING: {STATUS_READY, STATUS_CANCELLED},
    STATUS_READY: {STATUS_DELIVERING, STATUS_DELIVERED, STATUS_CANCELLED},
    STATUS_DELIVERING: {STATUS_DELIVERED, STATUS_CANCELLED},
    STATUS_DELIVERED: set(),
    STATUS_CANCELLED: set(),
}

CREATE_FIELDS = {
    "order_type", "customer_id", "employee_id", "items", "discount_id",
    "discount_code", "include_vat", "notes",
}
UPDATE_FIELDS = CREATE_FIELDS | {"version_id"}
PREVIEW_FIELDS = CREATE_FIELDS - {"notes"}


def pricing_settings() -> PricingSettings:
    cfg = current_app.config
    mode = cfg.get("BOGO_FREE_ITEM_POLICY", "synthesize")
    if mode not in BOGO_POLICIES:
        raise ValueError(f"BOGO_FREE_ITEM_POLICY must be one of {', '.join(BOGO_POLICIES)}")
    max_free = cfg.get("BOGO_MAX_FREE_QUANTITY")
    return PricingSettings(
        vat_rate=to_decimal(cfg.get("VAT_RATE", "0.10"), "VAT_RATE"),
        quantum=to_decimal(cfg.get("CURRENCY_QUANTUM", "1"), "CURRENCY_QUANTUM"),
        bogo=BogoPolicy(
            mode=mode,
            max_free_quantity=int(max_free) if max_free is not None else None,
            respect_stock=bool(cfg.get("BOGO_RESPECT_STOCK", True)),
        ),
    )


def delivery_fee_for(order_type: str) -> Decimal:
    if order_type != ORDER_DELIVERY:
        return ZERO
    return to_decimal(current_app.config.get("DELIVERY_FEE", "20000"), "DELIVERY_FEE")


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def list_orders(status: str | None = None, customer_id: int | None = None, limit: int = 100) -> list[Order]:
    q = db.session.query(Order)
    if status:
        q = q.filter_by(status=status)
    if customer_id is not None:
        q = q.filter_by(customer_id=customer_id)
    return q.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def _lock_order(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def _check_version(order: Order, expected) -> None:
    if expected is None:
        return
    try:
        expected = int(expected)
    except (TypeError, ValueError):
        raise ValidationError("version_id must be an integer", details={"field": "version_id"})
    if expected != order.version_id:
        raise ConflictError(
            "Order was modified by another request; reload and try again",
            details={"expected_version": expected, "current_version": order.version_id},
        )


def _reject_unknown(payload: dict, allowed: set[str]) -> None:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}", details={"fields": unknown})


def _order_type(value) -> str:
    order_type = str(value or ORDER_DINE_IN).strip().upper()
    if order_type not in ORDER_TYPES:
        raise ValidationError(
            f"order_type must be one of {', '.join(ORDER_TYPES)}",
            details={"field": "order_type"},
        )
    return order_type


def _bool_field(payload: dict, key: str) -> bool:
    value = payload.get(key)
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be true or false", details={"field": key})
    return value


def _ref_id(payload: dict, key: str, model) -> int | None:
    """Optional foreign key from the payload; must point at an existing row."""
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer", details={"field": key})
    if db.session.get(model, value) is None:
        raise ValidationError(f"{key} does not exist", details={"field": key, "id": value})
    return value


def _cart_lines(raw_items) -> tuple:
    """Validate a cart payload against the catalog and snapshot current prices."""
    cleaned = validate_order_items(raw_items)
    if not cleaned:
        raise ValidationError("Order must contain at least one item", details={"field": "items"})

    errors = []
    lines = []
    wanted: dict[int, int] = {}
    products: dict[int, Product] = {}
    for index, entry in enumerate(cleaned):
        product = db.session.get(Product, entry["product_id"])
        if product is None:
            errors.append({"index": index, "product_id": entry["product_id"], "error": "Product not found"})
            continue
        if not product.is_active or not product.is_available:
            errors.append({"index": index, "product_id": product.id, "error": "Product is not available"})
            continue
        products[product.id] = product
        wanted[product.id] = wanted.get(product.id, 0) + entry["quantity"]
        lines.append(LineItem(
            product_id=product.id,
            product_name=product.name,
            quantity=entry["quantity"],
            unit_price=Decimal(product.price),
            category_id=product.category_id,
            special_instructions=entry["special_instructions"],
        ))

    for product_id, quantity in wanted.items():
        available = catalog_service.available_quantity(products[product_id])
        if quantity > available:
            errors.append({
                "product_id": product_id,
                "requested_quantity": quantity,
                "available_quantity": available,
                "error": "Not enough stock",
            })

    if errors:
        raise ValidationError("Invalid order items", details={"items": errors})
    return tuple(lines)


def _order_lines(order: Order) -> tuple:
    """Purchased lines of a stored order, at the prices captured when they were added."""
    lines = []
    for row in order.items:
        if row.is_promotional:
            continue
        product = db.session.get(Product, row.product_id)
        lines.append(LineItem(
            product_id=row.product_id,
            product_name=row.product_name,
            quantity=row.quantity,
            unit_price=Decimal(row.unit_price),
            category_id=product.category_id if product else None,
            special_instructions=row.special_instructions,
        ))
    return tuple(lines)


def _build_context(lines: tuple, customer_id, employee_id, discounts=(), order_id=None) -> OrderContext:
    tier = customer_service.effective_tier(customer_id, exclude_order_id=order_id)
    employee = db.session.get(Employee, employee_id) if employee_id is not None else None

    catalog = {}
    for discount in discounts:
        if discount is None or discount.type != BUY_X_GET_Y or discount.free_product_id is None:
            continue
        product = db.session.get(Product, discount.free_product_id)
        if product is not None:
            catalog[product.id] = catalog_service.product_info(product, with_stock=True)

    return OrderContext(
        items=lines,
        customer_tier_id=tier.id if tier else None,
        employee_role=employee.role if employee else None,
        catalog=catalog,
    )


def _resolve_discount(payload: dict) -> Discount | None:
    """discount_id or discount_code from the payload; explicit null clears."""
    if payload.get("discount_code"):
        discount = discount_service.find_by_code(str(payload["discount_code"]))
        if discount is None:
            raise DiscountNotApplicableError(NOT_FOUND, details={"code": payload["discount_code"]})
        return discount
    discount_id = payload.get("discount_id")
    if discount_id is None:
        return None
    if isinstance(discount_id, bool) or not isinstance(discount_id, int):
        raise ValidationError("discount_id must be an integer", details={"field": "discount_id"})
    discount = db.session.get(Discount, discount_id)
    if discount is None:
        raise DiscountNotApplicableError(NOT_FOUND, details={"discount_id": discount_id})
    return discount


def _price(
    lines: tuple,
    *,
    customer_id,
    employee_id,
    order_type: str,
    include_vat: bool,
    discount: Discount | None,
    usage_reserved: bool = False,
    order_id: int | None = None,
) -> OrderTotals:
    ctx = _build_context(lines, customer_id, employee_id, (discount,), order_id)
    try:
        return recompute(
            ctx,
            discount.to_rule() if discount is not None else None,
            settings=pricing_settings(),
            include_vat=include_vat,
            delivery_fee=delivery_fee_for(order_type),
            usage_reserved=usage_reserved,
        )
    except ComputationInvariantError:
        current_app.logger.error("Order total invariant broken (order_id=%s)", order_id, exc_info=True)
        raise


def _apply_totals(order: Order, totals: OrderTotals, *, replace_items: bool) -> None:
    """
    Write engine output onto the order.

    Promotional lines are always regenerated. Purchased lines are only
    replaced when the caller sent a new cart.
    """
    kept = [] if replace_items else [row for row in order.items if not row.is_promotional]
    fresh = [
        OrderItem(
            product_id=line.product_id,
            product_name=line.product_name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            total_price=line.total_price,
            special_instructions=line.special_instructions,
            is_promotional=line.is_promotional,
        )
        for line in totals.items
        if replace_items or line.is_promotional
    ]
    order.items = kept + fresh

    order.sub_total = totals.sub_total
    order.tax_amount = totals.tax_amount
    order.delivery_fee = totals.delivery_fee
    order.discount_id = totals.discount_id
    order.discount_amount = totals.discount_amount
    order.total_amount = totals.total_amount


def _redeem(order: Order, discount: Discount) -> None:
    """Take one use of the discount for this order, inside the current transaction."""
    if not discount_service.increment_usage(discount.id):
        raise DiscountExhaustedError(details={"discount_id": discount.id, "order_id": order.id})
    order.redeemed_discount_id = discount.id
    current_app.logger.info(
        "Redeemed discount %s on order %s", discount.code, order.order_number
    )


def _next_order_number(now: datetime) -> str:
    prefix = f"ORD{now:%Y%m%d}"
    last = (
        db.session.query(func.max(Order.order_number))
        .filter(Order.order_number.like(f"{prefix}%"))
        .scalar()
    )
    seq = int(last[len(prefix):]) + 1 if last else 1
    return f"{prefix}{seq:04d}"


def create_order(payload: dict) -> Order:
    """Open a PENDING order from a cart. The discount, if any, is checked but not yet redeemed."""
    _reject_unknown(payload, CREATE_FIELDS)

    def _op():
        begin_write()
        order_type = _order_type(payload.get("order_type"))
        customer_id = _ref_id(payload, "customer_id", Customer)
        employee_id = _ref_id(payload, "employee_id", Employee)
        include_vat = _bool_field(payload, "include_vat") if "include_vat" in payload else False
        lines = _cart_lines(payload.get("items"))
        discount = _resolve_discount(payload)

        totals = _price(
            lines,
            customer_id=customer_id,
            employee_id=employee_id,
            order_type=order_type,
            include_vat=include_vat,
            discount=discount,
        )

        notes = payload.get("notes")
        order = Order(
            order_number=_next_order_number(utcnow()),
            order_type=order_type,
            status=STATUS_PENDING,
            customer_id=customer_id,
            employee_id=employee_id,
            include_vat=include_vat,
            notes=str(notes).strip()[:1000] if notes else None,
        )
        _apply_totals(order, totals, replace_items=True)
        db.session.add(order)
        db.session.commit()
        return order

    return run_with_retry(_op)


def update_order(order_id: int, payload: dict) -> Order:
    """
    Change the cart, discount, VAT flag, notes or staff on a live order and re-price it.

    Omitted keys keep their current value; "discount_id": null clears the
    discount. When version_id is supplied it must match the stored one.
    """
    _reject_unknown(payload, UPDATE_FIELDS)

    def _op():
        begin_write()
        order = _lock_order(order_id)
        _check_version(order, payload.get("version_id"))

        if order.status in TERMINAL_STATUSES:
            raise ConflictError(f"Cannot modify an order with status {order.status}")
        if order.status != STATUS_PENDING and ({"order_type", "customer_id"} & set(payload)):
            raise ConflictError("order_type and customer_id can only change while the order is PENDING")

        if "order_type" in payload:
            order.order_type = _order_type(payload["order_type"])
        if "customer_id" in payload:
            order.customer_id = _ref_id(payload, "customer_id", Customer)
        if "employee_id" in payload:
            order.employee_id = _ref_id(payload, "employee_id", Employee)
        if "include_vat" in payload:
            order.include_vat = _bool_field(payload, "include_vat")
        if "notes" in payload:
            notes = payload["notes"]
            order.notes = str(notes).strip()[:1000] if notes else None

        replace_items = "items" in payload
        lines = _cart_lines(payload["items"]) if replace_items else _order_lines(order)

        if "discount_id" in payload or "discount_code" in payload:
            discount = _resolve_discount(payload)
        else:
            discount = db.session.get(Discount, order.discount_id) if order.discount_id else None

        # A discount this order already redeemed keeps its use, even across a clear
        reserved = discount is not None and discount.id == order.redeemed_discount_id

        totals = _price(
            lines,
            customer_id=order.customer_id,
            employee_id=order.employee_id,
            order_type=order.order_type,
            include_vat=order.include_vat,
            discount=discount,
            usage_reserved=reserved,
            order_id=order.id,
        )

        if discount is not None and not reserved and order.status != STATUS_PENDING:
            _redeem(order, discount)

        _apply_totals(order, totals, replace_items=replace_items)
        db.session.commit()
        return order

    return run_with_retry(_op)


def confirm_order(order_id: int, version_id: int | None = None) -> Order:
    """
    PENDING -> CONFIRMED.

    Re-validates the selected discount against the current clock and stock,
    then takes one use of it with an atomic conditional update. Losing the
    race for the last use raises DiscountExhaustedError and leaves the order
    PENDING with its previous totals.
    """
    def _op():
        begin_write()
        order = _lock_order(order_id)
        _check_version(order, version_id)

        if order.status != STATUS_PENDING:
            raise ConflictError(f"Cannot confirm order with status {order.status}")

        lines = _order_lines(order)
        if not lines:
            raise ValidationError("Cannot confirm an order with no items")

        discount = db.session.get(Discount, order.discount_id) if order.discount_id else None
        try:
            totals = _price(
                lines,
                customer_id=order.customer_id,
                employee_id=order.employee_id,
                order_type=order.order_type,
                include_vat=order.include_vat,
                discount=discount,
                usage_reserved=order.discount_redeemed,
                order_id=order.id,
            )
        except DiscountNotApplicableError as exc:
            if exc.reason == USAGE_EXHAUSTED and not isinstance(exc, DiscountExhaustedError):
                raise DiscountExhaustedError(details=exc.details) from exc
            raise

        if discount is not None and not order.discount_redeemed:
            _redeem(order, discount)

        _apply_totals(order, totals, replace_items=False)
        order.status = STATUS_CONFIRMED
        order.confirmed_at = utcnow()
        db.session.commit()
        return order

    return run_with_retry(_op)


def change_status(order_id: int, new_status: str, version_id: int | None = None) -> Order:
    """Move an order along the kitchen flow."""
    new_status = str(new_status or "").strip().upper()
    if new_status == STATUS_CONFIRMED:
        return confirm_order(order_id, version_id)
    if new_status not in ALLOWED_TRANSITIONS:
        raise ValidationError(f"Unknown status: {new_status}", details={"field": "status"})

    def _op():
        begin_write()
        order = _lock_order(order_id)
        _check_version(order, version_id)

        if new_status not in ALLOWED_TRANSITIONS[order.status]:
            raise ConflictError(
                f"Cannot change order status from {order.status} to {new_status}",
                details={"from": order.status, "to": new_status},
            )
        if new_status == STATUS_DELIVERING and order.order_type != ORDER_DELIVERY:
            raise ConflictError("Only DELIVERY orders go out for delivery")

        now = utcnow()
        order.status = new_status
        if new_status == STATUS_PREPARING:
            order.prepared_at = now
        elif new_status == STATUS_DELIVERED:
            order.delivered_at = now
        elif new_status == STATUS_CANCELLED:
            order.cancelled_at = now
        db.session.commit()
        return order

    return run_with_retry(_op)


def cancel_order(order_id: int, version_id: int | None = None) -> Order:
    return change_status(order_id, STATUS_CANCELLED, version_id)


def totals_to_dict(totals: OrderTotals) -> dict:
    return {
        "items": [
            {
                "product_id": i.product_id,
                "product_name": i.product_name,
                "quantity": i.quantity,
                "unit_price": str(i.unit_price),
                "total_price": str(i.total_price),
                "special_instructions": i.special_instructions,
                "is_promotional": i.is_promotional,
            }
            for i in totals.items
        ],
        "sub_total": str(totals.sub_total),
        "tax_amount": str(totals.tax_amount),
        "delivery_fee": str(totals.delivery_fee),
        "discount_id": totals.discount_id,
        "discount_amount": str(totals.discount_amount),
        "total_amount": str(totals.total_amount),
    }


def preview_totals(payload: dict) -> dict:
    """Quote a cart without saving anything. Same engine as the saved order."""
    _reject_unknown(payload, PREVIEW_FIELDS)
    order_type = _order_type(payload.get("order_type"))
    totals = _price(
        _cart_lines(payload.get("items")),
        customer_id=_ref_id(payload, "customer_id", Customer),
        employee_id=_ref_id(payload, "employee_id", Employee),
        order_type=order_type,
        include_vat=_bool_field(payload, "include_vat") if "include_vat" in payload else False,
        discount=_resolve_discount(payload),
    )
    return totals_to_dict(totals)


def _context_for_order(order: Order, discounts=()) -> OrderContext:
    return _build_context(_order_lines(order), order.customer_id, order.employee_id, discounts, order.id)


def applicable_discounts(order_id: int) -> list[dict]:
    """Active discounts this order qualifies for, best first, with their value."""
    order = get_order(order_id)
    candidates = discount_service.find_active()
    ctx = _context_for_order(order, candidates)
    rules = [d.to_rule() for d in candidates]
    by_id = {d.id: d for d in candidates}
    ranked = rank_discounts(rules, ctx, utcnow(), settings=pricing_settings())
    return [
        {
            "discount": by_id[rule.id].to_dict(),
            "discount_amount": str(result.amount),
            "granted_free_quantity": result.granted_free_quantity,
        }
        for rule, result in ranked
    ]


def validate_code_for_order(code: str, order_id: int) -> dict:
    """
    Full eligibility check of a code against a stored order, plus its value.

    Raises NotFoundError for an unknown code and DiscountNotApplicableError
    with the failing reason otherwise.
    """
    order = get_order(order_id)
    discount = discount_service.find_by_code(code)
    if discount is None:
        raise NotFoundError(f"Discount code '{code}' not found")

    settings = pricing_settings()
    ctx = _context_for_order(order, (discount,))
    rule = discount.to_rule()
    reserved = order.redeemed_discount_id == discount.id
    reason = check_eligibility(rule, ctx, utcnow(), settings=settings, usage_reserved=reserved)
    if reason:
        raise DiscountNotApplicableError(
            reason,
            details={"discount_id": discount.id, "code": discount.code, "order_id": order.id},
        )

    result = compute_discount(rule, ctx, settings)
    return {
        "valid": True,
        "discount": discount.to_dict(),
        "order_id": order.id,
        "discount_amount": str(result.amount),
        "granted_free_quantity": result.granted_free_quantity,
    }
