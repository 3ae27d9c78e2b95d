# Overview: Service-layer operations for sales; records a sale and adjusts inventory in one unit.

"""
Sales Service

A sale is recorded and its stock consumed together: the Sale, its SaleItems and
every inventory decrement are committed in ONE atomic unit, or nothing is.

ORDER OF WORK:
1. Authorize the actor (PROCESS_SALES)
2. Validate the payload (field-level errors, nothing written)
3. Compute totals (subtotal -> discount -> tax -> final)
4. Atomic unit: insert Sale + items, then decrement stock per item in order

KNOWN GAPS (kept on purpose, see DESIGN.md):
- Stock is not floored; selling more than is on hand goes negative.
- A product without any inventory row is sold without a stock change; the
  skipped step is logged as a warning.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Sale, SaleItem, Product, ProductCategory, PAYMENT_METHODS
from ..validation import ValidationError, NotFoundError, is_valid_email
from . import inventory_service, permission_service
from .concurrency import StorageError, atomic, run_with_retry
from spherical.time_utils import inclusive_day_range


PROCESS_SALES = "PROCESS_SALES"


@dataclass(frozen=True)
class SaleTotals:
    subtotal: float
    discount_amount: float
    after_discount: float
    tax_amount: float
    final_amount: float


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _as_int(value) -> int | None:
    """Integer from a JSON number; 3.0 counts, 3.5 and booleans do not."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    return None


def _optional_str(payload: dict, key: str, errors: dict, strip: bool = True) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        errors[key] = f"{key} must be a string"
        return None
    return value.strip() if strip else value


def validate_sale_payload(payload) -> dict:
    """
    Validate and normalize a sale request.

    Returns a clean dict: items (product_id, quantity, unit_price),
    payment_method, discount, tax and the optional customer fields.
    Raises ValidationError with per-field details; nothing is written.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: dict[str, str] = {}
    clean: dict = {}

    raw_items = payload.get("items")
    items = []
    if not isinstance(raw_items, list) or not raw_items:
        errors["items"] = "At least one item is required"
    else:
        for idx, raw in enumerate(raw_items):
            prefix = f"items[{idx}]"
            if not isinstance(raw, dict):
                errors[prefix] = "Item must be an object"
                continue

            product_id = _as_int(raw.get("product_id"))
            if product_id is None:
                errors[f"{prefix}.product_id"] = "Invalid product ID"

            quantity = _as_int(raw.get("quantity"))
            if quantity is None or quantity <= 0:
                errors[f"{prefix}.quantity"] = "Quantity must be a positive integer"

            unit_price = raw.get("unit_price")
            if not _is_number(unit_price) or unit_price <= 0:
                errors[f"{prefix}.unit_price"] = "Unit price must be a positive number"

            items.append({"product_id": product_id, "quantity": quantity, "unit_price": unit_price})
    clean["items"] = items

    payment_method = payload.get("payment_method")
    if payment_method not in PAYMENT_METHODS:
        errors["payment_method"] = f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}"
    clean["payment_method"] = payment_method

    for key, label in (("discount", "Discount"), ("tax", "Tax")):
        value = payload.get(key, 0)
        if value is None:
            value = 0
        if not _is_number(value) or value < 0:
            errors[key] = f"{label} must be a non-negative number"
        clean[key] = value

    clean["customer_id"] = _optional_str(payload, "customer_id", errors)
    clean["customer_phone"] = _optional_str(payload, "customer_phone", errors)

    # Length is checked on the name as sent.
    customer_name = _optional_str(payload, "customer_name", errors, strip=False)
    if customer_name is not None and len(customer_name) < 2:
        errors["customer_name"] = "Customer name must be at least 2 characters"
    clean["customer_name"] = customer_name

    customer_email = _optional_str(payload, "customer_email", errors)
    if customer_email is not None and not is_valid_email(customer_email):
        errors["customer_email"] = "Invalid email address"
    clean["customer_email"] = customer_email

    if errors:
        raise ValidationError("Invalid request data", details=errors)

    return clean


def _line_value(line, key: str):
    return line[key] if isinstance(line, dict) else getattr(line, key)


def compute_totals(items, discount: float = 0, tax: float = 0) -> SaleTotals:
    """
    Sale arithmetic in a fixed order; discount and tax are percentages.

    The subtotal is a plain left-to-right accumulation of quantity * unit_price
    starting at 0, so results match any other implementation using the same
    order of float operations.
    """
    subtotal = 0
    for line in items:
        subtotal = subtotal + _line_value(line, "quantity") * _line_value(line, "unit_price")

    discount_amount = subtotal * discount / 100
    after_discount = subtotal - discount_amount
    tax_amount = after_discount * tax / 100
    final_amount = after_discount + tax_amount

    return SaleTotals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        after_discount=after_discount,
        tax_amount=tax_amount,
        final_amount=final_amount,
    )


def _hydrated_query():
    return db.session.query(Sale).options(
        selectinload(Sale.items).selectinload(SaleItem.product).selectinload(Product.category),
        selectinload(Sale.created_by),
    )


def create_sale(payload, actor) -> Sale:
    """
    Record a sale and consume its stock atomically.

    Raises AuthorizationError (actor may not sell), ValidationError (bad
    payload), NotFoundError (unknown product) or StorageError (persistence
    failed). On any error nothing is written.
    """
    permission_service.require_permission(actor, PROCESS_SALES)

    data = validate_sale_payload(payload)
    totals = compute_totals(data["items"], data["discount"], data["tax"])

    def _op():
        with atomic():
            product_ids = {line["product_id"] for line in data["items"]}
            found = {
                pid for (pid,) in db.session.query(Product.id).filter(Product.id.in_(product_ids)).all()
            }
            missing = sorted(product_ids - found)
            if missing:
                raise NotFoundError(f"Product not found: {', '.join(str(pid) for pid in missing)}")

            sale = Sale(
                customer_id=data["customer_id"],
                customer_name=data["customer_name"],
                customer_email=data["customer_email"],
                customer_phone=data["customer_phone"],
                total_amount=totals.subtotal,
                discount=data["discount"],
                tax=data["tax"],
                final_amount=totals.final_amount,
                payment_method=data["payment_method"],
                created_by_id=actor.user_id,
            )
            for line in data["items"]:
                sale.items.append(SaleItem(
                    product_id=line["product_id"],
                    quantity=line["quantity"],
                    unit_price=line["unit_price"],
                ))
            db.session.add(sale)
            db.session.flush()

            for line in data["items"]:
                item = inventory_service.decrement(line["product_id"], line["quantity"])
                if item is None:
                    current_app.logger.warning(
                        "Sale %s: product %s has no inventory row; stock not adjusted",
                        sale.id, line["product_id"],
                    )

            return sale.id

    try:
        sale_id = run_with_retry(_op)
    except SQLAlchemyError as exc:
        raise StorageError() from exc

    current_app.logger.info(
        "Sale %s recorded by user %s: %d item(s), final amount %s",
        sale_id, actor.user_id, len(data["items"]), totals.final_amount,
    )
    return get_sale(sale_id)


def get_sale(sale_id: int) -> Sale:
    sale = _hydrated_query().filter(Sale.id == sale_id).first()
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


def list_sales() -> list[Sale]:
    """All sales, newest first."""
    return _hydrated_query().order_by(Sale.created_at.desc(), Sale.id.desc()).all()


def list_sales_by_date(start_date: str | None, end_date: str | None) -> list[Sale]:
    """
    Sales created from start_date up to and including end_date.

    The end bound is exclusive at end_date + 1 day, so a plain date covers the
    whole end day.
    """
    if not start_date or not end_date:
        raise ValidationError("Start date and end date are required")

    try:
        start, end = inclusive_day_range(start_date, end_date)
    except ValueError:
        raise ValidationError("Invalid date format", details={"startDate": start_date, "endDate": end_date})

    return _hydrated_query().filter(
        Sale.created_at >= start,
        Sale.created_at < end,
    ).order_by(Sale.created_at.desc(), Sale.id.desc()).all()


def get_sales_summary() -> dict:
    """
    Dashboard figures: sale count, revenue (sum of final amounts), average sale
    value and line amounts per product category.
    """
    total_sales = db.session.query(func.count(Sale.id)).scalar() or 0
    total_revenue = db.session.query(func.coalesce(func.sum(Sale.final_amount), 0.0)).scalar() or 0.0
    average_sale_value = total_revenue / total_sales if total_sales > 0 else 0

    amount = func.sum(SaleItem.quantity * SaleItem.unit_price)
    rows = db.session.query(
        ProductCategory.name,
        func.count(func.distinct(SaleItem.sale_id)),
        amount,
    ).select_from(SaleItem).join(
        Product, SaleItem.product_id == Product.id
    ).outerjoin(
        ProductCategory, Product.category_id == ProductCategory.id
    ).group_by(ProductCategory.name).order_by(amount.desc()).all()

    return {
        "total_sales": total_sales,
        "total_revenue": total_revenue,
        "average_sale_value": average_sale_value,
        "sales_by_category": [
            {"category": name or "Uncategorized", "count": count, "amount": float(total or 0)}
            for name, count, total in rows
        ],
    }
