# Overview: Service-layer operations for inventory; per-(product, location) stock counters.

"""
Inventory Ledger

One InventoryItem row per (product, location) holds the quantity on hand.

RULES:
- Stock entry (upsert_stock) sets the quantity outright; it does not add to it.
- Sales decrement the FIRST row for the product (lowest id) with an in-database
  `quantity = quantity - n`, so concurrent decrements never lose an update.
- Quantity is not floored: overselling drives it negative.
- A product with no inventory row is not an error for a sale; decrement()
  returns None and the caller decides what to do.
"""

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import InventoryItem, Product
from ..validation import (
    ConflictError,
    NotFoundError,
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_inventory,
)
from .concurrency import atomic, lock_for_update
from spherical.time_utils import utcnow


INVENTORY_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "location", "quantity", "min_stock_level"},
    required_on_create={"product_id", "location", "quantity", "min_stock_level"},
)


def validate_stock_payload(payload: dict) -> dict:
    """Field-level validation for a stock entry; raises ValidationError."""
    patch = validate_payload(model=InventoryItem, payload=payload, policy=INVENTORY_POLICY, partial=False)
    enforce_rules_inventory(patch)
    return patch


def get_quantity(product_id: int, location: str) -> int:
    """Quantity on hand for (product, location). NotFoundError if there is no row."""
    quantity = db.session.query(InventoryItem.quantity).filter_by(
        product_id=product_id,
        location=location,
    ).scalar()
    if quantity is None:
        raise NotFoundError("Inventory item not found")
    return quantity


def upsert_stock(product_id: int, location: str, quantity: int, min_stock_level: int) -> tuple[InventoryItem, bool]:
    """
    Set stock for (product, location), creating the row when missing.

    Returns (item, created). Raises NotFoundError if the product does not exist
    and ConflictError when a concurrent request created the same row first.
    """
    with atomic():
        if not db.session.get(Product, product_id):
            raise NotFoundError("Product not found")

        item = lock_for_update(
            db.session.query(InventoryItem).filter_by(product_id=product_id, location=location)
        ).first()

        created = item is None
        if created:
            item = InventoryItem(
                product_id=product_id,
                location=location,
                quantity=quantity,
                min_stock_level=min_stock_level,
                last_updated=utcnow(),
            )
            db.session.add(item)
            try:
                db.session.flush()
            except IntegrityError:
                raise ConflictError("Inventory row for this product and location already exists") from None
        else:
            item.quantity = quantity
            item.min_stock_level = min_stock_level
            item.last_updated = utcnow()

    return item, created


def first_item_for_product(product_id: int) -> InventoryItem | None:
    return db.session.query(InventoryItem).filter_by(
        product_id=product_id
    ).order_by(InventoryItem.id.asc()).first()


def decrement(product_id: int, quantity: int) -> InventoryItem | None:
    """
    Subtract `quantity` from the product's first inventory row.

    Runs inside the caller's atomic unit and never commits. Returns the
    refreshed row, or None when the product has no inventory row.
    """
    item = first_item_for_product(product_id)
    if item is None:
        return None

    db.session.execute(
        update(InventoryItem)
        .where(InventoryItem.id == item.id)
        .values(quantity=InventoryItem.quantity - quantity, last_updated=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.session.refresh(item)
    return item


def list_inventory() -> list[InventoryItem]:
    return db.session.query(InventoryItem).join(Product).order_by(
        Product.name.asc(),
        InventoryItem.id.asc(),
    ).all()


def list_low_stock() -> list[InventoryItem]:
    """Rows at or below their minimum stock level, lowest quantity first."""
    return db.session.query(InventoryItem).filter(
        InventoryItem.quantity <= InventoryItem.min_stock_level
    ).order_by(
        InventoryItem.quantity.asc(),
        InventoryItem.id.asc(),
    ).all()
