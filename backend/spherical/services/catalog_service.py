# Overview: Service-layer operations for the product catalog (categories and products).

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import InventoryItem, Product, ProductCategory, SaleItem
from ..validation import (
    ConflictError,
    NotFoundError,
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_category,
    enforce_rules_product,
)


CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "name", "description", "category_id", "price", "cost_price", "image_url"},
    required_on_create={"sku", "name", "price", "cost_price"},
)

CATEGORY_NAME_TAKEN = "Category with this name already exists"
SKU_TAKEN = "Product with this SKU already exists"


def _commit_unique(message: str) -> None:
    """Commit, turning a unique-constraint race into ConflictError."""
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(message) from None


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def list_categories() -> list[ProductCategory]:
    return db.session.query(ProductCategory).order_by(ProductCategory.name.asc()).all()


def get_category(category_id: int) -> ProductCategory:
    category = db.session.get(ProductCategory, category_id)
    if not category:
        raise NotFoundError("Category not found")
    return category


def _ensure_category_name_free(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(ProductCategory.id).filter(
        func.lower(ProductCategory.name) == name.lower()
    )
    if exclude_id is not None:
        query = query.filter(ProductCategory.id != exclude_id)
    if query.first():
        raise ConflictError(CATEGORY_NAME_TAKEN)


def create_category(payload: dict) -> ProductCategory:
    patch = validate_payload(model=ProductCategory, payload=payload, policy=CATEGORY_POLICY, partial=False)
    enforce_rules_category(patch)
    _ensure_category_name_free(patch["name"])

    category = ProductCategory(**patch)
    db.session.add(category)
    _commit_unique(CATEGORY_NAME_TAKEN)
    return category


def update_category(category_id: int, payload: dict) -> ProductCategory:
    category = get_category(category_id)
    patch = validate_payload(model=ProductCategory, payload=payload, policy=CATEGORY_POLICY, partial=True)
    enforce_rules_category(patch)

    if "name" in patch and patch["name"] != category.name:
        _ensure_category_name_free(patch["name"], exclude_id=category.id)

    for key, value in patch.items():
        setattr(category, key, value)
    _commit_unique(CATEGORY_NAME_TAKEN)
    return category


def delete_category(category_id: int) -> None:
    """Categories that still hold products cannot be deleted."""
    category = get_category(category_id)
    in_use = db.session.query(Product.id).filter(Product.category_id == category.id).first()
    if in_use:
        raise ConflictError("Cannot delete category with associated products")

    db.session.delete(category)
    db.session.commit()


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

def list_products(category_id: int | None = None) -> list[Product]:
    query = db.session.query(Product).options(selectinload(Product.category))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    return product


def _ensure_sku_free(sku: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError(SKU_TAKEN)


def _ensure_category_exists(category_id: int | None) -> None:
    if category_id is not None and not db.session.get(ProductCategory, category_id):
        raise NotFoundError("Category not found")


def create_product(payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    _ensure_category_exists(patch.get("category_id"))
    _ensure_sku_free(patch["sku"])

    product = Product(**patch)
    db.session.add(product)
    _commit_unique(SKU_TAKEN)
    return product


def update_product(product_id: int, payload: dict) -> Product:
    product = get_product(product_id)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    if "category_id" in patch:
        _ensure_category_exists(patch["category_id"])
    if "sku" in patch and patch["sku"] != product.sku:
        _ensure_sku_free(patch["sku"], exclude_id=product.id)

    for key, value in patch.items():
        setattr(product, key, value)
    _commit_unique(SKU_TAKEN)
    return product


def delete_product(product_id: int) -> None:
    """Products referenced by inventory rows or sale items cannot be deleted."""
    product = get_product(product_id)

    if db.session.query(InventoryItem.id).filter(InventoryItem.product_id == product.id).first():
        raise ConflictError("Cannot delete product with inventory records")
    if db.session.query(SaleItem.id).filter(SaleItem.product_id == product.id).first():
        raise ConflictError("Cannot delete product with recorded sales")

    db.session.delete(product)
    db.session.commit()
