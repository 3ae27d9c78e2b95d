from __future__ import annotations

from ..extensions import db
from spherical.time_utils import to_utc_z, utcnow


class InventoryItem(db.Model):
    """
    Quantity on hand for one product at one location.

    One row per (product_id, location). Quantity is a plain mutable counter:
    sales decrement it with an in-database `quantity - n` update, and it is
    not clamped at zero.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("product_id", "location", name="uq_inventory_items_product_location"),
        db.Index("ix_inventory_items_quantity", "quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    location = db.Column(db.String(120), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=0)

    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product", backref=db.backref("inventory_items", lazy=True))

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_stock_level

    def to_dict(self, include_product: bool = True) -> dict:
        data = {
            "id": self.id,
            "product_id": self.product_id,
            "location": self.location,
            "quantity": self.quantity,
            "min_stock_level": self.min_stock_level,
            "is_low_stock": self.is_low_stock,
            "last_updated": to_utc_z(self.last_updated),
        }
        if include_product:
            data["product"] = self.product.to_dict() if self.product else None
        return data
