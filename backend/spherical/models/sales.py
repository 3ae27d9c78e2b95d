from __future__ import annotations

from ..extensions import db
from spherical.time_utils import to_utc_z, utcnow

PAYMENT_METHODS = ("cash", "card", "bank_transfer", "mobile_money")


class Sale(db.Model):
    """
    A completed sale.

    total_amount is the pre-discount subtotal; final_amount is what was
    charged after discount and tax. Sales are immutable once committed.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    customer_id = db.Column(db.String(64), nullable=True)
    customer_name = db.Column(db.String(255), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)

    total_amount = db.Column(db.Float, nullable=False)
    discount = db.Column(db.Float, nullable=False, default=0)  # percentage
    tax = db.Column(db.Float, nullable=False, default=0)       # percentage
    final_amount = db.Column(db.Float, nullable=False)

    payment_method = db.Column(db.String(32), nullable=False)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    created_by = db.relationship("User", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "total_amount": self.total_amount,
            "discount": self.discount,
            "tax": self.tax,
            "final_amount": self.final_amount,
            "payment_method": self.payment_method,
            "created_by_id": self.created_by_id,
            "created_by": self.created_by.to_summary() if self.created_by else None,
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
        }


class SaleItem(db.Model):
    """Line items on a sale; created and stored only together with their Sale."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Float, nullable=False)

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_price

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "line_total": self.line_total,
            "product": self.product.to_dict() if self.product else None,
        }
