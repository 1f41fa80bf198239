# Overview: Product catalog and barcode aliases.

from __future__ import annotations

from ..extensions import db
from ..money import to_number
from ..time_utils import to_utc_z

# Quantity carried by global products (stock_id NULL): effectively unlimited.
UNLIMITED_QUANTITY = 999999


class Product(db.Model):
    """
    Sellable item.

    SCOPE: stock_id NULL means a global product visible from every location,
    whose quantity is the UNLIMITED_QUANTITY sentinel and is never adjusted.
    A stock-scoped product carries a real on-hand quantity for that location.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_stock_active", "stock_id", "is_active"),
        db.Index("ix_products_reference", "reference"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    reference = db.Column(db.String(128), nullable=True)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    stock_id = db.Column(db.Integer, db.ForeignKey("stocks.id"), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    barcodes = db.relationship(
        "Barcode",
        backref="product",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="Barcode.id",
    )

    @property
    def is_global(self) -> bool:
        return self.stock_id is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "reference": self.reference,
            "description": self.description,
            "price": to_number(self.price),
            "quantity": self.quantity,
            "stock_id": self.stock_id,
            "is_global": self.is_global,
            "is_active": self.is_active,
            "barcodes": [b.code for b in self.barcodes],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Barcode(db.Model):
    """Scannable alias for a product; a code belongs to at most one product."""
    __tablename__ = "barcodes"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_barcodes_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    code = db.Column(db.String(64), nullable=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "product_id": self.product_id, "code": self.code}
