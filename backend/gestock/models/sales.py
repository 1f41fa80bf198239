# Overview: Sales ledger (sale headers and their line items).

from __future__ import annotations

from ..extensions import db
from ..money import to_number
from ..time_utils import to_utc_z


class Sale(db.Model):
    """
    Point-of-sale or manually entered sale.

    INVARIANT: total == sum(items.total_price) - global_discount_amount
    (checked by sales_service within the money tolerance).

    barcode is derived after insert: YYYYMMDD + zero-padded id, and may be
    replaced later by a scanned ticket barcode (digits only, unique).
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("barcode", name="uq_sales_barcode"),
        db.Index("ix_sales_stock_created", "stock_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    stock_id = db.Column(db.Integer, db.ForeignKey("stocks.id"), nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)

    total = db.Column(db.Numeric(10, 2), nullable=False)
    amount_paid = db.Column(db.Numeric(10, 2), nullable=True)
    change_amount = db.Column(db.Numeric(10, 2), nullable=True)

    # cash, card, check, credit
    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    # pending, partial, paid
    payment_status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    # percentage, amount
    global_discount_type = db.Column(db.String(16), nullable=False, default="percentage")
    global_discount_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    barcode = db.Column(db.String(32), nullable=True)
    invoice_number = db.Column(db.String(64), nullable=True)
    # pos, manual
    source = db.Column(db.String(16), nullable=False, default="pos")
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )
    client = db.relationship("Client", foreign_keys=[client_id])
    user = db.relationship("User", foreign_keys=[user_id])

    @property
    def sale_number(self) -> str:
        return f"SALE-{self.id:06d}"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_number": self.sale_number,
            "user_id": self.user_id,
            "stock_id": self.stock_id,
            "client_id": self.client_id,
            "total": to_number(self.total),
            "amount_paid": to_number(self.amount_paid),
            "change_amount": to_number(self.change_amount),
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "global_discount_type": self.global_discount_type,
            "global_discount_amount": to_number(self.global_discount_amount),
            "barcode": self.barcode,
            "invoice_number": self.invoice_number,
            "source": self.source,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Sale line; total_price is quantity * unit_price, computed server-side."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.Index("ix_sale_items_product", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)

    product = db.relationship("Product", foreign_keys=[product_id])

    def to_dict(self) -> dict:
        product = self.product
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": product.name if product else None,
            "product_reference": product.reference if product else None,
            "barcodes": [b.code for b in product.barcodes] if product else [],
            "quantity": self.quantity,
            "unit_price": to_number(self.unit_price),
            "total_price": to_number(self.total_price),
        }
