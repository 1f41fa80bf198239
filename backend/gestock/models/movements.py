# Overview: Inter-stock movement documents and their items.

from __future__ import annotations

from ..extensions import db
from ..money import to_number
from ..time_utils import to_utc_z


class StockMovement(db.Model):
    """
    Goods sent from one stock to another.

    LIFECYCLE:
    1. pending: created with its items, no quantity changes anywhere
    2. confirmed: receiving stock accepted; destination quantities incremented
    3. claimed: receiving stock disputed the delivery (claim_message required)

    confirmed and claimed are terminal. Only the receiving stock
    (to_stock_id) may move a pending movement forward.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.UniqueConstraint("movement_number", name="uq_stock_movements_number"),
        db.Index("ix_stock_movements_from_status", "from_stock_id", "status"),
        db.Index("ix_stock_movements_to_status", "to_stock_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    from_stock_id = db.Column(db.Integer, db.ForeignKey("stocks.id"), nullable=False)
    to_stock_id = db.Column(db.Integer, db.ForeignKey("stocks.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    movement_number = db.Column(db.String(64), nullable=False)
    recipient_name = db.Column(db.String(255), nullable=False)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="pending")
    notes = db.Column(db.Text, nullable=True)

    claim_message = db.Column(db.Text, nullable=True)
    confirmed_date = db.Column(db.DateTime(timezone=True), nullable=True)
    claim_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    items = db.relationship(
        "StockMovementItem",
        backref="movement",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="StockMovementItem.id",
    )
    from_stock = db.relationship("Stock", foreign_keys=[from_stock_id])
    to_stock = db.relationship("Stock", foreign_keys=[to_stock_id])
    user = db.relationship("User", foreign_keys=[user_id])

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "movement_number": self.movement_number,
            "from_stock_id": self.from_stock_id,
            "to_stock_id": self.to_stock_id,
            "from_stock_name": self.from_stock.name if self.from_stock else None,
            "to_stock_name": self.to_stock.name if self.to_stock else None,
            "user_id": self.user_id,
            "recipient_name": self.recipient_name,
            "total_amount": to_number(self.total_amount),
            "status": self.status,
            "notes": self.notes,
            "claim_message": self.claim_message,
            "confirmed_date": to_utc_z(self.confirmed_date),
            "claim_date": to_utc_z(self.claim_date),
            "items_count": len(self.items),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class StockMovementItem(db.Model):
    __tablename__ = "stock_movement_items"
    __table_args__ = (
        db.Index("ix_stock_movement_items_product", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    movement_id = db.Column(db.Integer, db.ForeignKey("stock_movements.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)
    # Destination row credited on confirm (existing match or fresh copy)
    destination_product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)

    product = db.relationship("Product", foreign_keys=[product_id])

    def to_dict(self) -> dict:
        product = self.product
        return {
            "id": self.id,
            "movement_id": self.movement_id,
            "product_id": self.product_id,
            "product_name": product.name if product else None,
            "product_reference": product.reference if product else None,
            "quantity": self.quantity,
            "unit_price": to_number(self.unit_price),
            "total_price": to_number(self.total_price),
            "destination_product_id": self.destination_product_id,
        }
