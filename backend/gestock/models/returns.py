# Overview: Return/exchange transactions against an original sale.

from __future__ import annotations

from ..extensions import db
from ..money import to_number
from ..time_utils import to_utc_z


class ReturnTransaction(db.Model):
    """
    Return, refund or exchange of goods from an original sale.

    LIFECYCLE:
    1. pending: created; stock effects of every item already applied
    2. completed: processed (processed_at set)
    3. cancelled: stock effects reversed, record kept

    A pending transaction can also be deleted, which reverses its stock
    effects before removing the header and its items.
    """
    __tablename__ = "return_transactions"
    __table_args__ = (
        db.Index("ix_return_transactions_stock_status", "stock_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    original_sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    stock_id = db.Column(db.Integer, db.ForeignKey("stocks.id"), nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # return, exchange, refund
    return_type = db.Column(db.String(16), nullable=False)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total_refund_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total_exchange_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    # positive: customer pays the difference, negative: customer is paid back
    balance_adjustment = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    notes = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    items = db.relationship(
        "ReturnItem",
        backref="return_transaction",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ReturnItem.id",
    )
    original_sale = db.relationship("Sale", foreign_keys=[original_sale_id])
    client = db.relationship("Client", foreign_keys=[client_id])
    user = db.relationship("User", foreign_keys=[user_id])

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "original_sale_id": self.original_sale_id,
            "stock_id": self.stock_id,
            "client_id": self.client_id,
            "user_id": self.user_id,
            "return_type": self.return_type,
            "total_amount": to_number(self.total_amount),
            "total_refund_amount": to_number(self.total_refund_amount),
            "total_exchange_amount": to_number(self.total_exchange_amount),
            "balance_adjustment": to_number(self.balance_adjustment),
            "payment_method": self.payment_method,
            "notes": self.notes,
            "status": self.status,
            "processed_at": to_utc_z(self.processed_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class ReturnItem(db.Model):
    """
    One product line of a return transaction.

    action_type drives the stock effect (see return_service.STOCK_EFFECTS):
    return adds to stock; exchange_in and exchange_out remove from it.
    """
    __tablename__ = "return_items"
    __table_args__ = (
        db.Index("ix_return_items_product", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_transaction_id = db.Column(
        db.Integer, db.ForeignKey("return_transactions.id"), nullable=False, index=True
    )
    original_sale_item_id = db.Column(db.Integer, db.ForeignKey("sale_items.id"), nullable=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    # return, exchange_in, exchange_out
    action_type = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)
    reason = db.Column(db.Text, nullable=True)

    product = db.relationship("Product", foreign_keys=[product_id])

    def to_dict(self) -> dict:
        product = self.product
        return {
            "id": self.id,
            "return_transaction_id": self.return_transaction_id,
            "original_sale_item_id": self.original_sale_item_id,
            "product_id": self.product_id,
            "product_name": product.name if product else None,
            "product_reference": product.reference if product else None,
            "action_type": self.action_type,
            "quantity": self.quantity,
            "unit_price": to_number(self.unit_price),
            "total_price": to_number(self.total_price),
            "reason": self.reason,
        }
