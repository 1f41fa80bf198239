# Overview: Customers and suppliers, scoped per stock and soft-deleted.

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

DEFAULT_PAYMENT_TERMS = "30 jours"


class Client(db.Model):
    """
    Customer of one stock.

    LIFECYCLE: never hard-deleted; DELETE flips is_active so historical
    sales keep their client reference.
    """
    __tablename__ = "clients"
    __table_args__ = (
        db.Index("ix_clients_stock_active", "stock_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)
    payment_terms = db.Column(db.String(64), nullable=False, default=DEFAULT_PAYMENT_TERMS)
    stock_id = db.Column(db.Integer, db.ForeignKey("stocks.id"), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "payment_terms": self.payment_terms,
            "stock_id": self.stock_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Fournisseur(db.Model):
    """Supplier of one stock. Same soft-delete lifecycle as Client."""
    __tablename__ = "fournisseurs"
    __table_args__ = (
        db.Index("ix_fournisseurs_stock_active", "stock_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)
    contact_person = db.Column(db.String(255), nullable=True)
    payment_terms = db.Column(db.String(64), nullable=False, default=DEFAULT_PAYMENT_TERMS)
    stock_id = db.Column(db.Integer, db.ForeignKey("stocks.id"), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "contact_person": self.contact_person,
            "payment_terms": self.payment_terms,
            "stock_id": self.stock_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
