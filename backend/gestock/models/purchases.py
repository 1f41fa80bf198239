# Overview: Supplier purchases (achats).

from __future__ import annotations

from ..extensions import db
from ..money import to_number
from ..time_utils import to_iso_date, to_utc_z


class Achat(db.Model):
    """Purchase from a fournisseur, recorded at header level."""
    __tablename__ = "achats"
    __table_args__ = (
        db.Index("ix_achats_stock_created", "stock_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    fournisseur_id = db.Column(db.Integer, db.ForeignKey("fournisseurs.id"), nullable=False, index=True)
    stock_id = db.Column(db.Integer, db.ForeignKey("stocks.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    reference = db.Column(db.String(128), nullable=True)
    total = db.Column(db.Numeric(10, 2), nullable=False)
    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    payment_status = db.Column(db.String(16), nullable=False, default="pending")
    delivery_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    fournisseur = db.relationship("Fournisseur", foreign_keys=[fournisseur_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "fournisseur_id": self.fournisseur_id,
            "fournisseur_name": self.fournisseur.name if self.fournisseur else None,
            "stock_id": self.stock_id,
            "user_id": self.user_id,
            "reference": self.reference,
            "total": to_number(self.total),
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "delivery_date": to_iso_date(self.delivery_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
