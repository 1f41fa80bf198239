# Overview: Stock locations (stores and the central depot).

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Stock(db.Model):
    """
    A physical location: one of the two bookshops or the wholesale depot.

    Rows mirror the fixed slug/id/name registry in services.stock_service;
    ids are assigned explicitly so they match that registry on every database.
    """
    __tablename__ = "stocks"

    id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    slug = db.Column(db.String(32), nullable=False, unique=True)
    name = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "slug": self.slug,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
        }
