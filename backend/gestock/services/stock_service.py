# Overview: Single source of truth for stock identity (slug <-> id <-> display name).

"""
Stock Registry

WHY: Every endpoint addresses a location either by slug (URLs, query
strings) or by numeric id (rows, JSON bodies). The mapping is fixed and
lives only here; an unknown identifier is an input error, never a default.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Stock
from ..validation import ValidationError


@dataclass(frozen=True)
class StockIdentity:
    id: int
    slug: str
    name: str

    def to_dict(self) -> dict:
        return {"id": self.id, "slug": self.slug, "name": self.name}


STOCKS = (
    StockIdentity(1, "al-ouloum", "Librairie Al Ouloum"),
    StockIdentity(2, "renaissance", "Librairie La Renaissance"),
    StockIdentity(3, "gros", "Gros (Dépôt général)"),
)

_BY_SLUG = {s.slug: s for s in STOCKS}
_BY_ID = {s.id: s for s in STOCKS}


def get_stock(value) -> StockIdentity:
    """
    Resolve a slug, a numeric id or a numeric string to a known stock.

    Raises ValidationError (400) for anything else, including None.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError("stock_id requis")

    if isinstance(value, int):
        identity = _BY_ID.get(value)
    else:
        key = str(value).strip().lower()
        if key.isdigit():
            identity = _BY_ID.get(int(key))
        else:
            identity = _BY_SLUG.get(key)

    if identity is None:
        raise ValidationError(f"Stock inconnu: {value}")
    return identity


def resolve_stock_id(value) -> int:
    return get_stock(value).id


def stock_slug(stock_id: int | None) -> str | None:
    identity = _BY_ID.get(stock_id)
    return identity.slug if identity else None


def stock_name(stock_id: int | None) -> str | None:
    identity = _BY_ID.get(stock_id)
    return identity.name if identity else None


def list_stocks() -> list[dict]:
    return [s.to_dict() for s in STOCKS]


def ensure_stocks() -> int:
    """
    Insert missing stock rows (idempotent). Returns how many were created.

    Does not commit; callers own the transaction.
    """
    existing = {row.id for row in db.session.query(Stock.id).all()}
    created = 0
    for identity in STOCKS:
        if identity.id in existing:
            continue
        db.session.add(Stock(id=identity.id, slug=identity.slug, name=identity.name))
        created += 1
    if created:
        db.session.flush()
    return created
