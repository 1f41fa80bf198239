# Overview: Service-layer operations for products; encapsulates business logic and database work.

"""
Product Catalog Service

SCOPE: a stock sees its own products plus global ones (stock_id NULL).
New products are global by default, with the unlimited quantity sentinel;
passing stock_id creates a stock-scoped product with a real quantity.

Creation is idempotent on identity: an existing product with the same
reference (or, failing that, the same normalized name) is reused instead of
creating a duplicate.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Barcode, Product, ReturnItem, SaleItem, StockMovementItem, UNLIMITED_QUANTITY
from ..pagination import paginate
from ..validation import (
    ServiceError,
    clean_str,
    coerce_int,
    coerce_money,
    ensure_payload,
    require_fields,
)
from .concurrency import lock_for_update, run_with_retry
from .stock_service import resolve_stock_id

logger = logging.getLogger(__name__)


class ProductError(ServiceError):
    """Raised for product catalog errors."""
    pass


def normalize_name(name: str | None) -> str:
    return (name or "").strip().lower()


def _barcode_codes(payload: dict) -> list[str] | None:
    """Accepts `barcodes` (list) or a single `barcode`; None when neither is present."""
    if "barcodes" in payload:
        raw = payload.get("barcodes") or []
        if not isinstance(raw, list):
            raise ProductError("barcodes must be a list")
    elif "barcode" in payload:
        raw = [payload.get("barcode")]
    else:
        return None

    codes = []
    for value in raw:
        code = clean_str(value, max_len=64, field="barcode")
        if code and code not in codes:
            codes.append(code)
    return codes


def _owner_of(code: str) -> int | None:
    row = db.session.query(Barcode.product_id).filter(Barcode.code == code).first()
    return row[0] if row else None


def _add_barcodes(product: Product, codes: list[str]) -> list[str]:
    """Attach codes nobody uses yet; returns the codes actually added."""
    added = []
    for code in codes:
        if _owner_of(code) is not None:
            continue
        product.barcodes.append(Barcode(code=code))
        added.append(code)
    return added


def _replace_barcodes(product: Product, codes: list[str]) -> None:
    for code in codes:
        owner = _owner_of(code)
        if owner is not None and owner != product.id:
            raise ProductError(f"Code-barres {code} déjà utilisé", status=409)
    keep = set(codes)
    for barcode in list(product.barcodes):
        if barcode.code not in keep:
            product.barcodes.remove(barcode)
    db.session.flush()
    existing = {b.code for b in product.barcodes}
    for code in codes:
        if code not in existing:
            product.barcodes.append(Barcode(code=code))


# =============================================================================
# QUERIES
# =============================================================================

def list_products(
    *,
    stock_id: int,
    search: str | None = None,
    page=1,
    limit=None,
) -> tuple[list[dict], dict]:
    query = db.session.query(Product).filter(
        Product.is_active.is_(True),
        or_(Product.stock_id == stock_id, Product.stock_id.is_(None)),
    )

    search = clean_str(search)
    if search:
        term = f"%{search}%"
        query = query.filter(or_(
            Product.name.ilike(term),
            Product.reference.ilike(term),
            Product.barcodes.any(Barcode.code.ilike(term)),
        ))

    query = query.order_by(Product.name.asc(), Product.id.asc())
    rows, pagination = paginate(query, page, limit)
    return [p.to_dict() for p in rows], pagination


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise ProductError("Produit non trouvé", status=404)
    return product


def find_product(*, barcode: str | None = None, reference: str | None = None) -> Product:
    barcode = clean_str(barcode)
    reference = clean_str(reference)
    if not barcode and not reference:
        raise ProductError("barcode ou reference requis")

    query = db.session.query(Product).filter(Product.is_active.is_(True))
    if barcode:
        query = query.join(Barcode, Barcode.product_id == Product.id).filter(Barcode.code == barcode)
    else:
        query = query.filter(Product.reference == reference)

    product = query.order_by(Product.id).first()
    if not product:
        raise ProductError("Produit non trouvé", status=404)
    return product


# =============================================================================
# MUTATIONS
# =============================================================================

def create_product(payload: dict) -> tuple[Product, bool]:
    """
    Create a product, or reuse the one that already has this identity.

    Returns:
        (product, created) where created is False when an existing product
        was reused (its barcodes may still gain the new, unused codes)
    """
    payload = ensure_payload(payload)

    def _op():
        require_fields(payload, ["name", "price", "quantity"])
        name = clean_str(payload["name"], max_len=255, field="name")
        price = coerce_money(payload["price"], "price", minimum=0)
        quantity = coerce_int(payload["quantity"], "quantity", minimum=0)
        reference = clean_str(payload.get("reference"), max_len=128, field="reference")
        stock_id = None
        if payload.get("stock_id") is not None:
            stock_id = resolve_stock_id(payload["stock_id"])
        codes = _barcode_codes(payload) or []

        existing = None
        if reference:
            existing = (
                db.session.query(Product)
                .filter(Product.reference == reference, Product.is_active.is_(True))
                .order_by(Product.id)
                .first()
            )
        if existing is None:
            existing = (
                db.session.query(Product)
                .filter(
                    func.lower(func.trim(Product.name)) == normalize_name(name),
                    Product.is_active.is_(True),
                )
                .order_by(Product.id)
                .first()
            )
        if existing is not None:
            _add_barcodes(existing, codes)
            db.session.flush()
            return existing, False

        product = Product(
            name=name,
            reference=reference,
            description=clean_str(payload.get("description")),
            price=price,
            quantity=quantity if stock_id is not None else UNLIMITED_QUANTITY,
            stock_id=stock_id,
            is_active=True,
        )
        db.session.add(product)
        db.session.flush()
        _add_barcodes(product, codes)
        db.session.flush()
        logger.info("Created product %s (%s)", product.id, "global" if stock_id is None else f"stock {stock_id}")
        return product, True

    return run_with_retry(_op)


def update_product(product_id: int, payload: dict) -> Product:
    payload = ensure_payload(payload)

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not product:
            raise ProductError("Produit non trouvé", status=404)

        if "name" in payload:
            name = clean_str(payload.get("name"), max_len=255, field="name")
            if not name:
                raise ProductError("name cannot be empty")
            product.name = name
        if "reference" in payload:
            product.reference = clean_str(payload.get("reference"), max_len=128, field="reference")
        if "description" in payload:
            product.description = clean_str(payload.get("description"))
        if "price" in payload:
            product.price = coerce_money(payload.get("price"), "price", minimum=0)
        if "quantity" in payload:
            product.quantity = coerce_int(payload.get("quantity"), "quantity", minimum=0)
        if "is_active" in payload:
            product.is_active = bool(payload.get("is_active"))

        codes = _barcode_codes(payload)
        if codes is not None:
            _replace_barcodes(product, codes)

        db.session.flush()
        return product

    return run_with_retry(_op)


def is_referenced(product_id: int) -> bool:
    for model in (SaleItem, ReturnItem, StockMovementItem):
        if db.session.query(model.id).filter(model.product_id == product_id).first():
            return True
    return bool(
        db.session.query(StockMovementItem.id)
        .filter(StockMovementItem.destination_product_id == product_id)
        .first()
    )


def delete_product(product_id: int) -> None:
    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not product:
            raise ProductError("Produit non trouvé", status=404)
        if is_referenced(product.id):
            raise ProductError(
                "Produit utilisé dans des ventes, retours ou mouvements; désactivez-le plutôt",
                status=409,
            )
        db.session.delete(product)
        db.session.flush()
        logger.info("Deleted product %s", product_id)

    return run_with_retry(_op)
