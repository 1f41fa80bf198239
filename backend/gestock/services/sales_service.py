# Overview: Service-layer operations for sales; encapsulates business logic and database work.

"""
Sales Service

WHY: A sale is the root document every other workflow hangs off: returns
reference it, invoices point at it, statistics aggregate it. Recording it
must be all-or-nothing (header, items, barcode) and its totals must agree
with its lines.

DESIGN PRINCIPLES:
- Header + items + barcode written in one transaction (run_with_retry)
- total is checked against the item lines within the money tolerance;
  global_discount_amount is the monetary discount already applied
- payment_method / payment_status / source / discount type are allow-listed
  with silent defaults (unknown values become the default, not an error)
- Stock is NOT debited at sale time unless SALE_DECREMENTS_STOCK is on

LIFECYCLE:
1. Create (barcode assigned from date + id)
2. Update payment fields / notes / client
3. Delete (refused while return transactions reference the sale)
"""

from __future__ import annotations

import logging
from decimal import Decimal

from flask import current_app
from sqlalchemy import or_

from ..barcodes import generate_sale_barcode, is_valid_custom_barcode, parse_sale_barcode
from ..extensions import db
from ..models import Client, InvoiceFile, Product, ReturnTransaction, Sale, SaleItem, User
from ..money import ZERO, line_total, matches, to_number
from ..pagination import paginate
from ..time_utils import utcnow
from ..validation import (
    ServiceError,
    clean_str,
    coerce_choice,
    coerce_int,
    coerce_money,
    ensure_payload,
    optional_int,
    optional_money,
    require_fields,
)
from . import inventory_service
from .concurrency import begin_write, lock_for_update, run_with_retry
from .stock_service import resolve_stock_id, stock_name

logger = logging.getLogger(__name__)


class SaleError(ServiceError):
    """Raised for sale operation errors."""
    pass


# =============================================================================
# ALLOW-LISTS
# =============================================================================

PAYMENT_METHODS = ("cash", "card", "check", "credit")
PAYMENT_STATUSES = ("pending", "partial", "paid")
DISCOUNT_TYPES = ("percentage", "amount")
SALE_SOURCES = ("pos", "manual")

SEARCH_TYPES = ("barcode", "client", "all")
SEARCH_LIMIT = 50

ANONYMOUS_CUSTOMER = "Client anonyme"


def _decrements_stock() -> bool:
    return bool(current_app.config.get("SALE_DECREMENTS_STOCK", False))


def _parse_items(raw_items) -> list[dict]:
    if raw_items is None:
        return []
    if not isinstance(raw_items, list):
        raise SaleError("items must be a list")

    parsed = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise SaleError(f"Article {index + 1} invalide")
        missing = [k for k in ("product_id", "quantity", "unit_price") if raw.get(k) is None]
        if missing:
            raise SaleError(
                f"Article {index + 1}: champs requis manquants: {', '.join(missing)}"
            )
        product_id = coerce_int(raw["product_id"], "product_id", minimum=1)
        quantity = coerce_int(raw["quantity"], "quantity", minimum=1)
        unit_price = coerce_money(raw["unit_price"], "unit_price", minimum=0)

        if db.session.get(Product, product_id) is None:
            raise SaleError(f"Produit {product_id} introuvable")

        parsed.append({
            "product_id": product_id,
            "quantity": quantity,
            "unit_price": unit_price,
            "total_price": line_total(quantity, unit_price),
        })
    return parsed


def _check_client(client_id: int | None) -> None:
    if client_id is not None and db.session.get(Client, client_id) is None:
        raise SaleError(f"Client {client_id} introuvable")


# =============================================================================
# SALE CREATION
# =============================================================================

def create_sale(payload: dict, *, stock_id=None) -> Sale:
    """
    Record a sale with its items.

    Args:
        payload: request body (user_id, stock_id, total, items[], payment
            fields, client_id, notes, source, invoice_number, discount)
        stock_id: slug or id from the query string, used when the body
            carries no stock_id

    Returns:
        The persisted Sale (flushed, not committed)

    Raises:
        SaleError: missing/invalid fields, unknown references, or a total
            that disagrees with the items
        ValidationError: unknown stock
        InsufficientStockError: stock debit enabled and quantity too low
    """
    payload = ensure_payload(payload)

    def _op():
        require_fields(payload, ["user_id", "total"])
        raw_stock = payload.get("stock_id") if payload.get("stock_id") is not None else stock_id
        if raw_stock is None:
            raise SaleError("Champs requis manquants: stock_id")
        resolved_stock = resolve_stock_id(raw_stock)

        user_id = coerce_int(payload["user_id"], "user_id", minimum=1)
        if db.session.get(User, user_id) is None:
            raise SaleError(f"Utilisateur {user_id} introuvable")

        client_id = optional_int(payload.get("client_id"), "client_id", minimum=1)
        _check_client(client_id)

        total = coerce_money(payload["total"], "total", minimum=0)
        items = _parse_items(payload.get("items"))

        discount_type = coerce_choice(payload.get("global_discount_type"), DISCOUNT_TYPES, "percentage")
        discount_amount = optional_money(payload.get("global_discount_amount"), "global_discount_amount") or ZERO

        if items:
            expected = sum((i["total_price"] for i in items), Decimal("0")) - discount_amount
            if not matches(expected, total):
                raise SaleError(
                    "Le total ne correspond pas aux articles",
                    details={"expected_total": to_number(expected), "total": to_number(total)},
                )

        begin_write()

        sale = Sale(
            user_id=user_id,
            stock_id=resolved_stock,
            client_id=client_id,
            total=total,
            amount_paid=optional_money(payload.get("amount_paid"), "amount_paid"),
            change_amount=optional_money(payload.get("change_amount"), "change_amount"),
            payment_method=coerce_choice(payload.get("payment_method"), PAYMENT_METHODS, "cash"),
            payment_status=coerce_choice(payload.get("payment_status"), PAYMENT_STATUSES, "pending"),
            global_discount_type=discount_type,
            global_discount_amount=discount_amount,
            invoice_number=clean_str(payload.get("invoice_number"), max_len=64, field="invoice_number"),
            source=coerce_choice(payload.get("source"), SALE_SOURCES, "pos"),
            notes=clean_str(payload.get("notes")),
        )
        db.session.add(sale)
        db.session.flush()

        sale.barcode = generate_sale_barcode(sale.id, utcnow())

        for item in items:
            db.session.add(SaleItem(sale_id=sale.id, **item))
            if _decrements_stock():
                inventory_service.apply_delta(item["product_id"], resolved_stock, -item["quantity"])

        db.session.flush()
        logger.info(
            "Recorded sale %s at stock %s: %s items, total %s",
            sale.id, resolved_stock, len(items), total,
        )
        return sale

    return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise SaleError("Vente non trouvée", status=404)
    return sale


def summarize_sale(sale: Sale) -> dict:
    """List-row shape: header plus display helpers, without the items."""
    data = sale.to_dict()
    data["customer_name"] = sale.client.name if sale.client else ANONYMOUS_CUSTOMER
    data["stock_name"] = stock_name(sale.stock_id)
    data["items_count"] = len(sale.items)
    return data


def sale_detail(sale: Sale) -> dict:
    data = summarize_sale(sale)
    data["items"] = [item.to_dict() for item in sale.items]
    data["client"] = sale.client.to_dict() if sale.client else None
    data["user_name"] = sale.user.username if sale.user else None
    data["total_quantity"] = sum(item.quantity for item in sale.items)
    data["barcodes"] = sorted({code for item in data["items"] for code in item["barcodes"]})
    return data


def list_sales(
    *,
    stock_id: int | None = None,
    source: str | None = None,
    search: str | None = None,
    barcode: str | None = None,
    page=1,
    limit=None,
) -> tuple[list[dict], dict]:
    query = db.session.query(Sale)

    if stock_id is not None:
        query = query.filter(Sale.stock_id == stock_id)
    if source in SALE_SOURCES:
        query = query.filter(Sale.source == source)

    search = clean_str(search)
    if search:
        term = f"%{search}%"
        conditions = [Sale.invoice_number.ilike(term), Sale.notes.ilike(term)]
        if search.isdigit():
            conditions.append(Sale.id == int(search))
        query = query.filter(or_(*conditions))

    barcode = clean_str(barcode)
    if barcode:
        query = query.filter(Sale.barcode.like(f"%{barcode}%"))

    query = query.order_by(Sale.created_at.desc(), Sale.id.desc())
    rows, pagination = paginate(query, page, limit)
    return [summarize_sale(s) for s in rows], pagination


def search_sales(q: str | None, search_type: str | None = "all", *, stock_id: int | None = None, limit=SEARCH_LIMIT) -> list[dict]:
    """
    Cashier lookup by ticket barcode and/or client.

    barcode: exact or prefix match on the stored barcode; a well-formed
    sale barcode also matches the sale id it encodes.
    client: client name or phone.
    all: both of the above plus sale id and invoice number.
    """
    q = clean_str(q)
    if not q:
        raise SaleError("Paramètre de recherche requis")
    search_type = coerce_choice(search_type, SEARCH_TYPES, "all")
    try:
        limit = max(1, min(int(limit), SEARCH_LIMIT))
    except (TypeError, ValueError):
        limit = SEARCH_LIMIT

    query = db.session.query(Sale).outerjoin(Client, Sale.client_id == Client.id)
    if stock_id is not None:
        query = query.filter(Sale.stock_id == stock_id)

    barcode_conditions = [Sale.barcode == q, Sale.barcode.like(f"{q}%")]
    decoded = parse_sale_barcode(q)
    if decoded is not None:
        barcode_conditions.append(Sale.id == decoded[1])

    client_conditions = [Client.name.ilike(f"%{q}%"), Client.phone.ilike(f"%{q}%")]

    if search_type == "barcode":
        conditions = barcode_conditions
    elif search_type == "client":
        conditions = client_conditions
    else:
        conditions = barcode_conditions + client_conditions + [Sale.invoice_number.ilike(f"%{q}%")]
        if q.isdigit():
            conditions.append(Sale.id == int(q))

    sales = (
        query.filter(or_(*conditions))
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(limit)
        .all()
    )
    return [sale_detail(s) for s in sales]


# =============================================================================
# UPDATE / DELETE
# =============================================================================

def update_sale(sale_id: int, payload: dict) -> Sale:
    """
    Update payment fields, notes and client. Totals and items are immutable
    once recorded; correct them with a return instead.
    """
    payload = ensure_payload(payload)

    def _op():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise SaleError("Vente non trouvée", status=404)

        if "client_id" in payload:
            client_id = optional_int(payload.get("client_id"), "client_id", minimum=1)
            _check_client(client_id)
            sale.client_id = client_id
        if "payment_method" in payload:
            sale.payment_method = coerce_choice(payload.get("payment_method"), PAYMENT_METHODS, "cash")
        if "payment_status" in payload:
            sale.payment_status = coerce_choice(payload.get("payment_status"), PAYMENT_STATUSES, "pending")
        if "amount_paid" in payload:
            sale.amount_paid = optional_money(payload.get("amount_paid"), "amount_paid")
        if "change_amount" in payload:
            sale.change_amount = optional_money(payload.get("change_amount"), "change_amount")
        if "notes" in payload:
            sale.notes = clean_str(payload.get("notes"))
        if "invoice_number" in payload:
            sale.invoice_number = clean_str(payload.get("invoice_number"), max_len=64, field="invoice_number")

        db.session.flush()
        return sale

    return run_with_retry(_op)


def delete_sale(sale_id: int) -> None:
    def _op():
        begin_write()
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise SaleError("Vente non trouvée", status=404)

        has_returns = db.session.query(ReturnTransaction.id).filter_by(original_sale_id=sale.id).first()
        if has_returns:
            raise SaleError("Impossible de supprimer une vente ayant des retours", status=409)

        if _decrements_stock():
            for item in sale.items:
                inventory_service.apply_delta(item.product_id, sale.stock_id, item.quantity)

        db.session.query(InvoiceFile).filter_by(sale_id=sale.id).delete(synchronize_session=False)
        db.session.delete(sale)
        db.session.flush()
        logger.info("Deleted sale %s", sale_id)

    return run_with_retry(_op)


# =============================================================================
# BARCODES
# =============================================================================

def get_barcode(sale_id: int) -> dict:
    sale = get_sale(sale_id)
    return {"saleId": sale.id, "barcode": sale.barcode}


def set_barcode(sale_id: int, barcode) -> Sale:
    code = clean_str(barcode)
    if not code:
        raise SaleError("Code-barres requis")
    if not is_valid_custom_barcode(code):
        raise SaleError("Le code-barres doit contenir uniquement des chiffres (6 à 20)")

    def _op():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise SaleError("Vente non trouvée", status=404)
        taken = (
            db.session.query(Sale.id)
            .filter(Sale.barcode == code, Sale.id != sale.id)
            .first()
        )
        if taken:
            raise SaleError("Code-barres déjà utilisé par une autre vente", status=409)
        sale.barcode = code
        db.session.flush()
        return sale

    return run_with_retry(_op)
