# Overview: Service-layer operations for returns and exchanges; encapsulates business logic and database work.

"""
Return / Exchange Service

WHY: Customers bring goods back (return, refund) or swap them (exchange).
Each item moves stock at the selling location, so a return transaction and
all of its stock effects must land together or not at all.

DESIGN PRINCIPLES:
- Created from an original sale of the same stock (404 otherwise)
- Totals are always recomputed from the items; caller-supplied totals are
  only cross-checked, never trusted
- Stock effects applied at creation, under row locks, in one transaction
- Reversal (cancel or delete) applies the exact opposite effects

STOCK EFFECTS (per item, at the transaction's stock):
- return:       + quantity (goods come back on the shelf)
- exchange_out: - quantity (legacy tag, goods leaving the shelf)
- exchange_in:  - quantity (replacement goods leave with the customer)

LIFECYCLE:
1. pending (effects applied)
2. completed (processed_at set)  |  cancelled (effects reversed)
A pending transaction may also be deleted (effects reversed, rows removed).
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import or_

from ..extensions import db
from ..models import Client, Product, ReturnItem, ReturnTransaction, Sale, SaleItem, User
from ..money import line_total, matches, parse_decimal, quantize, to_number
from ..pagination import paginate
from ..time_utils import utcnow
from ..validation import (
    ServiceError,
    clean_str,
    coerce_choice,
    coerce_int,
    ensure_payload,
    optional_int,
    require_fields,
    strict_choice,
)
from . import inventory_service
from .concurrency import begin_write, lock_for_update, run_with_retry
from .stock_service import resolve_stock_id

logger = logging.getLogger(__name__)


class ReturnError(ServiceError):
    """Raised for return operation errors."""
    pass


# =============================================================================
# CONSTANTS
# =============================================================================

RETURN_TYPES = ("return", "exchange", "refund")

RETURN_STATUS_PENDING = "pending"
RETURN_STATUS_COMPLETED = "completed"
RETURN_STATUS_CANCELLED = "cancelled"
RETURN_STATUSES = (RETURN_STATUS_PENDING, RETURN_STATUS_COMPLETED, RETURN_STATUS_CANCELLED)

ACTION_RETURN = "return"
ACTION_EXCHANGE_IN = "exchange_in"
ACTION_EXCHANGE_OUT = "exchange_out"

STOCK_EFFECTS = {
    ACTION_RETURN: 1,
    ACTION_EXCHANGE_OUT: -1,
    ACTION_EXCHANGE_IN: -1,
}

PAYMENT_METHODS = ("cash", "card", "check", "credit")


def _lenient_quantity(raw: dict) -> int | None:
    value = raw.get("quantity")
    if value is None:
        value = raw.get("quantity_returned")
    amount = parse_decimal(value)
    if amount is None or amount != amount.to_integral_value():
        return None
    return int(amount)


def _parse_lines(raw_items) -> list[dict]:
    """
    Keep only usable lines: a product id, quantity > 0 and unit_price > 0.
    Anything else is skipped, matching how the till submits partially
    filled rows.
    """
    if raw_items is None:
        return []
    if not isinstance(raw_items, list):
        raise ReturnError("Les articles doivent être une liste")

    lines = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            continue
        product_id = raw.get("product_id")
        quantity = _lenient_quantity(raw)
        unit_price = parse_decimal(raw.get("unit_price"))
        if isinstance(product_id, bool) or not product_id or quantity is None or unit_price is None:
            continue
        try:
            product_id = int(product_id)
        except (TypeError, ValueError):
            continue
        if quantity <= 0 or unit_price <= 0:
            continue

        unit_price = quantize(unit_price)
        lines.append({
            "product_id": product_id,
            "quantity": quantity,
            "unit_price": unit_price,
            "total_price": line_total(quantity, unit_price),
            "original_sale_item_id": raw.get("original_sale_item_id") or raw.get("sale_item_id"),
            "reason": clean_str(raw.get("reason")),
        })
    return lines


def _check_supplied_total(payload: dict, key: str, computed: Decimal) -> None:
    if payload.get(key) is None:
        return
    supplied = parse_decimal(payload.get(key))
    if supplied is None:
        raise ReturnError(f"{key} must be a number")
    if not matches(computed, supplied):
        raise ReturnError(
            f"{key} ne correspond pas aux articles",
            details={key: to_number(supplied), "expected": to_number(computed)},
        )


def _item_row(txn: ReturnTransaction, line: dict, action_type: str, sale: Sale) -> ReturnItem:
    sale_item_id = line.get("original_sale_item_id")
    if sale_item_id is not None:
        try:
            sale_item_id = int(sale_item_id)
        except (TypeError, ValueError):
            sale_item_id = None
    if sale_item_id is not None:
        owned = db.session.query(SaleItem.id).filter_by(id=sale_item_id, sale_id=sale.id).first()
        if not owned:
            sale_item_id = None
    return ReturnItem(
        return_transaction_id=txn.id,
        original_sale_item_id=sale_item_id,
        product_id=line["product_id"],
        action_type=action_type,
        quantity=line["quantity"],
        unit_price=line["unit_price"],
        total_price=line["total_price"],
        reason=line["reason"],
    )


def _apply_item(item: ReturnItem, stock_id: int, *, reverse: bool = False) -> None:
    sign = STOCK_EFFECTS.get(item.action_type, 0)
    if reverse:
        sign = -sign
    inventory_service.apply_delta(item.product_id, stock_id, sign * item.quantity)


# =============================================================================
# RETURN CREATION
# =============================================================================

def create_from_sale(payload: dict) -> dict:
    """
    Create a pending return/exchange against an original sale and apply
    its stock effects.

    Request fields: original_sale_id, stock_id (slug or id), return_type,
    user_id, return_items[], exchange_items[], optional client_id,
    payment_method, notes, total_refund_amount, total_exchange_amount.

    Returns:
        dict with the created transaction plus refund_total, exchange_total
        and balance_adjustment (exchange - refund)

    Raises:
        ReturnError: invalid input (400), sale not found for stock (404)
        InsufficientStockError: exchange would drive a quantity negative
    """
    payload = ensure_payload(payload)

    def _op():
        require_fields(payload, ["original_sale_id", "stock_id", "return_type"])
        stock_id = resolve_stock_id(payload["stock_id"])
        sale_id = coerce_int(payload["original_sale_id"], "original_sale_id", minimum=1)
        return_type = strict_choice(payload["return_type"], RETURN_TYPES, "return_type")

        require_fields(payload, ["user_id"])
        user_id = coerce_int(payload["user_id"], "user_id", minimum=1)
        if db.session.get(User, user_id) is None:
            raise ReturnError(f"Utilisateur {user_id} introuvable")

        sale = db.session.query(Sale).filter_by(id=sale_id, stock_id=stock_id).first()
        if not sale:
            raise ReturnError("Vente non trouvée", status=404)

        return_lines = _parse_lines(payload.get("return_items"))
        exchange_lines = _parse_lines(payload.get("exchange_items"))
        if not return_lines and not exchange_lines:
            raise ReturnError("Aucun article valide à retourner ou échanger")

        for line in return_lines + exchange_lines:
            if db.session.get(Product, line["product_id"]) is None:
                raise ReturnError(f"Produit {line['product_id']} introuvable")

        refund_total = sum((line["total_price"] for line in return_lines), Decimal("0.00"))
        exchange_total = sum((line["total_price"] for line in exchange_lines), Decimal("0.00"))
        _check_supplied_total(payload, "total_refund_amount", refund_total)
        _check_supplied_total(payload, "total_exchange_amount", exchange_total)

        client_id = optional_int(payload.get("client_id"), "client_id", minimum=1)
        if client_id is None:
            client_id = sale.client_id
        elif db.session.get(Client, client_id) is None:
            raise ReturnError(f"Client {client_id} introuvable")

        begin_write()

        txn = ReturnTransaction(
            original_sale_id=sale.id,
            stock_id=stock_id,
            client_id=client_id,
            user_id=user_id,
            return_type=return_type,
            total_amount=refund_total + exchange_total,
            total_refund_amount=refund_total,
            total_exchange_amount=exchange_total,
            balance_adjustment=exchange_total - refund_total,
            payment_method=coerce_choice(payload.get("payment_method"), PAYMENT_METHODS, "cash"),
            notes=clean_str(payload.get("notes")),
            status=RETURN_STATUS_PENDING,
        )
        db.session.add(txn)
        db.session.flush()

        for line in return_lines:
            item = _item_row(txn, line, ACTION_RETURN, sale)
            db.session.add(item)
            _apply_item(item, stock_id)
        for line in exchange_lines:
            item = _item_row(txn, line, ACTION_EXCHANGE_IN, sale)
            db.session.add(item)
            _apply_item(item, stock_id)

        db.session.flush()
        logger.info(
            "Created %s %s for sale %s at stock %s (refund %s, exchange %s)",
            return_type, txn.id, sale.id, stock_id, refund_total, exchange_total,
        )

        return {
            "return": txn,
            "refund_total": refund_total,
            "exchange_total": exchange_total,
            "balance_adjustment": exchange_total - refund_total,
        }

    return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def get_return(return_id: int) -> ReturnTransaction:
    txn = db.session.get(ReturnTransaction, return_id)
    if not txn:
        raise ReturnError("Retour non trouvé", status=404)
    return txn


def summarize_return(txn: ReturnTransaction) -> dict:
    data = txn.to_dict()
    data["client_name"] = txn.client.name if txn.client else None
    data["original_sale_total"] = to_number(txn.original_sale.total) if txn.original_sale else None
    data["user_name"] = txn.user.username if txn.user else None
    data["items_count"] = len(txn.items)
    return data


def return_detail(txn: ReturnTransaction) -> dict:
    data = summarize_return(txn)
    data["items"] = [item.to_dict() for item in txn.items]
    data["client"] = txn.client.to_dict() if txn.client else None
    return data


def list_returns(
    *,
    stock_id: int | None = None,
    status: str | None = None,
    search: str | None = None,
    page=1,
    limit=None,
) -> tuple[list[dict], dict]:
    query = db.session.query(ReturnTransaction).outerjoin(
        Client, ReturnTransaction.client_id == Client.id
    )
    if stock_id is not None:
        query = query.filter(ReturnTransaction.stock_id == stock_id)
    if status in RETURN_STATUSES:
        query = query.filter(ReturnTransaction.status == status)

    search = clean_str(search)
    if search:
        conditions = [Client.name.ilike(f"%{search}%"), ReturnTransaction.notes.ilike(f"%{search}%")]
        if search.isdigit():
            conditions.append(ReturnTransaction.id == int(search))
            conditions.append(ReturnTransaction.original_sale_id == int(search))
        query = query.filter(or_(*conditions))

    query = query.order_by(ReturnTransaction.created_at.desc(), ReturnTransaction.id.desc())
    rows, pagination = paginate(query, page, limit)
    return [summarize_return(r) for r in rows], pagination


# =============================================================================
# LIFECYCLE
# =============================================================================

def _reverse_effects(txn: ReturnTransaction) -> None:
    for item in txn.items:
        _apply_item(item, txn.stock_id, reverse=True)


def update_return(return_id: int, payload: dict) -> ReturnTransaction:
    """
    Move a pending return to completed or cancelled, and/or edit its notes.

    Only pending transactions change status; setting the current status
    again is a no-op. Cancelling reverses the stock effects.
    """
    payload = ensure_payload(payload)
    new_status = None
    if payload.get("status") is not None:
        new_status = strict_choice(payload.get("status"), RETURN_STATUSES, "status")

    def _op():
        begin_write()
        txn = lock_for_update(db.session.query(ReturnTransaction).filter_by(id=return_id)).first()
        if not txn:
            raise ReturnError("Retour non trouvé", status=404)

        if new_status is not None and new_status != txn.status:
            if txn.status != RETURN_STATUS_PENDING:
                raise ReturnError(f"Cannot change status of a {txn.status} return")
            if new_status == RETURN_STATUS_CANCELLED:
                _reverse_effects(txn)
            txn.status = new_status
            txn.processed_at = utcnow()
            logger.info("Return %s marked %s", txn.id, new_status)

        if "notes" in payload:
            txn.notes = clean_str(payload.get("notes"))

        db.session.flush()
        return txn

    return run_with_retry(_op)


def delete_return(return_id: int) -> None:
    """
    Delete a pending return after reversing every item's stock effect.

    Raises:
        ReturnError: 404 if missing, 400 if not pending
    """
    def _op():
        begin_write()
        txn = lock_for_update(db.session.query(ReturnTransaction).filter_by(id=return_id)).first()
        if not txn:
            raise ReturnError("Retour non trouvé", status=404)
        if txn.status != RETURN_STATUS_PENDING:
            raise ReturnError("Only pending returns can be deleted")

        _reverse_effects(txn)
        db.session.delete(txn)
        db.session.flush()
        logger.info("Deleted pending return %s and reversed its stock effects", return_id)

    return run_with_retry(_op)
