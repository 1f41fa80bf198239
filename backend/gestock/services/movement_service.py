# Overview: Service-layer operations for inter-stock movements; encapsulates business logic and database work.

"""
Stock Movement Service

WHY: Goods travel between the bookshops and the depot. The receiving stock
decides whether a delivery arrived as announced (confirm) or not (claim);
destination quantities change only on confirm.

DESIGN PRINCIPLES:
- Header + items created together, status pending, no quantity changes
- Only the receiving stock (to_stock_id) may confirm or claim (403)
- confirm and claim are one-shot: a non-pending movement is rejected (400),
  so a second confirm can never double-apply quantities
- confirm applies every item and the status change in one transaction
- Source quantities are not changed by a movement

DESTINATION MATCHING (confirm):
1. the same product id already scoped to the destination stock
2. otherwise an active destination product with the same normalized name
   and reference
3. otherwise a copy of the source product is created at the destination
   with the moved quantity
Matching by name/reference keeps repeated deliveries of a global product
from creating a new destination row every time.

LIFECYCLE:
1. pending
2. confirmed (confirmed_date)  |  claimed (claim_message, claim_date)
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Product, StockMovement, StockMovementItem, User
from ..money import line_total, to_number
from ..pagination import paginate
from ..time_utils import utcnow
from ..validation import (
    ServiceError,
    clean_str,
    coerce_int,
    coerce_money,
    ensure_payload,
    require_fields,
    strict_choice,
)
from . import inventory_service
from .concurrency import begin_write, lock_for_update, run_with_retry
from .stock_service import resolve_stock_id

logger = logging.getLogger(__name__)


class MovementError(ServiceError):
    """Raised for stock movement errors."""
    pass


# =============================================================================
# STATUS / ACTION CONSTANTS
# =============================================================================

MOVEMENT_STATUS_PENDING = "pending"
MOVEMENT_STATUS_CONFIRMED = "confirmed"
MOVEMENT_STATUS_CLAIMED = "claimed"
MOVEMENT_STATUSES = (MOVEMENT_STATUS_PENDING, MOVEMENT_STATUS_CONFIRMED, MOVEMENT_STATUS_CLAIMED)

ACTION_CONFIRM = "confirm"
ACTION_CLAIM = "claim"
ACTIONS = (ACTION_CONFIRM, ACTION_CLAIM)


def _normalized(name: str | None) -> str:
    return (name or "").strip().lower()


def _parse_items(raw_items) -> list[dict]:
    if not isinstance(raw_items, list) or not raw_items:
        raise MovementError("Au moins un article est requis")

    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise MovementError(f"Article {index + 1} invalide")
        require_fields(raw, ["product_id", "quantity", "unit_price"])
        quantity = coerce_int(raw["quantity"], "quantity", minimum=1)
        unit_price = coerce_money(raw["unit_price"], "unit_price", strictly_positive=True)
        items.append({
            "product_id": coerce_int(raw["product_id"], "product_id", minimum=1),
            "quantity": quantity,
            "unit_price": unit_price,
            "total_price": line_total(quantity, unit_price),
        })
    return items


# =============================================================================
# MOVEMENT CREATION
# =============================================================================

def create_movement(payload: dict) -> StockMovement:
    """
    Create a pending movement with its items.

    Raises:
        MovementError: missing fields, same source and destination, or
            products that do not belong to the source stock
        ValidationError: unknown stock
    """
    payload = ensure_payload(payload)

    def _op():
        require_fields(payload, ["from_stock_id", "to_stock_id", "user_id", "recipient_name"])
        from_stock_id = resolve_stock_id(payload["from_stock_id"])
        to_stock_id = resolve_stock_id(payload["to_stock_id"])
        if from_stock_id == to_stock_id:
            raise MovementError("Le stock source et le stock destination doivent être différents")

        user_id = coerce_int(payload["user_id"], "user_id", minimum=1)
        if db.session.get(User, user_id) is None:
            raise MovementError(f"Utilisateur {user_id} introuvable")

        items = _parse_items(payload.get("items"))
        for item in items:
            product = db.session.get(Product, item["product_id"])
            if product is None:
                raise MovementError(f"Produit {item['product_id']} introuvable")
            if product.stock_id is not None and product.stock_id != from_stock_id:
                raise MovementError(
                    f"Le produit {product.id} n'appartient pas au stock source"
                )

        movement = StockMovement(
            from_stock_id=from_stock_id,
            to_stock_id=to_stock_id,
            user_id=user_id,
            movement_number=f"MOV-PENDING-{uuid.uuid4().hex}",
            recipient_name=clean_str(payload["recipient_name"], max_len=255, field="recipient_name"),
            total_amount=sum((i["total_price"] for i in items), Decimal("0.00")),
            status=MOVEMENT_STATUS_PENDING,
            notes=clean_str(payload.get("notes")),
        )
        db.session.add(movement)
        db.session.flush()
        movement.movement_number = f"MOV-{utcnow():%Y%m%d%H%M%S}-{movement.id}"

        for item in items:
            db.session.add(StockMovementItem(movement_id=movement.id, **item))

        db.session.flush()
        logger.info(
            "Created movement %s from stock %s to stock %s (%s items)",
            movement.movement_number, from_stock_id, to_stock_id, len(items),
        )
        return movement

    return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def get_movement(movement_id: int) -> StockMovement:
    movement = db.session.get(StockMovement, movement_id)
    if not movement:
        raise MovementError("Mouvement non trouvé", status=404)
    return movement


def list_movements(
    *,
    stock_id: int | None = None,
    to_stock_id: int | None = None,
    movement_type: str | None = None,
    status: str | None = None,
    page=1,
    limit=None,
) -> tuple[list[dict], dict]:
    """
    stock_id alone lists movements sent by that stock; with
    movement_type="received" it lists movements addressed to it instead.
    to_stock_id narrows by destination.
    """
    query = db.session.query(StockMovement)

    if stock_id is not None:
        if movement_type == "received":
            query = query.filter(StockMovement.to_stock_id == stock_id)
        else:
            query = query.filter(StockMovement.from_stock_id == stock_id)
    if to_stock_id is not None:
        query = query.filter(StockMovement.to_stock_id == to_stock_id)
    if status in MOVEMENT_STATUSES:
        query = query.filter(StockMovement.status == status)

    query = query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
    rows, pagination = paginate(query, page, limit)
    return [m.to_dict() for m in rows], pagination


# =============================================================================
# TRANSITIONS
# =============================================================================

def _find_destination_product(source: Product, to_stock_id: int) -> Product | None:
    same_row = inventory_service.lock_product(source.id, to_stock_id)
    if same_row is not None:
        return same_row

    query = db.session.query(Product).filter(
        Product.stock_id == to_stock_id,
        Product.is_active.is_(True),
        func.lower(func.trim(Product.name)) == _normalized(source.name),
    )
    if source.reference:
        query = query.filter(Product.reference == source.reference)
    else:
        query = query.filter(or_(Product.reference.is_(None), Product.reference == ""))
    return lock_for_update(query.order_by(Product.id)).first()


def _apply_confirmed_item(item: StockMovementItem, to_stock_id: int) -> None:
    source = db.session.get(Product, item.product_id)
    if source is None:
        raise MovementError(f"Produit source {item.product_id} introuvable")

    destination = _find_destination_product(source, to_stock_id)
    if destination is not None:
        inventory_service.apply_delta(destination.id, to_stock_id, item.quantity)
    else:
        destination = Product(
            name=source.name,
            reference=source.reference,
            description=source.description,
            price=source.price,
            quantity=item.quantity,
            stock_id=to_stock_id,
            is_active=True,
        )
        db.session.add(destination)
        db.session.flush()
    item.destination_product_id = destination.id


def transition_movement(movement_id: int, payload: dict) -> StockMovement:
    """
    Confirm or claim a pending movement on behalf of the receiving stock.

    Body: {action: confirm|claim, requesting_stock_id, claim_message?}

    Raises:
        MovementError: 400 bad action / not pending / empty claim message,
            403 when the requester is not the receiving stock, 404 missing
        ValidationError: requesting_stock_id missing or unknown
    """
    payload = ensure_payload(payload)
    action = strict_choice(payload.get("action"), ACTIONS, "action")
    require_fields(payload, ["requesting_stock_id"])
    requesting_stock_id = resolve_stock_id(payload["requesting_stock_id"])
    claim_message = clean_str(payload.get("claim_message"))
    if action == ACTION_CLAIM and not claim_message:
        raise MovementError("Un message de réclamation est requis")

    def _op():
        begin_write()
        movement = lock_for_update(db.session.query(StockMovement).filter_by(id=movement_id)).first()
        if not movement:
            raise MovementError("Mouvement non trouvé", status=404)

        if movement.to_stock_id != requesting_stock_id:
            raise MovementError("Only the receiving stock can perform this action", status=403)

        if movement.status != MOVEMENT_STATUS_PENDING:
            raise MovementError("Movement is not in pending status")

        now = utcnow()
        if action == ACTION_CONFIRM:
            for item in movement.items:
                _apply_confirmed_item(item, movement.to_stock_id)
            movement.status = MOVEMENT_STATUS_CONFIRMED
            movement.confirmed_date = now
        else:
            movement.status = MOVEMENT_STATUS_CLAIMED
            movement.claim_message = claim_message
            movement.claim_date = now

        db.session.flush()
        logger.info(
            "Movement %s %s by stock %s (total %s)",
            movement.movement_number, movement.status, requesting_stock_id,
            to_number(movement.total_amount),
        )
        return movement

    return run_with_retry(_op)
