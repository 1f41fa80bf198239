# backend/gestock/routes/movements.py
"""
Inter-stock movement API routes.

- POST /api/stock-movements         create (pending)
- GET  /api/stock-movements         list (stockId, toStockId, type=received, status)
- GET  /api/stock-movements/<id>
- PUT  /api/stock-movements/<id>    {action: confirm|claim, requesting_stock_id, claim_message?}
"""
from flask import Blueprint, g, request

from ..decorators import stock_scope
from ..responses import internal_error, read_json, service_failure, success
from ..services import movement_service
from ..services.concurrency import commit_with_retry
from ..services.stock_service import resolve_stock_id
from ..validation import ServiceError


movements_bp = Blueprint("stock_movements", __name__, url_prefix="/api/stock-movements")


@movements_bp.post("")
def create_movement_route():
    """
    Request body:
    {
        "from_stock_id": "gros",
        "to_stock_id": "renaissance",
        "user_id": 1,
        "recipient_name": "Karim",
        "items": [{"product_id": 9, "quantity": 5, "unit_price": 12.5}],
        "notes": "..."  (optional)
    }

    Returns:
        201: Movement created (pending)
        400: Invalid request
    """
    try:
        movement = movement_service.create_movement(read_json())
        commit_with_retry()
        return success(
            movement.to_dict(include_items=True),
            message="Mouvement de stock créé avec succès",
            status=201,
        )

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("create stock movement")


@movements_bp.get("")
@stock_scope(required=False)
def list_movements_route():
    try:
        raw_to = request.args.get("toStockId")
        rows, pagination = movement_service.list_movements(
            stock_id=g.stock_id,
            to_stock_id=resolve_stock_id(raw_to) if raw_to else None,
            movement_type=request.args.get("type"),
            status=request.args.get("status"),
            page=request.args.get("page", 1),
            limit=request.args.get("limit"),
        )
        return success(rows, pagination=pagination)

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("list stock movements")


@movements_bp.get("/<int:movement_id>")
def get_movement_route(movement_id: int):
    try:
        movement = movement_service.get_movement(movement_id)
        return success(movement.to_dict(include_items=True))

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("load stock movement")


@movements_bp.put("/<int:movement_id>")
def transition_movement_route(movement_id: int):
    """
    Confirm or claim a pending movement (receiving stock only).

    Returns:
        200: Movement confirmed / claimed
        400: Not pending, bad action, missing claim message
        403: Requesting stock is not the destination
        404: Movement not found
    """
    try:
        movement = movement_service.transition_movement(movement_id, read_json())
        commit_with_retry()

        if movement.status == movement_service.MOVEMENT_STATUS_CONFIRMED:
            message = "Mouvement confirmé avec succès"
        else:
            message = "Réclamation enregistrée avec succès"
        return success(movement.to_dict(include_items=True), message=message)

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("update stock movement")
