# Overview: Flask API routes for returns operations; parses input and returns JSON responses.

# backend/gestock/routes/returns.py
"""
Return / Exchange API Routes

- POST   /api/returns/create-from-sale
- GET    /api/returns
- GET    /api/returns/<id>
- PUT    /api/returns/<id>      status (pending -> completed|cancelled), notes
- DELETE /api/returns/<id>      pending only; reverses stock effects
"""

from flask import Blueprint, g, request

from ..decorators import stock_scope
from ..money import to_number
from ..responses import internal_error, read_json, service_failure, success
from ..services import return_service
from ..services.concurrency import commit_with_retry
from ..validation import ServiceError


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("/create-from-sale")
def create_from_sale_route():
    """
    Create a return/exchange against an original sale.

    Request body:
    {
        "original_sale_id": 12,
        "stock_id": "renaissance",
        "return_type": "return",  (return | exchange | refund)
        "user_id": 1,
        "return_items": [{"product_id": 5, "quantity": 2, "unit_price": 10}],
        "exchange_items": [{"product_id": 7, "quantity": 1, "unit_price": 25}],
        "client_id": 4, "payment_method": "cash", "notes": "..."  (optional)
    }

    Returns:
        201: Return created (status pending, stock adjusted)
        400: Invalid input or totals mismatch
        404: Sale not found for this stock
        409: Exchange would drive a quantity negative
    """
    try:
        result = return_service.create_from_sale(read_json())
        commit_with_retry()

        txn = result["return"]
        data = return_service.return_detail(txn)
        data["refund_total"] = to_number(result["refund_total"])
        data["exchange_total"] = to_number(result["exchange_total"])
        data["balance_adjustment"] = to_number(result["balance_adjustment"])
        return success(data, message="Retour créé avec succès", status=201)

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("create return")


@returns_bp.get("")
@stock_scope(required=False)
def list_returns_route():
    try:
        rows, pagination = return_service.list_returns(
            stock_id=g.stock_id,
            status=request.args.get("status"),
            search=request.args.get("search"),
            page=request.args.get("page", 1),
            limit=request.args.get("limit"),
        )
        return success(rows, pagination=pagination)

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("list returns")


@returns_bp.get("/<int:return_id>")
def get_return_route(return_id: int):
    try:
        txn = return_service.get_return(return_id)
        return success(return_service.return_detail(txn))

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("load return")


@returns_bp.put("/<int:return_id>")
def update_return_route(return_id: int):
    """Request body: {"status": "completed", "notes": "..."}"""
    try:
        txn = return_service.update_return(return_id, read_json())
        commit_with_retry()
        return success(return_service.return_detail(txn), message="Retour mis à jour avec succès")

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("update return")


@returns_bp.delete("/<int:return_id>")
def delete_return_route(return_id: int):
    try:
        return_service.delete_return(return_id)
        commit_with_retry()
        return success(message="Retour supprimé avec succès")

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("delete return")
