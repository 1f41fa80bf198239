# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/gestock/routes/sales.py
"""
Sales API Routes

- POST   /api/sales                 record a sale with its items
- GET    /api/sales                 paginated list (stockId, source, search, barcode)
- GET    /api/sales/search          cashier lookup by barcode / client
- GET    /api/sales/<id>            sale with client and items
- PUT    /api/sales/<id>            payment fields, notes, client
- DELETE /api/sales/<id>
- GET    /api/sales/<id>/barcode
- PUT    /api/sales/<id>/barcode
"""

from flask import Blueprint, g, request

from ..decorators import stock_scope
from ..responses import internal_error, read_json, service_failure, success
from ..services import sales_service
from ..services.concurrency import commit_with_retry
from ..validation import ServiceError


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def create_sale_route():
    """
    Record a sale.

    Request body:
    {
        "user_id": 1,
        "stock_id": 2,  (or ?stockId=renaissance)
        "client_id": 4,  (optional)
        "items": [{"product_id": 5, "quantity": 2, "unit_price": 10}],
        "total": 20,
        "amount_paid": 20, "change_amount": 0,  (optional)
        "payment_method": "cash", "payment_status": "paid",  (optional)
        "source": "pos", "notes": "..."  (optional)
    }

    Returns:
        201: Sale recorded
        400: Invalid input or total mismatch
    """
    try:
        sale = sales_service.create_sale(read_json(), stock_id=request.args.get("stockId"))
        commit_with_retry()

        data = sales_service.sale_detail(sale)
        data["sale_id"] = sale.id
        return success(data, message="Vente créée avec succès", status=201)

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("create sale")


@sales_bp.get("")
@stock_scope(required=False)
def list_sales_route():
    try:
        rows, pagination = sales_service.list_sales(
            stock_id=g.stock_id,
            source=request.args.get("source"),
            search=request.args.get("search"),
            barcode=request.args.get("barcode"),
            page=request.args.get("page", 1),
            limit=request.args.get("limit"),
        )
        return success(rows, pagination=pagination)

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("list sales")


@sales_bp.get("/search")
@stock_scope(required=False)
def search_sales_route():
    """?q=...&type=barcode|client|all&limit=50"""
    try:
        rows = sales_service.search_sales(
            request.args.get("q"),
            request.args.get("type", "all"),
            stock_id=g.stock_id,
            limit=request.args.get("limit", sales_service.SEARCH_LIMIT),
        )
        return success(rows, count=len(rows))

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("search sales")


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return success(sales_service.sale_detail(sale))

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("load sale")


@sales_bp.put("/<int:sale_id>")
def update_sale_route(sale_id: int):
    try:
        sale = sales_service.update_sale(sale_id, read_json())
        commit_with_retry()
        return success(sales_service.sale_detail(sale), message="Vente mise à jour avec succès")

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("update sale")


@sales_bp.delete("/<int:sale_id>")
def delete_sale_route(sale_id: int):
    try:
        sales_service.delete_sale(sale_id)
        commit_with_retry()
        return success(message="Vente supprimée avec succès")

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("delete sale")


@sales_bp.get("/<int:sale_id>/barcode")
def get_sale_barcode_route(sale_id: int):
    try:
        return success(sales_service.get_barcode(sale_id))

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("load sale barcode")


@sales_bp.put("/<int:sale_id>/barcode")
def set_sale_barcode_route(sale_id: int):
    """Request body: {"barcode": "20240115000042"} (digits only, 6-20 characters)"""
    try:
        sale = sales_service.set_barcode(sale_id, read_json().get("barcode"))
        commit_with_retry()
        return success(
            {"saleId": sale.id, "barcode": sale.barcode},
            message="Code-barres mis à jour avec succès",
        )

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("update sale barcode")
