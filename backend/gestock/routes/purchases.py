# Overview: Flask API routes for achats (supplier purchases); parses input and returns JSON responses.

# backend/gestock/routes/purchases.py
"""
Purchase API routes.

- GET    /api/achats?stockId=&fournisseur_id=&search=
- POST   /api/achats            stock from body stock_id or ?stockId
- GET    /api/achats/<id>
- PUT    /api/achats/<id>
- DELETE /api/achats/<id>
"""

from flask import Blueprint, g, request

from ..decorators import stock_scope
from ..responses import internal_error, read_json, service_failure, success
from ..services import purchase_service
from ..services.concurrency import commit_with_retry
from ..validation import ServiceError, optional_int


achats_bp = Blueprint("achats", __name__, url_prefix="/api/achats")


@achats_bp.get("")
@stock_scope(required=False)
def list_achats_route():
    try:
        rows, pagination = purchase_service.list_achats(
            stock_id=g.stock_id,
            fournisseur_id=optional_int(request.args.get("fournisseur_id"), "fournisseur_id", minimum=1),
            search=request.args.get("search"),
            page=request.args.get("page", 1),
            limit=request.args.get("limit"),
        )
        return success(rows, pagination=pagination)

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("list achats")


@achats_bp.post("")
def create_achat_route():
    try:
        achat = purchase_service.create_achat(read_json(), stock_id=request.args.get("stockId"))
        commit_with_retry()
        return success(achat.to_dict(), message="Achat créé avec succès", status=201)

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("create achat")


@achats_bp.get("/<int:achat_id>")
def get_achat_route(achat_id: int):
    try:
        return success(purchase_service.get_achat(achat_id).to_dict())

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("load achat")


@achats_bp.put("/<int:achat_id>")
def update_achat_route(achat_id: int):
    try:
        achat = purchase_service.update_achat(achat_id, read_json())
        commit_with_retry()
        return success(achat.to_dict(), message="Achat mis à jour avec succès")

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("update achat")


@achats_bp.delete("/<int:achat_id>")
def delete_achat_route(achat_id: int):
    try:
        purchase_service.delete_achat(achat_id)
        commit_with_retry()
        return success(message="Achat supprimé avec succès")

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("delete achat")
