# Overview: Flask API routes for clients and fournisseurs; parses input and returns JSON responses.

# backend/gestock/routes/parties.py
"""
Client and fournisseur API routes (same shape, separate blueprints).

- GET    /api/clients?stockId=...&search=...
- POST   /api/clients
- GET    /api/clients/<id>
- PUT    /api/clients/<id>
- DELETE /api/clients/<id>     soft delete
(and the same under /api/fournisseurs)
"""

from flask import Blueprint, g, request

from ..decorators import stock_scope
from ..models import Client, Fournisseur
from ..responses import internal_error, read_json, service_failure, success
from ..services import party_service
from ..services.concurrency import commit_with_retry
from ..validation import ServiceError


clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")
fournisseurs_bp = Blueprint("fournisseurs", __name__, url_prefix="/api/fournisseurs")


def _register(bp: Blueprint, model, label: str) -> None:
    noun = label.lower()

    @bp.get("")
    @stock_scope(required=True)
    def list_route():
        try:
            rows, pagination = party_service.list_parties(
                model,
                stock_id=g.stock_id,
                search=request.args.get("search"),
                page=request.args.get("page", 1),
                limit=request.args.get("limit"),
            )
            return success(rows, pagination=pagination)

        except ServiceError as e:
            return service_failure(e)
        except Exception:
            return internal_error(f"list {noun}s")

    @bp.post("")
    def create_route():
        try:
            party = party_service.create_party(model, read_json(), stock_id=request.args.get("stockId"))
            commit_with_retry()
            return success(party.to_dict(), message=f"{label} créé avec succès", status=201)

        except ServiceError as e:
            return service_failure(e)
        except Exception:
            return internal_error(f"create {noun}")

    @bp.get("/<int:party_id>")
    def get_route(party_id: int):
        try:
            return success(party_service.get_party(model, party_id).to_dict())

        except ServiceError as e:
            return service_failure(e)
        except Exception:
            return internal_error(f"load {noun}")

    @bp.put("/<int:party_id>")
    def update_route(party_id: int):
        try:
            party = party_service.update_party(model, party_id, read_json())
            commit_with_retry()
            return success(party.to_dict(), message=f"{label} mis à jour avec succès")

        except ServiceError as e:
            return service_failure(e)
        except Exception:
            return internal_error(f"update {noun}")

    @bp.delete("/<int:party_id>")
    def delete_route(party_id: int):
        try:
            party_service.deactivate_party(model, party_id)
            commit_with_retry()
            return success(message=f"{label} supprimé avec succès")

        except ServiceError as e:
            return service_failure(e)
        except Exception:
            return internal_error(f"delete {noun}")


_register(clients_bp, Client, "Client")
_register(fournisseurs_bp, Fournisseur, "Fournisseur")
