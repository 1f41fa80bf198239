# Overview: Flask API routes for user administration; parses input and returns JSON responses.

# backend/gestock/routes/users.py
"""
User administration routes.

- GET    /api/users                 active users (?include_inactive=true for all)
- POST   /api/users
- GET    /api/users/<id>
- PUT    /api/users/<id>            password optional
- DELETE /api/users/<id>            deactivates
"""

from flask import Blueprint, request

from ..responses import internal_error, read_json, service_failure, success
from ..services import auth_service
from ..services.concurrency import commit_with_retry
from ..validation import ServiceError


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
def list_users_route():
    try:
        include_inactive = request.args.get("include_inactive", "false").lower() == "true"
        users = auth_service.list_users(include_inactive=include_inactive)
        return success([u.to_dict() for u in users])

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("list users")


@users_bp.post("")
def create_user_route():
    """
    Request body:
    {
        "username": "amina",
        "email": "amina@example.com",
        "password": "secret1",
        "role": "caissier",
        "stock_id": "renaissance"  (omit for super_admin)
    }
    """
    try:
        user = auth_service.create_user_from_payload(read_json())
        commit_with_retry()
        return success(user.to_dict(), message="Utilisateur créé avec succès", status=201)

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("create user")


@users_bp.get("/<int:user_id>")
def get_user_route(user_id: int):
    try:
        return success(auth_service.get_user(user_id).to_dict())

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("load user")


@users_bp.put("/<int:user_id>")
def update_user_route(user_id: int):
    try:
        user = auth_service.update_user(user_id, read_json())
        commit_with_retry()
        return success(user.to_dict(), message="Utilisateur mis à jour avec succès")

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("update user")


@users_bp.delete("/<int:user_id>")
def delete_user_route(user_id: int):
    try:
        auth_service.deactivate_user(user_id)
        commit_with_retry()
        return success(message="Utilisateur désactivé avec succès")

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("deactivate user")
