# Overview: Flask API routes for login; parses input and returns JSON responses.

# backend/gestock/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- bcrypt-only password check
- Login throttling to prevent brute-force attacks (5 failures / 15 minutes)
- No session tokens: the client keeps the returned profile
"""

from flask import Blueprint

from ..responses import failure, internal_error, read_json, service_failure, success
from ..services import auth_service
from ..services import login_throttle_service
from ..services.auth_service import AuthError
from ..services.concurrency import commit_with_retry
from ..validation import ServiceError


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
# Older clients post to /auth/login without the /api prefix.
legacy_auth_bp = Blueprint("legacy_auth", __name__, url_prefix="/auth")


def login_route():
    """
    Request body: {"email": "...", "password": "..."}

    Returns the session profile {id, username, email, role, stock_id, stock_name}.

    SECURITY:
    - Checks for lockout before attempting authentication
    - Only wrong credentials (401) count as failed attempts
    - A successful login clears the failure history for that email
    """
    try:
        data = read_json()
        email = data.get("email")
        password = data.get("password")

        identifier = email if isinstance(email, str) else ""
        if identifier:
            is_locked, seconds_remaining = login_throttle_service.is_account_locked(identifier)
            if is_locked:
                response, status = failure(
                    "Trop de tentatives de connexion. Réessayez plus tard.",
                    429,
                    retry_after_seconds=seconds_remaining,
                )
                response.headers["Retry-After"] = str(seconds_remaining)
                return response, status

        try:
            user = auth_service.authenticate(email, password)
        except AuthError as e:
            if e.status == 401 and identifier:
                login_throttle_service.record_failed_attempt(identifier)
            raise

        login_throttle_service.record_successful_login(identifier)
        profile = auth_service.session_profile(user)
        commit_with_retry()
        return success(profile, message="Connexion réussie")

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("login user")


auth_bp.add_url_rule("/login", "login", login_route, methods=["POST"])
legacy_auth_bp.add_url_rule("/login", "login", login_route, methods=["POST"])
