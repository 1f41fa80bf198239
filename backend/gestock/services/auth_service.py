# Overview: Service-layer operations for auth and user accounts; encapsulates business logic and database work.

"""
Authentication and User Service

WHY: Every sale, return and movement is attributed to a user, and each
user (except super_admin) works for exactly one stock.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Only bcrypt hashes authenticate; a stored value without the bcrypt prefix
  never matches. Legacy plain-text rows are converted once with
  migrate_plaintext_passwords() (flask users migrate-passwords)
- Inactive users cannot log in
- The password hash is never serialized
"""

from __future__ import annotations

import logging

import bcrypt
from flask import current_app, has_app_context
from sqlalchemy import func

from ..extensions import db
from ..models import ROLE_SUPER_ADMIN, ROLES, User
from ..time_utils import utcnow
from ..validation import ServiceError, clean_str, ensure_payload, require_fields, strict_choice, validate_email
from .stock_service import resolve_stock_id

logger = logging.getLogger(__name__)

BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")
MIN_PASSWORD_LENGTH = 6
DEFAULT_BCRYPT_ROUNDS = 12


class AuthError(ServiceError):
    """Login failure (401)."""
    status = 401


class UserError(ServiceError):
    """Raised for user administration errors."""
    pass


class PasswordValidationError(UserError):
    """Raised when password doesn't meet requirements."""
    pass


def validate_password_strength(password) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Le mot de passe doit contenir au moins {MIN_PASSWORD_LENGTH} caractères"
        )


def _rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", DEFAULT_BCRYPT_ROUNDS))
    return DEFAULT_BCRYPT_ROUNDS


def hash_password(password: str) -> str:
    """Hash password using bcrypt. Password is validated before hashing."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_rounds())
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def is_bcrypt_hash(value: str | None) -> bool:
    return bool(value) and value.startswith(BCRYPT_PREFIXES)


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Verify password against a bcrypt hash.

    Non-bcrypt stored values are rejected outright; there is no plain-text
    comparison path.
    """
    if not password or not is_bcrypt_hash(password_hash):
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed hash
        return False


# =============================================================================
# LOGIN
# =============================================================================

def authenticate(email, password) -> User:
    """
    Look up an active user by email and check the password.

    Raises:
        AuthError: 400 missing fields or non-string password, 401 unknown/inactive user or wrong password
    """
    email = clean_str(email)
    if not email or not password:
        raise AuthError("Email et mot de passe requis", status=400)
    if not isinstance(password, str):
        raise AuthError("Le mot de passe doit être une chaîne", status=400)

    user = (
        db.session.query(User)
        .filter(func.lower(User.email) == email.lower(), User.is_active.is_(True))
        .first()
    )
    if not user:
        raise AuthError("Utilisateur non trouvé ou inactif")

    if not verify_password(password, user.password_hash):
        if not is_bcrypt_hash(user.password_hash):
            logger.warning("User %s still has a non-bcrypt password; run users migrate-passwords", user.id)
        raise AuthError("Mot de passe incorrect")

    user.last_login_at = utcnow()
    db.session.flush()
    return user


def session_profile(user: User) -> dict:
    """What the client keeps after login."""
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "stock_id": user.stock_id,
        "stock_name": user.stock.name if user.stock else None,
    }


# =============================================================================
# USER ADMINISTRATION
# =============================================================================

def _check_unique(username: str, email: str, user_id: int | None = None) -> None:
    query = db.session.query(User).filter(
        (func.lower(User.username) == username.lower()) | (func.lower(User.email) == email.lower())
    )
    if user_id is not None:
        query = query.filter(User.id != user_id)
    clash = query.first()
    if clash:
        field = "email" if clash.email.lower() == email.lower() else "username"
        raise UserError(f"Un utilisateur avec ce {field} existe déjà", status=409)


def _resolve_user_stock(role: str, raw_stock) -> int | None:
    if role == ROLE_SUPER_ADMIN:
        return None
    if raw_stock is None or raw_stock == "":
        raise UserError("stock_id est requis sauf pour super_admin")
    return resolve_stock_id(raw_stock)


def create_user(
    *,
    username: str,
    email: str,
    password: str,
    role: str,
    stock_id=None,
) -> User:
    """
    Create a user with a bcrypt-hashed password.

    Raises:
        UserError: invalid fields (400) or duplicate username/email (409)
        PasswordValidationError: password too short
    """
    username = clean_str(username, max_len=64, field="username")
    if not username:
        raise UserError("Champs requis manquants: username")
    email = validate_email(email, required=True)
    role = strict_choice(role, ROLES, "role")
    resolved_stock = _resolve_user_stock(role, stock_id)
    _check_unique(username, email)

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
        stock_id=resolved_stock,
        is_active=True,
    )
    db.session.add(user)
    db.session.flush()
    logger.info("Created user %s (%s) with role %s", user.id, username, role)
    return user


def create_user_from_payload(payload: dict) -> User:
    payload = ensure_payload(payload)
    require_fields(payload, ["username", "email", "role", "password"])
    return create_user(
        username=payload["username"],
        email=payload["email"],
        password=payload["password"],
        role=payload["role"],
        stock_id=payload.get("stock_id"),
    )


def list_users(include_inactive: bool = False) -> list[User]:
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.username.asc()).all()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise UserError("Utilisateur non trouvé", status=404)
    return user


def update_user(user_id: int, payload: dict) -> User:
    """
    Replace username/email/role/stock; password only when supplied.
    """
    payload = ensure_payload(payload)
    user = get_user(user_id)
    require_fields(payload, ["username", "email", "role"])

    username = clean_str(payload["username"], max_len=64, field="username")
    email = validate_email(payload["email"], required=True)
    role = strict_choice(payload["role"], ROLES, "role")
    resolved_stock = _resolve_user_stock(role, payload.get("stock_id"))
    _check_unique(username, email, user.id)

    user.username = username
    user.email = email
    user.role = role
    user.stock_id = resolved_stock
    if payload.get("password"):
        user.password_hash = hash_password(payload["password"])
    if "is_active" in payload:
        user.is_active = bool(payload.get("is_active"))

    db.session.flush()
    return user


def deactivate_user(user_id: int) -> None:
    user = get_user(user_id)
    user.is_active = False
    db.session.flush()
    logger.info("Deactivated user %s", user_id)


def migrate_plaintext_passwords() -> int:
    """
    Hash every stored password that is not already a bcrypt hash.

    Uses the stored value as the plain password, bypassing the length rule
    so short legacy passwords keep working. Returns how many rows changed.
    Does not commit.
    """
    migrated = 0
    for user in db.session.query(User).order_by(User.id).all():
        if is_bcrypt_hash(user.password_hash) or not user.password_hash:
            continue
        salt = bcrypt.gensalt(rounds=_rounds())
        user.password_hash = bcrypt.hashpw(user.password_hash.encode("utf-8"), salt).decode("utf-8")
        migrated += 1
    db.session.flush()
    if migrated:
        logger.info("Migrated %s plain-text passwords to bcrypt", migrated)
    return migrated
