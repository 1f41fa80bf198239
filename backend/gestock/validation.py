# Overview: Shared error taxonomy and input coercion helpers used by services.

from __future__ import annotations

import re
from decimal import Decimal
from typing import Any, Iterable

from .money import parse_decimal, quantize


EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ServiceError(Exception):
    """
    Base for errors a route turns into a JSON envelope.

    `status` is the HTTP code; subclasses set a default and callers may
    override it per raise (e.g. a 404 from a service that usually 400s).
    """
    status = 400

    def __init__(self, message: str, *, status: int | None = None, details: dict | None = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        self.details = details or {}


class ValidationError(ServiceError, ValueError):
    """400-level input problem."""
    status = 400


class NotFoundError(ServiceError, LookupError):
    """404: referenced row does not exist."""
    status = 404


class ForbiddenError(ServiceError):
    """403: caller's stock may not act on this resource."""
    status = 403


class ConflictError(ServiceError, ValueError):
    """409-level business rule conflict (e.g., duplicate email, barcode in use)."""
    status = 409


def ensure_payload(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def require_fields(payload: dict, fields: Iterable[str]) -> None:
    """Missing means absent, None or an empty string."""
    missing = [
        f for f in fields
        if payload.get(f) is None or (isinstance(payload.get(f), str) and not payload.get(f).strip())
    ]
    if missing:
        raise ValidationError(f"Champs requis manquants: {', '.join(missing)}")


def coerce_int(value: Any, field: str, *, minimum: int | None = None) -> int:
    """
    Strict integer parsing: rejects booleans, fractional floats and
    scientific notation; accepts "12" and 12.0.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} must be an integer, not a decimal")
        result = int(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{field} must be an integer")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    return result


def optional_int(value: Any, field: str, *, minimum: int | None = None) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return coerce_int(value, field, minimum=minimum)


def coerce_money(
    value: Any,
    field: str,
    *,
    minimum: Decimal | int | None = 0,
    strictly_positive: bool = False,
) -> Decimal:
    amount = parse_decimal(value)
    if amount is None:
        raise ValidationError(f"{field} must be a number")
    if strictly_positive and amount <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    if minimum is not None and amount < Decimal(minimum):
        raise ValidationError(f"{field} must be >= {minimum}")
    return quantize(amount)


def optional_money(value: Any, field: str, **kwargs) -> Decimal | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return coerce_money(value, field, **kwargs)


def coerce_choice(value: Any, allowed: Iterable[str], default: str) -> str:
    """Allow-list with a silent default: unknown values fall back to `default`."""
    if isinstance(value, str) and value in allowed:
        return value
    return default


def strict_choice(value: Any, allowed: Iterable[str], field: str) -> str:
    allowed = tuple(allowed)
    if not isinstance(value, str) or value not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(allowed)}")
    return value


def clean_str(value: Any, *, max_len: int | None = None, field: str = "value") -> str | None:
    """Strip strings; empty becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if max_len is not None and len(text) > max_len:
        raise ValidationError(f"{field} exceeds {max_len} characters")
    return text


def validate_email(value: Any, *, required: bool = False) -> str | None:
    email = clean_str(value, max_len=255, field="email")
    if email is None:
        if required:
            raise ValidationError("Champs requis manquants: email")
        return None
    if not EMAIL_RE.match(email):
        raise ValidationError("Format d'email invalide")
    return email.lower()
