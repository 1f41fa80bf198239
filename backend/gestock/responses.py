# Overview: JSON envelope helpers shared by every blueprint.

"""
Every API response is {success, data?, error?, message?, pagination?}.
Routes build success/failure bodies here so the envelope stays uniform.
"""

from __future__ import annotations

from flask import current_app, jsonify, request

from .extensions import db
from .validation import ServiceError, ValidationError


def success(data=None, *, message: str | None = None, pagination: dict | None = None, status: int = 200, **extra):
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    if pagination is not None:
        body["pagination"] = pagination
    body.update(extra)
    return jsonify(body), status


def failure(error: str, status: int = 400, **extra):
    body = {"success": False, "error": error}
    body.update({k: v for k, v in extra.items() if v is not None})
    return jsonify(body), status


def service_failure(exc: ServiceError):
    """Roll back and map a typed service error to its envelope and status."""
    db.session.rollback()
    return failure(exc.message, exc.status, details=exc.details or None)


def internal_error(action: str):
    """Roll back, log the traceback, and answer a generic 500 (no driver text leaks)."""
    db.session.rollback()
    current_app.logger.exception("Failed to %s", action)
    return failure("Internal server error", 500)


def read_json() -> dict:
    """
    Request body as a dict. An empty body is {}; malformed JSON or a
    non-object body is a ValidationError.
    """
    if not request.get_data(cache=True):
        return {}
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload
