# Overview: Service-layer operations for supplier purchases (achats).

from __future__ import annotations

import logging

from sqlalchemy import or_

from ..extensions import db
from ..models import Achat, Fournisseur, User
from ..pagination import paginate
from ..time_utils import parse_iso_date
from ..validation import (
    ServiceError,
    clean_str,
    coerce_choice,
    coerce_int,
    coerce_money,
    ensure_payload,
    optional_int,
    require_fields,
)
from .stock_service import resolve_stock_id

logger = logging.getLogger(__name__)


class PurchaseError(ServiceError):
    """Raised for purchase errors."""
    pass


PAYMENT_METHODS = ("cash", "card", "check", "credit")
PAYMENT_STATUSES = ("pending", "partial", "paid")


def _active_fournisseur(fournisseur_id: int) -> Fournisseur:
    fournisseur = db.session.get(Fournisseur, fournisseur_id)
    if not fournisseur or not fournisseur.is_active:
        raise PurchaseError(f"Fournisseur {fournisseur_id} introuvable")
    return fournisseur


def _delivery_date(value):
    try:
        return parse_iso_date(value)
    except ValueError:
        raise PurchaseError("delivery_date must be an ISO date (YYYY-MM-DD)")


def list_achats(
    *,
    stock_id: int | None = None,
    fournisseur_id: int | None = None,
    search: str | None = None,
    page=1,
    limit=None,
) -> tuple[list[dict], dict]:
    query = db.session.query(Achat).join(Fournisseur, Achat.fournisseur_id == Fournisseur.id)
    if stock_id is not None:
        query = query.filter(Achat.stock_id == stock_id)
    if fournisseur_id is not None:
        query = query.filter(Achat.fournisseur_id == fournisseur_id)

    search = clean_str(search)
    if search:
        term = f"%{search}%"
        query = query.filter(or_(
            Achat.reference.ilike(term),
            Achat.notes.ilike(term),
            Fournisseur.name.ilike(term),
        ))

    query = query.order_by(Achat.created_at.desc(), Achat.id.desc())
    rows, pagination = paginate(query, page, limit)
    return [a.to_dict() for a in rows], pagination


def get_achat(achat_id: int) -> Achat:
    achat = db.session.get(Achat, achat_id)
    if not achat:
        raise PurchaseError("Achat non trouvé", status=404)
    return achat


def create_achat(payload: dict, *, stock_id=None) -> Achat:
    """stock_id (slug or id) from the query string is used when the body has none."""
    payload = ensure_payload(payload)
    require_fields(payload, ["fournisseur_id", "total"])
    raw_stock = payload.get("stock_id") if payload.get("stock_id") is not None else stock_id
    if raw_stock is None:
        raise PurchaseError("Champs requis manquants: stock_id")

    fournisseur = _active_fournisseur(coerce_int(payload["fournisseur_id"], "fournisseur_id", minimum=1))
    user_id = optional_int(payload.get("user_id"), "user_id", minimum=1)
    if user_id is not None and db.session.get(User, user_id) is None:
        raise PurchaseError(f"Utilisateur {user_id} introuvable")

    achat = Achat(
        fournisseur_id=fournisseur.id,
        stock_id=resolve_stock_id(raw_stock),
        user_id=user_id,
        reference=clean_str(payload.get("reference"), max_len=128, field="reference"),
        total=coerce_money(payload["total"], "total", strictly_positive=True),
        payment_method=coerce_choice(payload.get("payment_method"), PAYMENT_METHODS, "cash"),
        payment_status=coerce_choice(payload.get("payment_status"), PAYMENT_STATUSES, "pending"),
        delivery_date=_delivery_date(payload.get("delivery_date")),
        notes=clean_str(payload.get("notes")),
    )
    db.session.add(achat)
    db.session.flush()
    logger.info("Recorded achat %s from fournisseur %s", achat.id, fournisseur.id)
    return achat


def update_achat(achat_id: int, payload: dict) -> Achat:
    payload = ensure_payload(payload)
    achat = get_achat(achat_id)

    if "fournisseur_id" in payload:
        achat.fournisseur_id = _active_fournisseur(
            coerce_int(payload.get("fournisseur_id"), "fournisseur_id", minimum=1)
        ).id
    if "reference" in payload:
        achat.reference = clean_str(payload.get("reference"), max_len=128, field="reference")
    if "total" in payload:
        achat.total = coerce_money(payload.get("total"), "total", strictly_positive=True)
    if "payment_method" in payload:
        achat.payment_method = coerce_choice(payload.get("payment_method"), PAYMENT_METHODS, achat.payment_method)
    if "payment_status" in payload:
        achat.payment_status = coerce_choice(payload.get("payment_status"), PAYMENT_STATUSES, achat.payment_status)
    if "delivery_date" in payload:
        achat.delivery_date = _delivery_date(payload.get("delivery_date"))
    if "notes" in payload:
        achat.notes = clean_str(payload.get("notes"))

    db.session.flush()
    return achat


def delete_achat(achat_id: int) -> None:
    achat = get_achat(achat_id)
    db.session.delete(achat)
    db.session.flush()
    logger.info("Deleted achat %s", achat_id)
