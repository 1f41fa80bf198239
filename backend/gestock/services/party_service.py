# Overview: Service-layer operations for clients and fournisseurs (shared CRUD, soft delete).

from __future__ import annotations

import logging

from sqlalchemy import or_

from ..extensions import db
from ..models import Client, DEFAULT_PAYMENT_TERMS, Fournisseur
from ..pagination import paginate
from ..validation import ServiceError, clean_str, ensure_payload, require_fields, validate_email
from .stock_service import resolve_stock_id

logger = logging.getLogger(__name__)


class PartyError(ServiceError):
    """Raised for client/fournisseur errors."""
    pass


_LABELS = {
    Client: "Client",
    Fournisseur: "Fournisseur",
}


def _searchable(model) -> list:
    columns = [model.name, model.email, model.phone]
    if model is Fournisseur:
        columns.append(Fournisseur.contact_person)
    return columns


def _not_found(model) -> PartyError:
    return PartyError(f"{_LABELS[model]} non trouvé", status=404)


def _apply_fields(party, payload: dict, *, partial: bool) -> None:
    if not partial or "name" in payload:
        name = clean_str(payload.get("name"), max_len=255, field="name")
        if not name:
            raise PartyError("Champs requis manquants: name")
        party.name = name
    if "email" in payload:
        party.email = validate_email(payload.get("email"))
    if "phone" in payload:
        party.phone = clean_str(payload.get("phone"), max_len=64, field="phone")
    if "address" in payload:
        party.address = clean_str(payload.get("address"))
    if "payment_terms" in payload or not partial:
        party.payment_terms = (
            clean_str(payload.get("payment_terms"), max_len=64, field="payment_terms")
            or DEFAULT_PAYMENT_TERMS
        )
    if isinstance(party, Fournisseur) and "contact_person" in payload:
        party.contact_person = clean_str(payload.get("contact_person"), max_len=255, field="contact_person")


def list_parties(model, *, stock_id: int, search: str | None = None, page=1, limit=None) -> tuple[list[dict], dict]:
    query = db.session.query(model).filter(model.stock_id == stock_id, model.is_active.is_(True))

    search = clean_str(search)
    if search:
        term = f"%{search}%"
        query = query.filter(or_(*[col.ilike(term) for col in _searchable(model)]))

    query = query.order_by(model.name.asc(), model.id.asc())
    rows, pagination = paginate(query, page, limit)
    return [r.to_dict() for r in rows], pagination


def get_party(model, party_id: int):
    party = db.session.get(model, party_id)
    if not party or not party.is_active:
        raise _not_found(model)
    return party


def create_party(model, payload: dict, *, stock_id=None):
    payload = ensure_payload(payload)
    require_fields(payload, ["name"])
    raw_stock = payload.get("stock_id") if payload.get("stock_id") is not None else stock_id
    if raw_stock is None:
        raise PartyError("Champs requis manquants: stock_id")
    party = model(stock_id=resolve_stock_id(raw_stock), is_active=True)
    _apply_fields(party, payload, partial=False)
    db.session.add(party)
    db.session.flush()
    logger.info("Created %s %s at stock %s", _LABELS[model].lower(), party.id, party.stock_id)
    return party


def update_party(model, party_id: int, payload: dict):
    payload = ensure_payload(payload)
    party = get_party(model, party_id)
    _apply_fields(party, payload, partial=True)
    db.session.flush()
    return party


def deactivate_party(model, party_id: int) -> None:
    """Soft delete: rows stay for the sales and purchases that reference them."""
    party = get_party(model, party_id)
    party.is_active = False
    db.session.flush()
    logger.info("Deactivated %s %s", _LABELS[model].lower(), party_id)
