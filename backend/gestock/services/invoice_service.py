# Overview: Service-layer operations for invoices and stored invoice files.

"""
Invoice Service

Invoices describe a sale (issued to a client) or a purchase (received from
a fournisseur); reference_id points at the sale or achat. The numbering
scheme is INV-<6-digit reference id>-<year> unless the caller supplies a
number.

Stored files are the PDFs the till uploads after printing; one per sale,
re-uploading replaces the bytes.
"""

from __future__ import annotations

import base64
import binascii
import logging
from decimal import Decimal

from ..extensions import db
from ..models import Achat, Client, Fournisseur, Invoice, InvoiceFile, Sale
from ..money import matches, to_number
from ..pagination import paginate
from ..time_utils import parse_iso_date, utcnow
from ..validation import (
    ServiceError,
    clean_str,
    coerce_choice,
    coerce_int,
    ensure_payload,
    optional_int,
    optional_money,
    require_fields,
    strict_choice,
)
from .stock_service import resolve_stock_id

logger = logging.getLogger(__name__)


class InvoiceError(ServiceError):
    """Raised for invoice errors."""
    pass


INVOICE_TYPES = ("sale", "purchase")
INVOICE_STATUSES = ("draft", "sent", "paid", "cancelled")
DEFAULT_CONTENT_TYPE = "application/pdf"


def invoice_number_for(reference_id: int, year: int) -> str:
    return f"INV-{reference_id:06d}-{year}"


def _date(value, field: str):
    try:
        return parse_iso_date(value)
    except ValueError:
        raise InvoiceError(f"{field} must be an ISO date (YYYY-MM-DD)")


def _check_number_free(number: str, invoice_id: int | None = None) -> None:
    query = db.session.query(Invoice.id).filter(Invoice.invoice_number == number)
    if invoice_id is not None:
        query = query.filter(Invoice.id != invoice_id)
    if query.first():
        raise InvoiceError(f"Numéro de facture {number} déjà utilisé", status=409)


def _apply_amounts(invoice: Invoice, payload: dict) -> None:
    subtotal = optional_money(payload.get("subtotal"), "subtotal")
    tax_amount = optional_money(payload.get("tax_amount"), "tax_amount")
    total_amount = optional_money(payload.get("total_amount"), "total_amount")

    if subtotal is not None:
        invoice.subtotal = subtotal
    if tax_amount is not None:
        invoice.tax_amount = tax_amount

    computed = Decimal(invoice.subtotal or 0) + Decimal(invoice.tax_amount or 0)
    if total_amount is None:
        if subtotal is not None or tax_amount is not None:
            invoice.total_amount = computed
        return
    if subtotal is not None and tax_amount is not None and not matches(computed, total_amount):
        raise InvoiceError(
            "total_amount doit être égal à subtotal + tax_amount",
            details={"expected": to_number(computed)},
        )
    invoice.total_amount = total_amount


def _check_party(model, party_id: int | None) -> None:
    if party_id is not None and db.session.get(model, party_id) is None:
        raise InvoiceError(f"{model.__name__} {party_id} introuvable")


# =============================================================================
# QUERIES
# =============================================================================

def list_invoices(
    *,
    stock_id: int | None = None,
    invoice_type: str | None = None,
    status: str | None = None,
    page=1,
    limit=None,
) -> tuple[list[dict], dict]:
    query = db.session.query(Invoice)
    if stock_id is not None:
        query = query.filter(Invoice.stock_id == stock_id)
    if invoice_type in INVOICE_TYPES:
        query = query.filter(Invoice.invoice_type == invoice_type)
    if status in INVOICE_STATUSES:
        query = query.filter(Invoice.status == status)

    query = query.order_by(Invoice.issue_date.desc(), Invoice.id.desc())
    rows, pagination = paginate(query, page, limit)
    return [i.to_dict() for i in rows], pagination


def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise InvoiceError("Facture non trouvée", status=404)
    return invoice


# =============================================================================
# MUTATIONS
# =============================================================================

def create_invoice(payload: dict, *, stock_id=None) -> Invoice:
    """
    Create an invoice for an existing sale or achat.

    Customer/supplier and stock default from the referenced document.
    """
    payload = ensure_payload(payload)
    require_fields(payload, ["reference_id", "invoice_type"])
    reference_id = coerce_int(payload["reference_id"], "reference_id", minimum=1)
    invoice_type = strict_choice(payload["invoice_type"], INVOICE_TYPES, "invoice_type")

    document = db.session.get(Sale if invoice_type == "sale" else Achat, reference_id)
    if document is None:
        raise InvoiceError(f"Document {invoice_type} {reference_id} introuvable")

    customer_id = optional_int(payload.get("customer_id"), "customer_id", minimum=1)
    supplier_id = optional_int(payload.get("supplier_id"), "supplier_id", minimum=1)
    if invoice_type == "sale" and customer_id is None:
        customer_id = document.client_id
    if invoice_type == "purchase" and supplier_id is None:
        supplier_id = document.fournisseur_id
    _check_party(Client, customer_id)
    _check_party(Fournisseur, supplier_id)

    raw_stock = payload.get("stock_id") if payload.get("stock_id") is not None else stock_id
    resolved_stock = resolve_stock_id(raw_stock) if raw_stock is not None else document.stock_id

    issue_date = _date(payload.get("issue_date"), "issue_date") or utcnow().date()
    number = clean_str(payload.get("invoice_number"), max_len=64, field="invoice_number")
    number = number or invoice_number_for(reference_id, issue_date.year)
    _check_number_free(number)

    invoice = Invoice(
        invoice_number=number,
        invoice_type=invoice_type,
        reference_id=reference_id,
        stock_id=resolved_stock,
        customer_id=customer_id,
        supplier_id=supplier_id,
        subtotal=Decimal("0.00"),
        tax_amount=Decimal("0.00"),
        total_amount=Decimal(document.total),
        status=coerce_choice(payload.get("status"), INVOICE_STATUSES, "draft"),
        issue_date=issue_date,
        due_date=_date(payload.get("due_date"), "due_date"),
        notes=clean_str(payload.get("notes")),
    )
    if payload.get("subtotal") is None and payload.get("total_amount") is None:
        invoice.subtotal = Decimal(document.total)
    _apply_amounts(invoice, payload)

    db.session.add(invoice)
    db.session.flush()
    logger.info("Created invoice %s for %s %s", invoice.invoice_number, invoice_type, reference_id)
    return invoice


def update_invoice(invoice_id: int, payload: dict) -> Invoice:
    payload = ensure_payload(payload)
    invoice = get_invoice(invoice_id)

    if "status" in payload:
        invoice.status = strict_choice(payload.get("status"), INVOICE_STATUSES, "status")
    if "issue_date" in payload:
        invoice.issue_date = _date(payload.get("issue_date"), "issue_date") or invoice.issue_date
    if "due_date" in payload:
        invoice.due_date = _date(payload.get("due_date"), "due_date")
    if "notes" in payload:
        invoice.notes = clean_str(payload.get("notes"))
    if "invoice_number" in payload:
        number = clean_str(payload.get("invoice_number"), max_len=64, field="invoice_number")
        if not number:
            raise InvoiceError("invoice_number cannot be empty")
        _check_number_free(number, invoice.id)
        invoice.invoice_number = number
    if "customer_id" in payload:
        invoice.customer_id = optional_int(payload.get("customer_id"), "customer_id", minimum=1)
        _check_party(Client, invoice.customer_id)
    if "supplier_id" in payload:
        invoice.supplier_id = optional_int(payload.get("supplier_id"), "supplier_id", minimum=1)
        _check_party(Fournisseur, invoice.supplier_id)
    _apply_amounts(invoice, payload)

    db.session.flush()
    return invoice


def delete_invoice(invoice_id: int) -> None:
    invoice = get_invoice(invoice_id)
    db.session.delete(invoice)
    db.session.flush()
    logger.info("Deleted invoice %s", invoice_id)


# =============================================================================
# STORED FILES
# =============================================================================

def store_invoice_file(payload: dict) -> tuple[InvoiceFile, bool]:
    """
    Upsert the uploaded document for a sale.

    Returns:
        (invoice_file, created) where created is False on replacement
    """
    payload = ensure_payload(payload)
    require_fields(payload, ["sale_id", "pdf_base64"])
    sale_id = coerce_int(payload["sale_id"], "sale_id", minimum=1)
    if db.session.get(Sale, sale_id) is None:
        raise InvoiceError("Vente non trouvée", status=404)

    encoded = str(payload["pdf_base64"]).strip()
    if encoded.startswith("data:") and "," in encoded:
        # data:application/pdf;base64,....
        encoded = encoded.split(",", 1)[1]
    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise InvoiceError("pdf_base64 invalide")
    if not data:
        raise InvoiceError("Fichier vide")

    filename = clean_str(payload.get("filename"), max_len=255, field="filename") or f"facture-{sale_id}.pdf"
    content_type = clean_str(payload.get("content_type"), max_len=128, field="content_type") or DEFAULT_CONTENT_TYPE

    stored = db.session.query(InvoiceFile).filter_by(sale_id=sale_id).first()
    created = stored is None
    if created:
        stored = InvoiceFile(sale_id=sale_id)
        db.session.add(stored)
    stored.filename = filename
    stored.content_type = content_type
    stored.data = data
    db.session.flush()
    logger.info("%s invoice file for sale %s (%s bytes)", "Stored" if created else "Replaced", sale_id, len(data))
    return stored, created


def get_invoice_file(sale_id) -> InvoiceFile:
    if sale_id is None or (isinstance(sale_id, str) and not sale_id.strip()):
        raise InvoiceError("sale_id requis")
    sale_id = coerce_int(sale_id, "sale_id", minimum=1)
    if db.session.get(Sale, sale_id) is None:
        raise InvoiceError("Vente non trouvée", status=404)
    stored = db.session.query(InvoiceFile).filter_by(sale_id=sale_id).first()
    if stored is None:
        raise InvoiceError("Aucune facture enregistrée pour cette vente", status=404)
    return stored
