# Overview: Flask API routes for invoices and stored invoice files; parses input and returns JSON responses.

# backend/gestock/routes/invoices.py
"""
Invoice API routes.

- GET    /api/invoices?stockId=&type=&status=
- POST   /api/invoices
- GET    /api/invoices/<id>
- PUT    /api/invoices/<id>
- DELETE /api/invoices/<id>
- POST   /api/invoices/store                upload the rendered PDF of a sale
- GET    /api/invoices/download?sale_id=    fetch it back as an attachment
"""

import io

from flask import Blueprint, g, request, send_file

from ..decorators import stock_scope
from ..responses import internal_error, read_json, service_failure, success
from ..services import invoice_service
from ..services.concurrency import commit_with_retry
from ..validation import ServiceError


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
@stock_scope(required=False)
def list_invoices_route():
    try:
        rows, pagination = invoice_service.list_invoices(
            stock_id=g.stock_id,
            invoice_type=request.args.get("type"),
            status=request.args.get("status"),
            page=request.args.get("page", 1),
            limit=request.args.get("limit"),
        )
        return success(rows, pagination=pagination)

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("list invoices")


@invoices_bp.post("")
def create_invoice_route():
    try:
        invoice = invoice_service.create_invoice(read_json(), stock_id=request.args.get("stockId"))
        commit_with_retry()
        return success(invoice.to_dict(), message="Facture créée avec succès", status=201)

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("create invoice")


@invoices_bp.post("/store")
def store_invoice_file_route():
    """
    Request body: {"sale_id": 12, "filename": "facture-12.pdf", "pdf_base64": "..."}

    A "data:application/pdf;base64," prefix is accepted. Storing again for
    the same sale replaces the file.
    """
    try:
        stored, created = invoice_service.store_invoice_file(read_json())
        commit_with_retry()
        return success(
            stored.to_dict(),
            message="Facture enregistrée" if created else "Facture remplacée",
            status=201 if created else 200,
        )

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("store invoice file")


@invoices_bp.get("/download")
def download_invoice_file_route():
    try:
        stored = invoice_service.get_invoice_file(request.args.get("sale_id"))
        return send_file(
            io.BytesIO(stored.data),
            mimetype=stored.content_type,
            as_attachment=True,
            download_name=stored.filename,
        )

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("download invoice file")


@invoices_bp.get("/<int:invoice_id>")
def get_invoice_route(invoice_id: int):
    try:
        return success(invoice_service.get_invoice(invoice_id).to_dict())

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("load invoice")


@invoices_bp.put("/<int:invoice_id>")
def update_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.update_invoice(invoice_id, read_json())
        commit_with_retry()
        return success(invoice.to_dict(), message="Facture mise à jour avec succès")

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("update invoice")


@invoices_bp.delete("/<int:invoice_id>")
def delete_invoice_route(invoice_id: int):
    try:
        invoice_service.delete_invoice(invoice_id)
        commit_with_retry()
        return success(message="Facture supprimée avec succès")

    except ServiceError as e:
        return service_failure(e)
    except Exception:
        return internal_error("delete invoice")
