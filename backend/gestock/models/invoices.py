# Overview: Invoice metadata and stored invoice files.

from __future__ import annotations

from ..extensions import db
from ..money import to_number
from ..time_utils import to_iso_date, to_utc_z


class Invoice(db.Model):
    """
    Invoice issued for a sale (customer) or received for a purchase (supplier).

    reference_id points at the sale or achat depending on invoice_type.
    invoice_number is assigned after insert: INV-<6-digit id>-<year>.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_invoices_number"),
        db.Index("ix_invoices_stock_type", "stock_id", "invoice_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(64), nullable=True)
    # sale, purchase
    invoice_type = db.Column(db.String(16), nullable=False, default="sale")
    reference_id = db.Column(db.Integer, nullable=False)
    stock_id = db.Column(db.Integer, db.ForeignKey("stocks.id"), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("fournisseurs.id"), nullable=True)

    subtotal = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    # draft, sent, paid, cancelled
    status = db.Column(db.String(16), nullable=False, default="draft")
    issue_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    customer = db.relationship("Client", foreign_keys=[customer_id])
    supplier = db.relationship("Fournisseur", foreign_keys=[supplier_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "invoice_type": self.invoice_type,
            "reference_id": self.reference_id,
            "stock_id": self.stock_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "subtotal": to_number(self.subtotal),
            "tax_amount": to_number(self.tax_amount),
            "total_amount": to_number(self.total_amount),
            "status": self.status,
            "issue_date": to_iso_date(self.issue_date),
            "due_date": to_iso_date(self.due_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InvoiceFile(db.Model):
    """Uploaded invoice document for a sale; at most one per sale (upsert)."""
    __tablename__ = "invoice_files"
    __table_args__ = (
        db.UniqueConstraint("sale_id", name="uq_invoice_files_sale"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False)
    filename = db.Column(db.String(255), nullable=False)
    content_type = db.Column(db.String(128), nullable=False, default="application/pdf")
    # MySQL sizes the BLOB type from the length (16 MiB)
    data = db.Column(db.LargeBinary(length=16 * 1024 * 1024), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "filename": self.filename,
            "content_type": self.content_type,
            "size": len(self.data) if self.data is not None else 0,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
