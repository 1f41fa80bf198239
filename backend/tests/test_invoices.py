# Overview: Pytest coverage for invoices and stored invoice PDFs.

import base64

import pytest

from gestock.models import Achat, InvoiceFile
from gestock.time_utils import utcnow


PDF_BYTES = b"%PDF-1.4\n% facture de test\n"


@pytest.fixture
def achat(db_session, depot_fournisseur):
    purchase = Achat(fournisseur_id=depot_fournisseur.id, stock_id=3, total=800, reference="BL-77")
    db_session.add(purchase)
    db_session.commit()
    return purchase


class TestInvoices:
    def test_sale_invoice_defaults(self, client, db_session, sale):
        response = client.post("/api/invoices", json={"reference_id": sale.id, "invoice_type": "sale"})

        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["invoice_number"] == f"INV-{sale.id:06d}-{utcnow().year}"
        assert data["customer_name"] == "Ecole Ibn Sina"
        assert data["stock_id"] == 2
        assert data["total_amount"] == 36.0
        assert data["status"] == "draft"
        assert data["issue_date"] == utcnow().date().isoformat()

    def test_invoice_number_is_unique(self, client, db_session, sale):
        client.post("/api/invoices", json={"reference_id": sale.id, "invoice_type": "sale"})

        response = client.post("/api/invoices", json={"reference_id": sale.id, "invoice_type": "sale"})

        assert response.status_code == 409

    def test_supplied_invoice_number(self, client, db_session, sale):
        response = client.post(
            "/api/invoices",
            json={"reference_id": sale.id, "invoice_type": "sale", "invoice_number": "FAC-REN-0001"},
        )
        assert response.get_json()["data"]["invoice_number"] == "FAC-REN-0001"

    def test_purchase_invoice_carries_supplier(self, client, db_session, achat):
        response = client.post("/api/invoices", json={"reference_id": achat.id, "invoice_type": "purchase"})

        data = response.get_json()["data"]
        assert response.status_code == 201
        assert data["supplier_name"] == "Papeterie du Nord"
        assert data["customer_name"] is None
        assert data["total_amount"] == 800.0

    def test_referenced_document_must_exist(self, client, db_session):
        response = client.post("/api/invoices", json={"reference_id": 9999, "invoice_type": "sale"})
        assert response.status_code == 400

    def test_unknown_type(self, client, db_session, sale):
        response = client.post("/api/invoices", json={"reference_id": sale.id, "invoice_type": "avoir"})
        assert response.status_code == 400

    def test_amounts_must_add_up(self, client, db_session, sale):
        response = client.post("/api/invoices", json={
            "reference_id": sale.id, "invoice_type": "sale",
            "subtotal": 30, "tax_amount": 6, "total_amount": 40,
        })
        assert response.status_code == 400

    def test_tax_is_added(self, client, db_session, sale):
        response = client.post("/api/invoices", json={
            "reference_id": sale.id, "invoice_type": "sale", "subtotal": 30, "tax_amount": 6,
        })
        assert response.get_json()["data"]["total_amount"] == 36.0

    def test_list_and_update(self, client, db_session, sale, achat):
        client.post("/api/invoices", json={"reference_id": sale.id, "invoice_type": "sale"})
        created = client.post("/api/invoices", json={"reference_id": achat.id, "invoice_type": "purchase"}).get_json()

        purchases = client.get("/api/invoices?type=purchase").get_json()
        assert [i["id"] for i in purchases["data"]] == [created["data"]["id"]]
        assert client.get("/api/invoices?stockId=renaissance").get_json()["pagination"]["total"] == 1

        updated = client.put(f"/api/invoices/{created['data']['id']}", json={"status": "paid"})
        assert updated.get_json()["data"]["status"] == "paid"
        bad = client.put(f"/api/invoices/{created['data']['id']}", json={"status": "archived"})
        assert bad.status_code == 400

    def test_delete(self, client, db_session, sale):
        created = client.post("/api/invoices", json={"reference_id": sale.id, "invoice_type": "sale"}).get_json()
        invoice_id = created["data"]["id"]

        assert client.delete(f"/api/invoices/{invoice_id}").status_code == 200
        assert client.get(f"/api/invoices/{invoice_id}").status_code == 404


class TestInvoiceFiles:
    def _store(self, client, sale, payload=PDF_BYTES, **extra):
        body = {"sale_id": sale.id, "filename": f"facture-{sale.id}.pdf", "pdf_base64": base64.b64encode(payload).decode()}
        body.update(extra)
        return client.post("/api/invoices/store", json=body)

    def test_store_and_download(self, client, db_session, sale):
        stored = self._store(client, sale)
        assert stored.status_code == 201
        assert stored.get_json()["data"]["size"] == len(PDF_BYTES)

        response = client.get(f"/api/invoices/download?sale_id={sale.id}")

        assert response.status_code == 200
        assert response.data == PDF_BYTES
        assert response.mimetype == "application/pdf"
        assert "attachment" in response.headers["Content-Disposition"]
        assert f"facture-{sale.id}.pdf" in response.headers["Content-Disposition"]

    def test_store_replaces(self, client, db_session, sale):
        self._store(client, sale)

        replaced = self._store(client, sale, payload=b"%PDF-1.7 v2")

        assert replaced.status_code == 200
        assert db_session.query(InvoiceFile).count() == 1
        assert client.get(f"/api/invoices/download?sale_id={sale.id}").data == b"%PDF-1.7 v2"

    def test_data_url_prefix(self, client, db_session, sale):
        encoded = "data:application/pdf;base64," + base64.b64encode(PDF_BYTES).decode()

        response = client.post("/api/invoices/store", json={"sale_id": sale.id, "pdf_base64": encoded})

        assert response.status_code == 201
        assert response.get_json()["data"]["filename"] == f"facture-{sale.id}.pdf"

    def test_invalid_base64(self, client, db_session, sale):
        response = client.post("/api/invoices/store", json={"sale_id": sale.id, "pdf_base64": "%%%"})
        assert response.status_code == 400

    def test_store_for_missing_sale(self, client, db_session):
        response = client.post("/api/invoices/store", json={"sale_id": 9999, "pdf_base64": "AAAA"})
        assert response.status_code == 404

    def test_download_errors(self, client, db_session, sale):
        assert client.get("/api/invoices/download").status_code == 400
        assert client.get("/api/invoices/download?sale_id=9999").status_code == 404
        assert client.get(f"/api/invoices/download?sale_id={sale.id}").status_code == 404

    def test_deleting_sale_removes_file(self, client, db_session, sale):
        self._store(client, sale)

        assert client.delete(f"/api/sales/{sale.id}").status_code == 200
        db_session.expire_all()
        assert db_session.query(InvoiceFile).count() == 0
