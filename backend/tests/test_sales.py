# Overview: Pytest coverage for sale recording, lookup, barcodes and deletion.

"""
Sales Tests

Covers:
- Creation: required fields, total vs items check, allow-listed fields
- Barcode: generated from date + id; manual override rules
- Listing / search / detail shapes
- Deletion: atomic, refused while returns reference the sale
- Optional stock debit (SALE_DECREMENTS_STOCK)
"""

from datetime import date

import pytest

from gestock.barcodes import generate_sale_barcode, is_sale_barcode, parse_sale_barcode
from gestock.models import Product, Sale, SaleItem
from gestock.services.stock_service import resolve_stock_id
from gestock.time_utils import utcnow

RENAISSANCE = resolve_stock_id("renaissance")


def _payload(cashier, product, **overrides):
    payload = {
        "user_id": cashier.id,
        "stock_id": RENAISSANCE,
        "items": [{"product_id": product.id, "quantity": 2, "unit_price": 12}],
        "total": 24,
        "payment_method": "cash",
        "payment_status": "paid",
    }
    payload.update(overrides)
    return payload


class TestSaleBarcodes:
    def test_generate(self):
        assert generate_sale_barcode(42, date(2024, 3, 5)) == "20240305000042"

    def test_parse_round_trip(self):
        assert parse_sale_barcode("20240305000042") == (date(2024, 3, 5), 42)

    @pytest.mark.parametrize("code", ["2024030500004", "19990305000042", "20241305000042", "abc", ""])
    def test_rejects_malformed(self, code):
        assert not is_sale_barcode(code)

    def test_impossible_calendar_day(self):
        assert parse_sale_barcode("20240231000001") is None

    def test_ids_past_six_digits_keep_every_digit(self):
        code = generate_sale_barcode(1000000, date(2024, 1, 1))

        assert code == "202401011000000"
        assert parse_sale_barcode(code) == (date(2024, 1, 1), 1000000)


class TestCreateSale:
    def test_create_sale(self, client, db_session, cashier, shelf_product):
        response = client.post("/api/sales", json=_payload(cashier, shelf_product))

        assert response.status_code == 201
        body = response.get_json()
        assert body["success"] is True
        assert body["message"] == "Vente créée avec succès"

        data = body["data"]
        assert data["sale_id"] == data["id"]
        assert data["total"] == 24.0
        assert data["customer_name"] == "Client anonyme"
        assert len(data["items"]) == 1
        assert data["items"][0]["total_price"] == 24.0
        assert data["barcode"] == f"{utcnow():%Y%m%d}{data['id']:06d}"

    def test_create_after_six_digit_ids(self, client, db_session, cashier, shelf_product):
        db_session.add(Sale(id=999999, stock_id=RENAISSANCE, total=0))
        db_session.commit()

        response = client.post("/api/sales", json=_payload(cashier, shelf_product))

        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["id"] > 999999
        assert data["barcode"] == f"{utcnow():%Y%m%d}{data['id']}"

        found = client.get(f"/api/sales/search?q={data['barcode']}&type=barcode").get_json()["data"]
        assert [s["id"] for s in found] == [data["id"]]

    def test_stock_from_query_slug(self, client, db_session, cashier, shelf_product):
        payload = _payload(cashier, shelf_product)
        del payload["stock_id"]

        response = client.post("/api/sales?stockId=renaissance", json=payload)

        assert response.status_code == 201
        assert response.get_json()["data"]["stock_id"] == RENAISSANCE

    def test_missing_stock(self, client, db_session, cashier, shelf_product):
        payload = _payload(cashier, shelf_product)
        del payload["stock_id"]

        response = client.post("/api/sales", json=payload)

        assert response.status_code == 400
        assert "stock_id" in response.get_json()["error"]

    def test_missing_user(self, client, db_session, shelf_product, cashier):
        payload = _payload(cashier, shelf_product)
        del payload["user_id"]

        response = client.post("/api/sales", json=payload)

        assert response.status_code == 400
        assert db_session.query(Sale).count() == 0

    def test_total_must_match_items(self, client, db_session, cashier, shelf_product):
        response = client.post("/api/sales", json=_payload(cashier, shelf_product, total=30))

        assert response.status_code == 400
        body = response.get_json()
        assert body["details"]["expected_total"] == 24.0
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0

    def test_total_within_tolerance(self, client, db_session, cashier, shelf_product):
        response = client.post("/api/sales", json=_payload(cashier, shelf_product, total=24.01))
        assert response.status_code == 201

    def test_discount_is_subtracted(self, client, db_session, cashier, shelf_product):
        payload = _payload(
            cashier, shelf_product,
            total=20, global_discount_type="amount", global_discount_amount=4,
        )

        response = client.post("/api/sales", json=payload)

        assert response.status_code == 201
        assert response.get_json()["data"]["global_discount_amount"] == 4.0

    def test_unknown_product(self, client, db_session, cashier, shelf_product):
        payload = _payload(cashier, shelf_product)
        payload["items"][0]["product_id"] = 9999

        response = client.post("/api/sales", json=payload)

        assert response.status_code == 400

    def test_non_positive_quantity(self, client, db_session, cashier, shelf_product):
        payload = _payload(cashier, shelf_product, total=0)
        payload["items"][0]["quantity"] = 0

        response = client.post("/api/sales", json=payload)

        assert response.status_code == 400

    def test_unknown_enum_values_fall_back_to_defaults(self, client, db_session, cashier, shelf_product):
        payload = _payload(cashier, shelf_product, payment_method="bitcoin", payment_status="whatever", source="web")

        response = client.post("/api/sales", json=payload)

        data = response.get_json()["data"]
        assert data["payment_method"] == "cash"
        assert data["payment_status"] == "pending"
        assert data["source"] == "pos"

    def test_sale_does_not_debit_stock_by_default(self, client, db_session, cashier, shelf_product):
        client.post("/api/sales", json=_payload(cashier, shelf_product))

        db_session.expire_all()
        assert db_session.get(Product, shelf_product.id).quantity == 10

    def test_sale_debits_stock_when_enabled(self, app, client, db_session, cashier, shelf_product):
        app.config["SALE_DECREMENTS_STOCK"] = True
        try:
            ok = client.post("/api/sales", json=_payload(cashier, shelf_product))
            too_many = client.post("/api/sales", json=_payload(
                cashier, shelf_product, total=132,
                items=[{"product_id": shelf_product.id, "quantity": 11, "unit_price": 12}],
            ))
        finally:
            app.config["SALE_DECREMENTS_STOCK"] = False

        assert ok.status_code == 201
        assert too_many.status_code == 409
        db_session.expire_all()
        assert db_session.get(Product, shelf_product.id).quantity == 8

    def test_invalid_json(self, client, db_session):
        response = client.post("/api/sales", data="{not json", content_type="application/json")
        assert response.status_code == 400
        assert response.get_json()["success"] is False


class TestReadSales:
    def test_detail(self, client, db_session, sale, renaissance_client):
        response = client.get(f"/api/sales/{sale.id}")

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["customer_name"] == renaissance_client.name
        assert data["client"]["id"] == renaissance_client.id
        assert data["total_quantity"] == 3
        assert data["user_name"] == "caissier_ren"

    def test_detail_not_found(self, client, db_session):
        response = client.get("/api/sales/9999")
        assert response.status_code == 404
        assert response.get_json()["error"] == "Vente non trouvée"

    def test_list_is_scoped_and_paginated(self, client, db_session, sale):
        response = client.get("/api/sales?stockId=renaissance&page=1&limit=10")
        body = response.get_json()
        assert body["pagination"] == {"page": 1, "limit": 10, "total": 1, "totalPages": 1}
        assert body["data"][0]["id"] == sale.id

        other = client.get("/api/sales?stockId=gros").get_json()
        assert other["data"] == []
        assert other["pagination"]["total"] == 0

    def test_search_by_barcode(self, client, db_session, sale):
        response = client.get(f"/api/sales/search?q={sale.barcode}&type=barcode")

        body = response.get_json()
        assert response.status_code == 200
        assert body["count"] == 1
        assert body["data"][0]["id"] == sale.id

    def test_search_by_client_name(self, client, db_session, sale):
        response = client.get("/api/sales/search?q=ibn&type=client&stockId=renaissance")
        assert [s["id"] for s in response.get_json()["data"]] == [sale.id]

    def test_search_requires_query(self, client, db_session):
        response = client.get("/api/sales/search")
        assert response.status_code == 400


class TestUpdateAndDeleteSale:
    def test_update_payment_fields(self, client, db_session, sale):
        response = client.put(f"/api/sales/{sale.id}", json={"payment_status": "partial", "notes": "reste 10"})

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["payment_status"] == "partial"
        assert data["notes"] == "reste 10"
        assert data["total"] == 36.0

    def test_delete_removes_items(self, client, db_session, sale):
        sale_id = sale.id
        response = client.delete(f"/api/sales/{sale_id}")

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.query(Sale).filter_by(id=sale_id).count() == 0
        assert db_session.query(SaleItem).filter_by(sale_id=sale_id).count() == 0

    def test_delete_refused_with_returns(self, client, db_session, sale, cashier, shelf_product):
        created = client.post("/api/returns/create-from-sale", json={
            "original_sale_id": sale.id,
            "stock_id": "renaissance",
            "return_type": "return",
            "user_id": cashier.id,
            "return_items": [{"product_id": shelf_product.id, "quantity": 1, "unit_price": 12}],
        })
        assert created.status_code == 201

        response = client.delete(f"/api/sales/{sale.id}")

        assert response.status_code == 409
        db_session.expire_all()
        assert db_session.get(Sale, sale.id) is not None

    def test_delete_missing(self, client, db_session):
        assert client.delete("/api/sales/9999").status_code == 404


class TestManualBarcode:
    def test_get_barcode(self, client, db_session, sale):
        data = client.get(f"/api/sales/{sale.id}/barcode").get_json()["data"]
        assert data == {"saleId": sale.id, "barcode": sale.barcode}

    def test_set_barcode(self, client, db_session, sale):
        response = client.put(f"/api/sales/{sale.id}/barcode", json={"barcode": "123456789"})
        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.get(Sale, sale.id).barcode == "123456789"

    @pytest.mark.parametrize("code", ["12345", "12AB5678", "1" * 21])
    def test_set_barcode_rejects_bad_format(self, client, db_session, sale, code):
        response = client.put(f"/api/sales/{sale.id}/barcode", json={"barcode": code})
        assert response.status_code == 400

    def test_set_barcode_conflict(self, client, db_session, sale, cashier, shelf_product):
        other = client.post("/api/sales", json=_payload(cashier, shelf_product)).get_json()["data"]

        response = client.put(f"/api/sales/{other['id']}/barcode", json={"barcode": sale.barcode})

        assert response.status_code == 409

    def test_set_barcode_missing_sale(self, client, db_session):
        response = client.put("/api/sales/9999/barcode", json={"barcode": "123456"})
        assert response.status_code == 404
