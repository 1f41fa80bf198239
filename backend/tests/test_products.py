# Overview: Pytest coverage for the product catalog and duplicate consolidation.

"""
Product Catalog Tests

Covers:
- Stock scope: a stock sees its own products plus global ones
- Idempotent creation (reuse by reference, then by normalized name)
- Barcode uniqueness and lookup
- Delete refused for referenced products
- Duplicate plan and per-group cleanup (sale lines, barcodes, quantity)
"""

import pytest

from gestock.models import Barcode, Product, SaleItem
from gestock.services import duplicate_service


class TestListProducts:
    def test_stock_sees_own_and_global(self, client, db_session, shelf_product, depot_product, global_product):
        response = client.get("/api/products?stockId=renaissance")

        assert response.status_code == 200
        body = response.get_json()
        ids = {p["id"] for p in body["data"]}
        assert ids == {shelf_product.id, global_product.id}
        assert body["stockInfo"]["slug"] == "renaissance"
        assert body["pagination"]["total"] == 2

    def test_search(self, client, db_session, shelf_product, global_product):
        response = client.get("/api/products?stockId=renaissance&search=cahier")
        assert [p["id"] for p in response.get_json()["data"]] == [shelf_product.id]

    def test_inactive_hidden(self, client, db_session, shelf_product):
        shelf_product.is_active = False
        db_session.commit()

        response = client.get("/api/products?stockId=renaissance")

        assert response.get_json()["data"] == []


class TestCreateProduct:
    def test_global_product_gets_unlimited_quantity(self, client, db_session):
        response = client.post("/api/products", json={"name": "Gomme", "price": 1.5, "quantity": 3})

        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["stock_id"] is None
        assert data["is_global"] is True
        assert data["quantity"] == 999999

    def test_stock_scoped_product_keeps_quantity(self, client, db_session):
        response = client.post(
            "/api/products",
            json={"name": "Agenda 2026", "price": 40, "quantity": 7, "stock_id": "al-ouloum", "barcodes": ["6111000000017"]},
        )

        data = response.get_json()["data"]
        assert response.status_code == 201
        assert data["stock_id"] == 1
        assert data["quantity"] == 7
        assert data["barcodes"] == ["6111000000017"]

    def test_reuses_by_reference(self, client, db_session, shelf_product):
        response = client.post(
            "/api/products",
            json={"name": "Autre nom", "reference": "CAH-96", "price": 12, "quantity": 1},
        )

        assert response.status_code == 200
        body = response.get_json()
        assert body["reused"] is True
        assert body["data"]["id"] == shelf_product.id
        assert db_session.query(Product).count() == 1

    def test_reuses_by_normalized_name(self, client, db_session, shelf_product):
        response = client.post("/api/products", json={"name": "  CAHIER 96 pages ", "price": 12, "quantity": 1})

        assert response.status_code == 200
        assert response.get_json()["data"]["id"] == shelf_product.id

    def test_required_fields(self, client, db_session):
        response = client.post("/api/products", json={"name": "Sans prix"})
        assert response.status_code == 400

    def test_negative_price(self, client, db_session):
        response = client.post("/api/products", json={"name": "X", "price": -1, "quantity": 0})
        assert response.status_code == 400


class TestProductLookupAndUpdate:
    def test_search_by_barcode(self, client, db_session, shelf_product):
        shelf_product.barcodes.append(Barcode(code="6111234567890"))
        db_session.commit()

        response = client.get("/api/products/search?barcode=6111234567890")

        assert response.status_code == 200
        assert response.get_json()["data"]["id"] == shelf_product.id

    def test_search_by_reference(self, client, db_session, shelf_product):
        response = client.get("/api/products/search?reference=CAH-96")
        assert response.get_json()["data"]["id"] == shelf_product.id

    def test_search_not_found(self, client, db_session):
        assert client.get("/api/products/search?barcode=000000").status_code == 404
        assert client.get("/api/products/search").status_code == 400

    def test_update_replaces_barcodes(self, client, db_session, shelf_product):
        shelf_product.barcodes.append(Barcode(code="111111"))
        db_session.commit()

        response = client.put(
            f"/api/products/{shelf_product.id}",
            json={"price": 13.5, "barcodes": ["222222", "333333"]},
        )

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["price"] == 13.5
        assert sorted(data["barcodes"]) == ["222222", "333333"]

    def test_update_barcode_taken(self, client, db_session, shelf_product, depot_product):
        depot_product.barcodes.append(Barcode(code="444444"))
        db_session.commit()

        response = client.put(f"/api/products/{shelf_product.id}", json={"barcodes": ["444444"]})

        assert response.status_code == 409

    def test_get_missing(self, client, db_session):
        assert client.get("/api/products/9999").status_code == 404


class TestDeleteProduct:
    def test_delete_unreferenced(self, client, db_session, depot_product):
        product_id = depot_product.id

        response = client.delete(f"/api/products/{product_id}")

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.query(Product).filter_by(id=product_id).count() == 0

    def test_delete_sold_product_is_refused(self, client, db_session, sale, shelf_product):
        response = client.delete(f"/api/products/{shelf_product.id}")

        assert response.status_code == 409
        assert db_session.query(Product).filter_by(id=shelf_product.id).count() == 1


class TestDuplicateProducts:
    @pytest.fixture
    def duplicates(self, db_session, sale, shelf_product):
        """
        Three rows named "Cahier 96 pages": the sold one at La Renaissance,
        an unsold copy in the same stock and a global one with a barcode.
        """
        same_stock = Product(name="cahier 96 PAGES ", price=12, quantity=4, stock_id=2)
        global_copy = Product(name="Cahier 96 pages", price=12, quantity=999999, stock_id=None)
        global_copy.barcodes.append(Barcode(code="6110000000001"))
        db_session.add_all([same_stock, global_copy])
        db_session.commit()
        return shelf_product, same_stock, global_copy

    def test_plan_keeps_most_sold(self, client, db_session, duplicates):
        kept, same_stock, global_copy = duplicates

        response = client.get("/api/products/duplicates")

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["totalGroups"] == 1
        assert data["totalToDelete"] == 2
        group = data["groups"][0]
        assert group["keepId"] == kept.id
        assert sorted(group["deleteIds"]) == sorted([same_stock.id, global_copy.id])
        assert group["totalSales"] == 1
        assert group["totalRevenue"] == 36.0

    def test_dry_run_changes_nothing(self, client, db_session, duplicates):
        response = client.post("/api/products/duplicates", json={})

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["dryRun"] is True
        assert data["productsDeleted"] == 2
        db_session.expire_all()
        assert db_session.query(Product).count() == 3

    def test_cleanup_consolidates(self, client, db_session, duplicates):
        kept, same_stock, global_copy = duplicates
        kept_id = kept.id

        response = client.post("/api/products/duplicates", json={"dryRun": False})

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["dryRun"] is False
        assert data["groupsProcessed"] == 1
        assert data["productsDeleted"] == 2
        assert data["errors"] == []

        db_session.expire_all()
        survivor = db_session.query(Product).one()
        assert survivor.id == kept_id
        assert survivor.quantity == 14
        assert [b.code for b in survivor.barcodes] == ["6110000000001"]
        assert {item.product_id for item in db_session.query(SaleItem).all()} == {kept_id}

    def test_explicit_plan_with_bad_group(self, client, db_session, duplicates, depot_product):
        kept, same_stock, global_copy = duplicates
        plan = [
            {"keepId": kept.id, "deleteIds": [same_stock.id]},
            {"keepId": kept.id, "deleteIds": [depot_product.id]},
        ]

        response = client.post("/api/products/duplicates", json={"cleanupPlan": plan, "dryRun": False})

        data = response.get_json()["data"]
        assert data["groupsProcessed"] == 1
        assert len(data["errors"]) == 1
        db_session.expire_all()
        assert db_session.query(Product).filter_by(id=depot_product.id).count() == 1
        assert db_session.query(Product).filter_by(id=same_stock.id).count() == 0

    def test_keep_id_cannot_be_deleted(self, db_session, duplicates):
        kept, same_stock, _ = duplicates
        with pytest.raises(duplicate_service.DuplicateCleanupError):
            duplicate_service.cleanup_duplicates([{"keepId": kept.id, "deleteIds": [kept.id]}], dry_run=False)
