# Overview: Pytest coverage for returns and exchanges against an original sale.

"""
Return / Exchange Tests

Stock effects at the transaction's stock:
- returned goods come back (+quantity)
- exchange replacement goods leave (-quantity), as do legacy exchange_out lines
Cancelling or deleting a pending return applies the exact opposite.
"""

import pytest

from gestock.models import Product, ReturnItem, ReturnTransaction
from gestock.services.inventory_service import InsufficientStockError
from gestock.services.return_service import _apply_item


def _return_payload(sale, cashier, product, **overrides):
    payload = {
        "original_sale_id": sale.id,
        "stock_id": "renaissance",
        "return_type": "return",
        "user_id": cashier.id,
        "return_items": [{"product_id": product.id, "quantity": 1, "unit_price": 12}],
    }
    payload.update(overrides)
    return payload


def _quantity(db_session, product):
    db_session.expire_all()
    return db_session.get(Product, product.id).quantity


class TestCreateReturn:
    def test_return_restocks_product(self, client, db_session, sale, cashier, shelf_product):
        response = client.post("/api/returns/create-from-sale", json=_return_payload(sale, cashier, shelf_product))

        assert response.status_code == 201
        body = response.get_json()
        assert body["message"] == "Retour créé avec succès"
        data = body["data"]
        assert data["status"] == "pending"
        assert data["refund_total"] == 12.0
        assert data["exchange_total"] == 0.0
        assert data["balance_adjustment"] == -12.0
        assert data["client_id"] == sale.client_id
        assert _quantity(db_session, shelf_product) == 11

    def test_exchange_moves_both_ways(self, client, db_session, sale, cashier, shelf_product):
        payload = _return_payload(
            sale, cashier, shelf_product,
            return_type="exchange",
            exchange_items=[{"product_id": shelf_product.id, "quantity": 2, "unit_price": 12}],
        )

        response = client.post("/api/returns/create-from-sale", json=payload)

        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["balance_adjustment"] == 12.0
        actions = sorted(item["action_type"] for item in data["items"])
        assert actions == ["exchange_in", "return"]
        assert _quantity(db_session, shelf_product) == 9

    def test_exchange_cannot_go_negative(self, client, db_session, sale, cashier, shelf_product):
        payload = _return_payload(
            sale, cashier, shelf_product,
            return_type="exchange",
            return_items=[],
            exchange_items=[{"product_id": shelf_product.id, "quantity": 20, "unit_price": 12}],
        )

        response = client.post("/api/returns/create-from-sale", json=payload)

        assert response.status_code == 409
        assert db_session.query(ReturnTransaction).count() == 0
        assert _quantity(db_session, shelf_product) == 10

    def test_global_products_are_not_adjusted(self, client, db_session, sale, cashier, global_product):
        payload = _return_payload(
            sale, cashier, global_product,
            return_items=[{"product_id": global_product.id, "quantity": 2, "unit_price": 5}],
        )

        response = client.post("/api/returns/create-from-sale", json=payload)

        assert response.status_code == 201
        assert _quantity(db_session, global_product) == 999999

    def test_sale_of_another_stock(self, client, db_session, sale, cashier, shelf_product):
        payload = _return_payload(sale, cashier, shelf_product, stock_id="gros")

        response = client.post("/api/returns/create-from-sale", json=payload)

        assert response.status_code == 404
        assert response.get_json()["error"] == "Vente non trouvée"

    def test_user_is_required(self, client, db_session, sale, cashier, shelf_product):
        payload = _return_payload(sale, cashier, shelf_product)
        del payload["user_id"]

        response = client.post("/api/returns/create-from-sale", json=payload)

        assert response.status_code == 400

    def test_unusable_lines_are_skipped(self, client, db_session, sale, cashier, shelf_product):
        payload = _return_payload(
            sale, cashier, shelf_product,
            return_items=[
                {"product_id": shelf_product.id, "quantity": 0, "unit_price": 12},
                {"product_id": shelf_product.id, "quantity": 1, "unit_price": 0},
                {"quantity": 1, "unit_price": 12},
            ],
        )

        response = client.post("/api/returns/create-from-sale", json=payload)

        assert response.status_code == 400
        assert db_session.query(ReturnTransaction).count() == 0

    def test_quantity_returned_alias(self, client, db_session, sale, cashier, shelf_product):
        payload = _return_payload(
            sale, cashier, shelf_product,
            return_items=[{"product_id": shelf_product.id, "quantity_returned": 2, "unit_price": 12}],
        )

        response = client.post("/api/returns/create-from-sale", json=payload)

        assert response.status_code == 201
        assert response.get_json()["data"]["refund_total"] == 24.0

    def test_supplied_total_must_match(self, client, db_session, sale, cashier, shelf_product):
        payload = _return_payload(sale, cashier, shelf_product, total_refund_amount=50)

        response = client.post("/api/returns/create-from-sale", json=payload)

        assert response.status_code == 400
        assert _quantity(db_session, shelf_product) == 10

    def test_supplied_total_within_tolerance(self, client, db_session, sale, cashier, shelf_product):
        payload = _return_payload(sale, cashier, shelf_product, total_refund_amount=12.005)

        response = client.post("/api/returns/create-from-sale", json=payload)

        assert response.status_code == 201

    def test_unknown_return_type(self, client, db_session, sale, cashier, shelf_product):
        payload = _return_payload(sale, cashier, shelf_product, return_type="gift")
        assert client.post("/api/returns/create-from-sale", json=payload).status_code == 400


class TestReturnLifecycle:
    @pytest.fixture
    def pending_return(self, client, db_session, sale, cashier, shelf_product):
        response = client.post("/api/returns/create-from-sale", json=_return_payload(sale, cashier, shelf_product))
        assert response.status_code == 201
        return response.get_json()["data"]

    def test_detail(self, client, db_session, pending_return, sale):
        response = client.get(f"/api/returns/{pending_return['id']}")

        data = response.get_json()["data"]
        assert data["original_sale_id"] == sale.id
        assert data["original_sale_total"] == 36.0
        assert data["items_count"] == 1
        assert data["user_name"] == "caissier_ren"

    def test_list_filters(self, client, db_session, pending_return):
        pending = client.get("/api/returns?stockId=renaissance&status=pending").get_json()
        completed = client.get("/api/returns?stockId=renaissance&status=completed").get_json()

        assert [r["id"] for r in pending["data"]] == [pending_return["id"]]
        assert completed["data"] == []

    def test_complete(self, client, db_session, pending_return, shelf_product):
        response = client.put(f"/api/returns/{pending_return['id']}", json={"status": "completed"})

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["status"] == "completed"
        assert data["processed_at"] is not None
        assert _quantity(db_session, shelf_product) == 11

    def test_completed_is_final(self, client, db_session, pending_return):
        client.put(f"/api/returns/{pending_return['id']}", json={"status": "completed"})

        response = client.put(f"/api/returns/{pending_return['id']}", json={"status": "cancelled"})

        assert response.status_code == 400

    def test_cancel_reverses_stock(self, client, db_session, pending_return, shelf_product):
        response = client.put(f"/api/returns/{pending_return['id']}", json={"status": "cancelled"})

        assert response.status_code == 200
        assert _quantity(db_session, shelf_product) == 10

    def test_delete_pending_reverses_stock(self, client, db_session, pending_return, shelf_product):
        response = client.delete(f"/api/returns/{pending_return['id']}")

        assert response.status_code == 200
        assert _quantity(db_session, shelf_product) == 10
        assert db_session.query(ReturnTransaction).count() == 0
        assert db_session.query(ReturnItem).count() == 0

    def test_delete_completed_is_refused(self, client, db_session, pending_return):
        client.put(f"/api/returns/{pending_return['id']}", json={"status": "completed"})

        response = client.delete(f"/api/returns/{pending_return['id']}")

        assert response.status_code == 400
        assert response.get_json()["error"] == "Only pending returns can be deleted"

    def test_missing_return(self, client, db_session):
        assert client.get("/api/returns/9999").status_code == 404
        assert client.delete("/api/returns/9999").status_code == 404


class TestStockEffects:
    def _line(self, product, action_type, quantity):
        return ReturnItem(product_id=product.id, action_type=action_type, quantity=quantity,
                          unit_price=12, total_price=12 * quantity)

    @pytest.mark.parametrize("action_type, after", [("return", 13), ("exchange_in", 7), ("exchange_out", 7)])
    def test_apply_and_reverse(self, db_session, shelf_product, action_type, after):
        line = self._line(shelf_product, action_type, 3)

        _apply_item(line, shelf_product.stock_id)
        db_session.commit()
        assert _quantity(db_session, shelf_product) == after

        _apply_item(line, shelf_product.stock_id, reverse=True)
        db_session.commit()
        assert _quantity(db_session, shelf_product) == 10

    def test_exchange_out_cannot_go_negative(self, db_session, shelf_product):
        line = self._line(shelf_product, "exchange_out", 11)

        with pytest.raises(InsufficientStockError):
            _apply_item(line, shelf_product.stock_id)
        db_session.rollback()

        assert _quantity(db_session, shelf_product) == 10
