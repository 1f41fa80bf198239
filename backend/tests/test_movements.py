# Overview: Pytest coverage for inter-stock movements (create, confirm, claim).

"""
Stock Movement Tests

Covers:
- Creation leaves every quantity untouched
- Only the receiving stock may confirm or claim (403 otherwise)
- Confirm is one-shot: a second confirm never double-applies quantities
- Destination matching: same row, then name + reference, then a new copy
"""

import pytest

from gestock.models import Product, StockMovement


def _movement_payload(user, product, quantity=5, **overrides):
    payload = {
        "from_stock_id": "gros",
        "to_stock_id": "renaissance",
        "user_id": user.id,
        "recipient_name": "Karim",
        "items": [{"product_id": product.id, "quantity": quantity, "unit_price": 2.5}],
    }
    payload.update(overrides)
    return payload


def _create(client, payload):
    response = client.post("/api/stock-movements", json=payload)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]


def _renaissance_copies(db_session, name):
    db_session.expire_all()
    return db_session.query(Product).filter_by(stock_id=2, name=name).all()


class TestCreateMovement:
    def test_create_pending(self, client, db_session, depot_admin, depot_product):
        data = _create(client, _movement_payload(depot_admin, depot_product))

        assert data["status"] == "pending"
        assert data["movement_number"].startswith("MOV-")
        assert data["movement_number"].endswith(f"-{data['id']}")
        assert data["total_amount"] == 12.5
        assert data["from_stock_name"] == "Gros (Dépôt général)"
        assert data["to_stock_name"] == "Librairie La Renaissance"
        assert data["items_count"] == 1

        db_session.expire_all()
        assert db_session.get(Product, depot_product.id).quantity == 50

    def test_same_source_and_destination(self, client, db_session, depot_admin, depot_product):
        payload = _movement_payload(depot_admin, depot_product, to_stock_id="gros")
        assert client.post("/api/stock-movements", json=payload).status_code == 400

    def test_unknown_stock(self, client, db_session, depot_admin, depot_product):
        payload = _movement_payload(depot_admin, depot_product, to_stock_id="centre")
        assert client.post("/api/stock-movements", json=payload).status_code == 400

    def test_product_must_belong_to_source(self, client, db_session, depot_admin, shelf_product):
        response = client.post("/api/stock-movements", json=_movement_payload(depot_admin, shelf_product))
        assert response.status_code == 400
        assert db_session.query(StockMovement).count() == 0

    def test_global_product_can_be_sent(self, client, db_session, depot_admin, global_product):
        data = _create(client, _movement_payload(depot_admin, global_product))
        assert data["status"] == "pending"

    def test_items_required(self, client, db_session, depot_admin, depot_product):
        payload = _movement_payload(depot_admin, depot_product, items=[])
        assert client.post("/api/stock-movements", json=payload).status_code == 400


class TestMovementTransitions:
    @pytest.fixture
    def movement(self, client, db_session, depot_admin, depot_product):
        return _create(client, _movement_payload(depot_admin, depot_product))

    def _put(self, client, movement, **body):
        return client.put(f"/api/stock-movements/{movement['id']}", json=body)

    def test_only_receiving_stock_can_confirm(self, client, db_session, movement):
        response = self._put(client, movement, action="confirm", requesting_stock_id="gros")

        assert response.status_code == 403
        assert response.get_json()["error"] == "Only the receiving stock can perform this action"

    def test_confirm_creates_destination_copy(self, client, db_session, movement, depot_product):
        response = self._put(client, movement, action="confirm", requesting_stock_id="renaissance")

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["status"] == "confirmed"
        assert data["confirmed_date"] is not None

        copies = _renaissance_copies(db_session, "Stylo bleu")
        assert len(copies) == 1
        assert copies[0].quantity == 5
        assert copies[0].reference == "STY-B"
        assert data["items"][0]["destination_product_id"] == copies[0].id
        assert db_session.get(Product, depot_product.id).quantity == 50

    def test_second_confirm_is_rejected(self, client, db_session, movement):
        self._put(client, movement, action="confirm", requesting_stock_id="renaissance")

        response = self._put(client, movement, action="confirm", requesting_stock_id="renaissance")

        assert response.status_code == 400
        assert response.get_json()["error"] == "Movement is not in pending status"
        assert _renaissance_copies(db_session, "Stylo bleu")[0].quantity == 5

    def test_repeat_delivery_matches_by_name_and_reference(
        self, client, db_session, movement, depot_admin, depot_product
    ):
        self._put(client, movement, action="confirm", requesting_stock_id="renaissance")
        second = _create(client, _movement_payload(depot_admin, depot_product, quantity=3))

        response = self._put(client, second, action="confirm", requesting_stock_id=2)

        assert response.status_code == 200
        copies = _renaissance_copies(db_session, "Stylo bleu")
        assert len(copies) == 1
        assert copies[0].quantity == 8

    def test_claim_requires_message(self, client, db_session, movement):
        response = self._put(client, movement, action="claim", requesting_stock_id="renaissance")
        assert response.status_code == 400

    def test_claim(self, client, db_session, movement):
        response = self._put(
            client, movement,
            action="claim", requesting_stock_id="renaissance", claim_message="2 cartons manquants",
        )

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["status"] == "claimed"
        assert data["claim_message"] == "2 cartons manquants"
        assert _renaissance_copies(db_session, "Stylo bleu") == []

    def test_confirm_after_claim_is_rejected(self, client, db_session, movement):
        self._put(client, movement, action="claim", requesting_stock_id="renaissance", claim_message="abîmé")

        response = self._put(client, movement, action="confirm", requesting_stock_id="renaissance")

        assert response.status_code == 400

    def test_unknown_action(self, client, db_session, movement):
        response = self._put(client, movement, action="refuse", requesting_stock_id="renaissance")
        assert response.status_code == 400

    def test_missing_movement(self, client, db_session):
        response = client.put(
            "/api/stock-movements/9999", json={"action": "confirm", "requesting_stock_id": "renaissance"}
        )
        assert response.status_code == 404


class TestListMovements:
    def test_sent_and_received(self, client, db_session, depot_admin, depot_product):
        created = _create(client, _movement_payload(depot_admin, depot_product))

        sent = client.get("/api/stock-movements?stockId=gros").get_json()["data"]
        received = client.get("/api/stock-movements?stockId=renaissance&type=received").get_json()["data"]
        nothing = client.get("/api/stock-movements?stockId=renaissance").get_json()["data"]

        assert [m["id"] for m in sent] == [created["id"]]
        assert [m["id"] for m in received] == [created["id"]]
        assert nothing == []

    def test_detail_includes_items(self, client, db_session, depot_admin, depot_product):
        created = _create(client, _movement_payload(depot_admin, depot_product))

        data = client.get(f"/api/stock-movements/{created['id']}").get_json()["data"]

        assert data["items"][0]["product_name"] == "Stylo bleu"
        assert data["items"][0]["quantity"] == 5
