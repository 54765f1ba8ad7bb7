"""
Integration tests for orders: pricing, stock reservation and the dual write.
"""

from unittest.mock import patch

import pytest
from bson import ObjectId
from pymongo.errors import PyMongoError
from sqlalchemy.exc import OperationalError

from petpocket.db.base import Order
from petpocket.db.mongo import ORDER_DETAILS, PRODUCTS


def _stock(document_store, product):
    return document_store.collection(PRODUCTS).find_one({"_id": product["_id"]})["stock"]


@pytest.mark.integration
@pytest.mark.api
class TestCreateOrder:
    def test_totals_come_from_catalog_prices(self, client, receptionist_headers, make_owner,
                                             make_product, document_store):
        owner = make_owner()
        food = make_product(name="Dog Food", price=10.0, stock=5)
        toy = make_product(name="Ball", price=2.5, stock=5)

        response = client.post(
            "/api/orders",
            json={
                "client_id": owner.id,
                "products": [
                    {"productId": str(food["_id"]), "quantity": 2},
                    {"productId": str(toy["_id"]), "quantity": 1},
                ],
                "notes": "Leave at front desk",
            },
            headers=receptionist_headers,
        )

        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["total"] == 22.5
        assert data["payment_status"] == "Pending"
        assert data["fulfillment_status"] == "InProgress"
        assert data["client"]["name"] == "Ana Souza"
        assert data["notes"] == "Leave at front desk"
        assert [line["name"] for line in data["products"]] == ["Dog Food", "Ball"]
        assert _stock(document_store, food) == 3
        assert _stock(document_store, toy) == 4

        details = document_store.collection(ORDER_DETAILS).find_one({"orderId": data["id"]})
        assert details["products"][0]["price"] == 10.0

    def test_insufficient_stock_writes_nothing(self, client, receptionist_headers, make_owner,
                                               make_product, document_store, db_session):
        owner = make_owner()
        food = make_product(stock=1)

        response = client.post(
            "/api/orders",
            json={"client_id": owner.id, "products": [{"productId": str(food["_id"]), "quantity": 2}]},
            headers=receptionist_headers,
        )

        assert response.status_code == 400
        assert response.get_json()["code"] == "INSUFFICIENT_STOCK"
        assert _stock(document_store, food) == 1
        assert db_session.query(Order).count() == 0
        assert document_store.collection(ORDER_DETAILS).count_documents({}) == 0

    def test_missing_second_product_restores_first(self, client, receptionist_headers, make_owner,
                                                   make_product, document_store, db_session):
        owner = make_owner()
        food = make_product(stock=5)

        response = client.post(
            "/api/orders",
            json={
                "client_id": owner.id,
                "products": [
                    {"productId": str(food["_id"]), "quantity": 2},
                    {"productId": str(ObjectId()), "quantity": 1},
                ],
            },
            headers=receptionist_headers,
        )

        assert response.status_code == 404
        assert response.get_json()["code"] == "PRODUCT_NOT_FOUND"
        assert _stock(document_store, food) == 5
        assert db_session.query(Order).count() == 0

    def test_unknown_client(self, client, receptionist_headers, make_product, document_store):
        food = make_product(stock=5)

        response = client.post(
            "/api/orders",
            json={"client_id": 999, "products": [{"productId": str(food["_id"]), "quantity": 1}]},
            headers=receptionist_headers,
        )

        assert response.status_code == 404
        assert response.get_json()["code"] == "CLIENT_NOT_FOUND"
        assert _stock(document_store, food) == 5

    def test_walk_in_order_without_client(self, client, receptionist_headers, make_product,
                                          document_store):
        food = make_product(price=4.0, stock=5)

        response = client.post(
            "/api/orders",
            json={"products": [{"productId": str(food["_id"]), "quantity": 2}]},
            headers=receptionist_headers,
        )

        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["client_id"] is None
        assert data["client"] is None
        assert data["total"] == 8.0
        assert _stock(document_store, food) == 3

    def test_failed_commit_releases_stock(self, client, receptionist_headers, make_owner,
                                          make_product, document_store):
        owner = make_owner()
        food = make_product(stock=5)

        with patch(
            "sqlalchemy.orm.Session.commit",
            side_effect=OperationalError("COMMIT", {}, Exception("database is locked")),
        ):
            response = client.post(
                "/api/orders",
                json={"client_id": owner.id, "products": [{"productId": str(food["_id"]), "quantity": 2}]},
                headers=receptionist_headers,
            )

        assert response.status_code == 500
        assert response.get_json()["code"] == "INTERNAL_SERVER_ERROR"
        assert _stock(document_store, food) == 5

    def test_details_write_failure_leaves_row_only_order(self, client, receptionist_headers,
                                                         make_owner, make_product):
        owner = make_owner()
        food = make_product(price=4.0, stock=5)

        with patch(
            "petpocket.repositories.details_repo.CompanionDocumentRepository.insert",
            side_effect=PyMongoError("document store down"),
        ):
            response = client.post(
                "/api/orders",
                json={"client_id": owner.id, "products": [{"productId": str(food["_id"]), "quantity": 1}]},
                headers=receptionist_headers,
            )

        assert response.status_code == 201
        order_id = response.get_json()["data"]["id"]

        detail = client.get(f"/api/orders/{order_id}", headers=receptionist_headers).get_json()["data"]
        assert detail["total"] == 4.0
        assert detail["products"] == []
        assert detail["notes"] == ""


@pytest.mark.integration
@pytest.mark.api
class TestReadAndUpdateOrders:
    @pytest.fixture
    def order_id(self, client, receptionist_headers, make_owner, make_product):
        owner = make_owner()
        food = make_product(stock=5)
        response = client.post(
            "/api/orders",
            json={"client_id": owner.id, "products": [{"productId": str(food["_id"]), "quantity": 1}]},
            headers=receptionist_headers,
        )
        return response.get_json()["data"]["id"]

    def test_detail_and_alias(self, client, receptionist_headers, order_id):
        detail = client.get(f"/api/orders/{order_id}", headers=receptionist_headers)
        alias = client.get(f"/api/orders/{order_id}/details", headers=receptionist_headers)

        assert detail.status_code == 200
        assert detail.get_json()["data"] == alias.get_json()["data"]
        assert detail.get_json()["data"]["client"]["phone"] == "555-0100"

    def test_list_filters_by_payment_status(self, client, receptionist_headers, order_id):
        pending = client.get("/api/orders?payment_status=Pending", headers=receptionist_headers)
        paid = client.get("/api/orders?payment_status=Paid", headers=receptionist_headers)

        assert [o["id"] for o in pending.get_json()["data"]["items"]] == [order_id]
        assert paid.get_json()["data"]["items"] == []

    def test_update_statuses_and_notes(self, client, receptionist_headers, order_id, document_store):
        response = client.put(
            f"/api/orders/{order_id}",
            json={"payment_status": "Paid", "fulfillment_status": "Fulfilled", "notes": "Picked up"},
            headers=receptionist_headers,
        )

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["payment_status"] == "Paid"
        assert data["fulfillment_status"] == "Fulfilled"
        assert data["notes"] == "Picked up"
        assert len(data["products"]) == 1

    def test_update_recreates_missing_details(self, client, receptionist_headers, order_id, document_store):
        document_store.collection(ORDER_DETAILS).delete_many({})

        response = client.put(
            f"/api/orders/{order_id}", json={"notes": "Restored"}, headers=receptionist_headers
        )

        assert response.get_json()["data"]["notes"] == "Restored"
        assert document_store.collection(ORDER_DETAILS).find_one({"orderId": order_id}) is not None

    def test_unknown_order(self, client, receptionist_headers):
        response = client.get("/api/orders/999", headers=receptionist_headers)

        assert response.status_code == 404
        assert response.get_json()["code"] == "ORDER_NOT_FOUND"
