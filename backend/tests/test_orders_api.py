"""
Tests for the orders router: envelopes, roles and the post-commit push.
"""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from pos_shared.config.constants import OrderStatus, TableStatus


@pytest.fixture
def created_order(client, waiter_headers, seed_products, seed_table, order_events):
    """An order for table 1 created through the API. The push mock is reset."""
    response = client.post(
        "/api/orders",
        json={
            "table_id": seed_table.id,
            "items": [
                {"product_id": seed_products["pisco"].id, "quantity": 2},
                {"product_id": seed_products["cola"].id, "quantity": 1, "notes": "sin hielo"},
            ],
        },
        headers=waiter_headers,
    )
    assert response.status_code == 201
    order_events.reset_mock()
    return response.json()["data"]


class TestCreateOrder:
    def test_create_returns_envelope_and_pushes(
        self, client, waiter_headers, seed_products, seed_table, order_events
    ):
        response = client.post(
            "/api/orders",
            json={
                "table_id": seed_table.id,
                "items": [{"product_id": seed_products["pisco"].id, "quantity": 2}],
            },
            headers=waiter_headers,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Orden creada correctamente"
        assert body["data"]["state"] == OrderStatus.PENDING
        assert body["data"]["total"] == 50.0
        assert body["data"]["table_number"] == 1

        order_events.assert_awaited_once()
        snapshot = order_events.call_args.kwargs["snapshot"]
        assert snapshot["estado"] == OrderStatus.PENDING
        assert snapshot["id"] == body["data"]["id"]
        assert order_events.call_args.kwargs["actor_role"] == "mesero"

    def test_bartender_cannot_take_orders(self, client, bartender_headers, seed_products, order_events):
        response = client.post(
            "/api/orders",
            json={"items": [{"product_id": seed_products["cola"].id, "quantity": 1}]},
            headers=bartender_headers,
        )
        assert response.status_code == 403
        assert response.json()["success"] is False
        order_events.assert_not_called()

    def test_empty_order_is_invalid(self, client, waiter_headers):
        response = client.post("/api/orders", json={"items": []}, headers=waiter_headers)
        assert response.status_code == 422

    def test_create_on_busy_table(self, client, waiter_headers, seed_products, seed_table, created_order):
        response = client.post(
            "/api/orders",
            json={
                "table_id": seed_table.id,
                "items": [{"product_id": seed_products["cola"].id, "quantity": 1}],
            },
            headers=waiter_headers,
        )
        assert response.status_code == 409

    def test_push_failure_does_not_fail_request(
        self, client, waiter_headers, seed_products, order_events
    ):
        """The order is committed even when Redis is unreachable."""
        order_events.side_effect = ConnectionError("redis down")

        response = client.post(
            "/api/orders",
            json={"items": [{"product_id": seed_products["cola"].id, "quantity": 1}]},
            headers=waiter_headers,
        )

        assert response.status_code == 201
        order_id = response.json()["data"]["id"]
        assert client.get(f"/api/orders/{order_id}", headers=waiter_headers).status_code == 200


class TestUpdateStatus:
    def test_deliver_releases_table(
        self, client, bartender_headers, waiter_headers, created_order, order_events
    ):
        response = client.patch(
            f"/api/orders/{created_order['id']}/status",
            json={"state": OrderStatus.DELIVERED, "version": created_order["version"]},
            headers=bartender_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["state"] == OrderStatus.DELIVERED
        assert data["version"] == created_order["version"] + 1
        order_events.assert_awaited_once()
        assert order_events.call_args.kwargs["snapshot"]["estado"] == OrderStatus.DELIVERED

        table = client.get(f"/api/tables/{created_order['table_id']}", headers=waiter_headers).json()
        assert table["state"] == TableStatus.AVAILABLE

    def test_stale_version_conflicts(self, client, bartender_headers, created_order, order_events):
        """A client holding an old version cannot overwrite a newer change."""
        first = client.patch(
            f"/api/orders/{created_order['id']}/status",
            json={"state": OrderStatus.IN_PROGRESS, "version": created_order["version"]},
            headers=bartender_headers,
        )
        assert first.status_code == 200

        second = client.patch(
            f"/api/orders/{created_order['id']}/status",
            json={"state": OrderStatus.CANCELED, "version": created_order["version"]},
            headers=bartender_headers,
        )
        assert second.status_code == 409
        assert order_events.await_count == 1

    def test_failed_commit_is_a_generic_500_without_push(
        self, client, bartender_headers, created_order, order_events
    ):
        """The driver error stays in the log and no snapshot is published."""

        def failing_commit(db):
            db.rollback()
            raise OperationalError("UPDATE bar_order", {}, Exception("disk full"))

        with patch("pos_api.routers._common.safe_commit", side_effect=failing_commit):
            response = client.patch(
                f"/api/orders/{created_order['id']}/status",
                json={"state": OrderStatus.READY, "version": created_order["version"]},
                headers=bartender_headers,
            )

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert "disk full" not in response.text
        assert order_events.await_count == 0

        order = client.get(f"/api/orders/{created_order['id']}", headers=bartender_headers).json()
        assert order["state"] == created_order["state"]
        assert order["version"] == created_order["version"]

    def test_backward_move_is_rejected(self, client, bartender_headers, created_order):
        client.patch(
            f"/api/orders/{created_order['id']}/status",
            json={"state": OrderStatus.READY},
            headers=bartender_headers,
        )
        response = client.patch(
            f"/api/orders/{created_order['id']}/status",
            json={"state": OrderStatus.PENDING},
            headers=bartender_headers,
        )
        assert response.status_code == 400

    def test_unknown_state(self, client, bartender_headers, created_order):
        response = client.patch(
            f"/api/orders/{created_order['id']}/status",
            json={"state": "servida"},
            headers=bartender_headers,
        )
        assert response.status_code == 422

    def test_missing_order(self, client, bartender_headers, seed_roles_data):
        response = client.patch(
            "/api/orders/9999/status",
            json={"state": OrderStatus.READY},
            headers=bartender_headers,
        )
        assert response.status_code == 404


class TestReads:
    def test_active_orders_ready_first(self, client, bartender_headers, waiter_headers, seed_products):
        ids = []
        for _ in range(2):
            response = client.post(
                "/api/orders",
                json={"items": [{"product_id": seed_products["cola"].id, "quantity": 1}]},
                headers=waiter_headers,
            )
            ids.append(response.json()["data"]["id"])
        client.patch(f"/api/orders/{ids[0]}/status", json={"state": OrderStatus.READY}, headers=bartender_headers)

        active = client.get("/api/orders/active", headers=bartender_headers).json()
        assert [o["id"] for o in active] == [ids[0], ids[1]]

    def test_history(self, client, waiter_headers, created_order):
        history = client.get(f"/api/orders/{created_order['id']}/history", headers=waiter_headers).json()
        assert [h["action"] for h in history] == ["creacion"]
        assert history[0]["user_name"] == "Mario Mesero"

    def test_requires_authentication(self, client):
        assert client.get("/api/orders/active").status_code == 401


class TestPaidAndDelete:
    def test_mark_paid_sends_no_push(self, client, cashier_headers, created_order, order_events):
        response = client.post(f"/api/orders/{created_order['id']}/paid", headers=cashier_headers)

        assert response.status_code == 200
        assert response.json()["data"]["paid"] is True
        assert response.json()["data"]["state"] == OrderStatus.PENDING
        order_events.assert_not_called()

        again = client.post(f"/api/orders/{created_order['id']}/paid", headers=cashier_headers)
        assert again.status_code == 409

    def test_delete_requires_cancelled_order(
        self, client, admin_headers, bartender_headers, created_order
    ):
        response = client.delete(f"/api/orders/{created_order['id']}", headers=admin_headers)
        assert response.status_code == 403

        client.patch(
            f"/api/orders/{created_order['id']}/status",
            json={"state": OrderStatus.CANCELED},
            headers=bartender_headers,
        )
        response = client.delete(f"/api/orders/{created_order['id']}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"] == {"id": created_order["id"]}

        missing = client.get(f"/api/orders/{created_order['id']}", headers=admin_headers)
        assert missing.status_code == 404

    def test_waiter_cannot_delete(self, client, waiter_headers, created_order):
        response = client.delete(f"/api/orders/{created_order['id']}", headers=waiter_headers)
        assert response.status_code == 403
