"""
Tests for the purchasing and reports routers.
"""

from pos_shared.config.constants import PurchaseOrderStatus, StockStatus


def _create_supplier(client, headers, **fields):
    body = {"name": "Distribuidora Andina", "tax_id": "20123456789", **fields}
    response = client.post("/api/suppliers", json=body, headers=headers)
    assert response.status_code == 201
    return response.json()["data"]


def _create_order(client, headers, supplier_id, products):
    response = client.post(
        "/api/purchase-orders",
        json={
            "supplier_id": supplier_id,
            "ordered_on": "2026-10-01",
            "items": [
                {"product_id": products["pisco"].id, "quantity": 10, "unit_price": "12.50"},
                {"product_id": products["cola"].id, "quantity": 24, "unit_price": "3.00"},
            ],
        },
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["data"]


class TestSuppliersApi:
    def test_crud(self, client, admin_headers):
        supplier = _create_supplier(client, admin_headers, email="ventas@andina.pe")
        assert supplier["is_active"] is True

        listed = client.get("/api/suppliers", params={"search": "andina"}, headers=admin_headers).json()
        assert [s["id"] for s in listed] == [supplier["id"]]

        updated = client.put(
            f"/api/suppliers/{supplier['id']}", json={"phone": "987654321"}, headers=admin_headers
        )
        assert updated.status_code == 200
        assert updated.json()["data"]["phone"] == "987654321"
        assert updated.json()["data"]["tax_id"] == "20123456789"

        deleted = client.delete(f"/api/suppliers/{supplier['id']}", headers=admin_headers)
        assert deleted.status_code == 200
        assert client.get(f"/api/suppliers/{supplier['id']}", headers=admin_headers).status_code == 404

    def test_duplicate_tax_id(self, client, admin_headers):
        _create_supplier(client, admin_headers)
        response = client.post(
            "/api/suppliers", json={"name": "Otro", "tax_id": "20123456789"}, headers=admin_headers
        )
        assert response.status_code == 400

    def test_supplier_with_orders_cannot_be_deleted(self, client, admin_headers, seed_products):
        supplier = _create_supplier(client, admin_headers)
        _create_order(client, admin_headers, supplier["id"], seed_products)

        response = client.delete(f"/api/suppliers/{supplier['id']}", headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["success"] is False

    def test_requires_inventory_permission(self, client, waiter_headers, cashier_headers):
        assert client.get("/api/suppliers", headers=waiter_headers).status_code == 403
        response = client.post("/api/suppliers", json={"name": "X"}, headers=cashier_headers)
        assert response.status_code == 403


class TestPurchaseOrdersApi:
    def test_receive_in_two_deliveries(self, client, admin_headers, seed_products):
        supplier = _create_supplier(client, admin_headers)
        order = _create_order(client, admin_headers, supplier["id"], seed_products)
        assert order["state"] == PurchaseOrderStatus.PENDING
        assert order["total"] == 197.0
        assert order["order_number"].startswith("PED-")
        pisco_line, cola_line = order["items"]

        partial = client.post(
            f"/api/purchase-orders/{order['id']}/receive",
            json={"items": [{"item_id": pisco_line["id"], "received_quantity": 4}]},
            headers=admin_headers,
        )
        assert partial.status_code == 200
        assert partial.json()["data"]["state"] == PurchaseOrderStatus.PARTIAL

        complete = client.post(
            f"/api/purchase-orders/{order['id']}/receive",
            json={
                "items": [
                    {"item_id": pisco_line["id"], "received_quantity": 10},
                    {"item_id": cola_line["id"], "received_quantity": 24},
                ]
            },
            headers=admin_headers,
        )
        assert complete.json()["data"]["state"] == PurchaseOrderStatus.RECEIVED

        stock = client.get(f"/api/products/{seed_products['pisco'].id}/stock", headers=admin_headers).json()
        assert stock["stock"] == 20

        ledger = client.get(
            "/api/inventory/movements",
            params={"product_id": seed_products["pisco"].id},
            headers=admin_headers,
        ).json()
        assert sorted(m["quantity"] for m in ledger) == [4, 6]
        assert {m["purchase_order_id"] for m in ledger} == {order["id"]}

    def test_over_delivery_is_rejected(self, client, admin_headers, seed_products):
        supplier = _create_supplier(client, admin_headers)
        order = _create_order(client, admin_headers, supplier["id"], seed_products)

        response = client.post(
            f"/api/purchase-orders/{order['id']}/receive",
            json={"items": [{"item_id": order["items"][0]["id"], "received_quantity": 11}]},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_cancel_then_delete(self, client, admin_headers, seed_products):
        supplier = _create_supplier(client, admin_headers)
        order = _create_order(client, admin_headers, supplier["id"], seed_products)

        cancelled = client.post(f"/api/purchase-orders/{order['id']}/cancel", headers=admin_headers)
        assert cancelled.json()["data"]["state"] == PurchaseOrderStatus.CANCELED

        edit = client.put(
            f"/api/purchase-orders/{order['id']}", json={"notes": "otra vez"}, headers=admin_headers
        )
        assert edit.status_code == 400

        assert client.delete(f"/api/purchase-orders/{order['id']}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/purchase-orders/{order['id']}", headers=admin_headers).status_code == 404

    def test_list_by_state(self, client, admin_headers, seed_products):
        supplier = _create_supplier(client, admin_headers)
        order = _create_order(client, admin_headers, supplier["id"], seed_products)

        pending = client.get(
            "/api/purchase-orders", params={"state": "pendiente"}, headers=admin_headers
        ).json()
        assert [o["id"] for o in pending] == [order["id"]]
        assert client.get(
            "/api/purchase-orders", params={"state": "enviado"}, headers=admin_headers
        ).status_code == 422


class TestReportsApi:
    def test_dashboard_is_for_cash_roles(self, client, cashier_headers, waiter_headers, seed_products):
        response = client.get("/api/reports/dashboard", headers=cashier_headers)
        assert response.status_code == 200
        assert response.json()["low_stock_products"] == 1
        assert client.get("/api/reports/dashboard", headers=waiter_headers).status_code == 403

    def test_stock_report(self, client, waiter_headers, seed_products):
        body = client.get("/api/reports/stock", headers=waiter_headers).json()
        by_code = {row["code"]: row["status"] for row in body["products"]}
        assert by_code["RON-01"] == StockStatus.CRITICAL
        assert by_code["PIS-01"] == StockStatus.NORMAL

    def test_register_sales_needs_dates(self, client, cashier_headers):
        assert client.get("/api/reports/register-sales", headers=cashier_headers).status_code == 422

        response = client.get(
            "/api/reports/register-sales",
            params={"date_from": "2026-10-01", "date_to": "2026-10-01", "hour_from": "22:00", "hour_to": "04:00"},
            headers=cashier_headers,
        )
        assert response.status_code == 200
        assert response.json()["registers"] == []
        assert response.json()["period"]["to"].startswith("2026-10-02T04:00")

    def test_reversed_dates(self, client, cashier_headers):
        response = client.get(
            "/api/reports/register-sales",
            params={"date_from": "2026-10-02", "date_to": "2026-10-01"},
            headers=cashier_headers,
        )
        assert response.status_code == 400
