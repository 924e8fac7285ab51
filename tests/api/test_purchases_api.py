"""
API tests for the purchasing FastAPI app.
"""
import pytest
from fastapi.testclient import TestClient

from api.app import app, get_service
from purchasing.errors import StoreError


@pytest.fixture
def client(service):
    """Provide a TestClient wired to the test service."""
    app.dependency_overrides[get_service] = lambda: service
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _create(client, supplier, product, qty=10, cost=5.00):
    return client.post("/api/purchases/orders", json={
        "supplier_id": supplier["id"],
        "notes": "Monthly feed restock",
        "items": [{"product_id": product["id"], "quantity_ordered": qty, "unit_cost": cost}],
    })


@pytest.mark.api
class TestPurchasesApi:
    """Tests for the /api/purchases routes."""

    def test_health(self, client):
        resp = client.get("/api/health")

        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "ok"

    def test_create_order(self, client, supplier, product):
        """Test POST returns 201 and the enveloped order."""
        resp = _create(client, supplier, product)

        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["status"] == "draft"
        assert body["data"]["subtotal"] == 50.00
        assert body["data"]["tax_amount"] == 6.00
        assert body["data"]["total_amount"] == 56.00
        assert body["data"]["notes"] == "Monthly feed restock"
        assert len(body["data"]["items"]) == 1

    def test_create_order_without_items(self, client, supplier):
        """Test an empty item list is a 400."""
        resp = client.post("/api/purchases/orders", json={"supplier_id": supplier["id"], "items": []})

        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert "items" in resp.json()["message"]

    def test_full_receiving_flow(self, client, service, supplier, product):
        """Test create → approve → receive 6 → receive 4 over HTTP."""
        order = _create(client, supplier, product).json()["data"]
        item_id = order["items"][0]["id"]

        resp = client.put(
            f"/api/purchases/orders/{order['id']}/approve",
            json={"approved_by_user_id": "manager-1"},
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "confirmed"

        resp = client.put(f"/api/purchases/items/{item_id}/receive", json={"quantity_received": 6})
        assert resp.status_code == 200
        assert resp.json()["data"]["quantity_received"] == 6
        assert client.get(f"/api/purchases/orders/{order['id']}").json()["data"]["status"] == "confirmed"

        resp = client.put(
            f"/api/purchases/items/{item_id}/receive",
            json={"quantity_received": 4, "received_date": "2024-03-02"},
        )
        assert resp.json()["data"]["quantity_received"] == 10
        assert resp.json()["data"]["received_date"] == "2024-03-02"

        final = client.get(f"/api/purchases/orders/{order['id']}").json()["data"]
        assert final["status"] == "received"
        assert service.store.find_one("products", product["id"])["stock_quantity"] == 10

    def test_receive_zero_is_400(self, client, supplier, product):
        order = _create(client, supplier, product).json()["data"]

        resp = client.put(
            f"/api/purchases/items/{order['items'][0]['id']}/receive",
            json={"quantity_received": 0},
        )

        assert resp.status_code == 400
        assert "quantity_received" in resp.json()["message"]

    def test_malformed_body_is_400(self, client, supplier, product):
        order = _create(client, supplier, product).json()["data"]

        resp = client.put(
            f"/api/purchases/items/{order['items'][0]['id']}/receive",
            json={"quantity_received": "lots"},
        )

        assert resp.status_code == 400
        assert resp.json()["success"] is False

    def test_unknown_order_is_404(self, client):
        resp = client.get("/api/purchases/orders/missing")

        assert resp.status_code == 404
        assert resp.json() == {
            "success": False,
            "data": None,
            "message": "purchase_orders not found: missing",
        }

    def test_unknown_route_is_enveloped(self, client):
        resp = client.get("/api/purchases/nothing-here")

        assert resp.status_code == 404
        assert resp.json()["success"] is False

    def test_update_and_cancel(self, client, supplier, product):
        order = _create(client, supplier, product).json()["data"]
        item_id = order["items"][0]["id"]

        resp = client.put(f"/api/purchases/items/{item_id}", json={"unit_cost": 6.00})
        assert resp.json()["data"]["line_total"] == 60.00

        resp = client.put(f"/api/purchases/orders/{order['id']}", json={"notes": "Urgent"})
        assert resp.json()["data"]["notes"] == "Urgent"
        assert resp.json()["data"]["total_amount"] == 67.20

        resp = client.put(f"/api/purchases/orders/{order['id']}", json={"status": "received"})
        assert resp.status_code == 400

        resp = client.put(f"/api/purchases/orders/{order['id']}/cancel")
        assert resp.json()["data"]["status"] == "cancelled"

    def test_list_and_dashboard(self, client, supplier, product):
        _create(client, supplier, product)
        _create(client, supplier, product, qty=1, cost=10.00)

        listing = client.get("/api/purchases/orders", params={"status": "draft", "limit": 1}).json()
        assert listing["data"]["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}
        assert len(listing["data"]["orders"]) == 1

        dash = client.get("/api/purchases/dashboard").json()["data"]
        assert dash["total_orders"] == 2
        assert dash["pending_orders"] == 2
        assert dash["top_suppliers"][0]["supplier_id"] == supplier["id"]

    def test_store_error_is_generic_500(self, client, service, monkeypatch):
        """Test store failures are logged and hidden behind a generic message."""
        def broken():
            raise StoreError("disk I/O error")

        monkeypatch.setattr(service, "get_dashboard", broken)

        resp = client.get("/api/purchases/dashboard")

        assert resp.status_code == 500
        assert resp.json() == {"success": False, "data": None, "message": "Internal server error"}
