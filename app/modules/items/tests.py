"""
Tests para el módulo de Items

- Catálogo (crear, buscar, desactivar)
- Solicitudes de items del portal: borradores de cotización / orden de venta
- Aprobación y rechazo por el administrador
"""
from decimal import Decimal

from app.modules.items.models import RequestType


class TestRequestType:

    def test_wants_flags(self):
        assert RequestType.QUOTE.wants_quote and not RequestType.QUOTE.wants_sales_order
        assert RequestType.SALES_ORDER.wants_sales_order and not RequestType.SALES_ORDER.wants_quote
        assert RequestType.BOTH.wants_quote and RequestType.BOTH.wants_sales_order


class TestCatalog:

    def test_create_search_and_deactivate(self, client, admin_headers):
        created = client.post("/items/", json={
            "name": "Soporte anual",
            "item_type": "service",
            "rate": "12000.00"
        }, headers=admin_headers)
        assert created.status_code == 201
        item = created.json()
        assert Decimal(item["rate"]) == Decimal("12000.00")

        client.post("/items/", json={"name": "Router"}, headers=admin_headers)

        found = client.get("/items/", params={"search": "soporte"}, headers=admin_headers).json()
        assert found["total"] == 1

        deactivated = client.delete(f"/items/{item['id']}", headers=admin_headers)
        assert deactivated.status_code == 200
        assert deactivated.json()["is_active"] is False

        active = client.get("/items/", headers=admin_headers).json()
        assert [i["name"] for i in active["items"]] == ["Router"]

        everything = client.get("/items/", params={"include_inactive": True}, headers=admin_headers).json()
        assert everything["total"] == 2

    def test_negative_rate_rejected(self, client, admin_headers):
        response = client.post("/items/", json={"name": "X", "rate": "-1"}, headers=admin_headers)
        assert response.status_code == 422

    def test_update_item(self, client, admin_headers):
        item = client.post("/items/", json={"name": "Cable"}, headers=admin_headers).json()
        response = client.patch(f"/items/{item['id']}", json={"rate": "150"}, headers=admin_headers)
        assert response.status_code == 200
        assert Decimal(response.json()["rate"]) == Decimal("150")


class TestItemRequests:

    def test_submit_request_creates_both_drafts(self, client, customer_headers, admin_headers):
        response = client.post("/portal/item-requests", json={
            "item_name": "  Panel solar 400W ",
            "quantity": "4",
            "unit": "pcs",
            "request_type": "both"
        }, headers=customer_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["request"]["item_name"] == "Panel solar 400W"
        assert data["request"]["status"] == "pending"
        assert data["quote_number"].startswith("QT-")
        assert data["sales_order_number"].startswith("SO-")

        quote = client.get(f"/quotes/{data['quote_id']}", headers=admin_headers).json()
        assert quote["status"] == "draft"
        assert quote["item_request_id"] == data["request"]["id"]
        assert Decimal(quote["total"]) == Decimal("0")

        order = client.get(f"/sales-orders/{data['sales_order_id']}", headers=admin_headers).json()
        assert order["quote_id"] == data["quote_id"]

    def test_blank_item_name_rejected(self, client, customer_headers):
        response = client.post("/portal/item-requests", json={"item_name": "   "}, headers=customer_headers)
        assert response.status_code == 422

    def test_approve_creates_catalog_item(self, client, customer_headers, admin_headers):
        submitted = client.post("/portal/item-requests", json={"item_name": "Inversor"},
                                headers=customer_headers).json()
        request_id = submitted["request"]["id"]

        pending = client.get("/item-requests/", headers=admin_headers).json()
        assert [r["id"] for r in pending] == [request_id]
        assert pending[0]["customer"]["name"] == "Ravi Kumar"

        approved = client.patch(f"/item-requests/{request_id}", json={"status": "approved", "rate": "25000"},
                                headers=admin_headers)
        assert approved.status_code == 200
        assert approved.json()["item_id"] is not None

        items = client.get("/items/", params={"search": "Inversor"}, headers=admin_headers).json()
        assert Decimal(items["items"][0]["rate"]) == Decimal("25000")

        again = client.patch(f"/item-requests/{request_id}", json={"status": "rejected"}, headers=admin_headers)
        assert again.status_code == 409

    def test_reject_with_reason(self, client, customer_headers, admin_headers):
        submitted = client.post("/portal/item-requests", json={"item_name": "Batería"},
                                headers=customer_headers).json()
        request_id = submitted["request"]["id"]

        rejected = client.patch(f"/item-requests/{request_id}",
                                json={"status": "rejected", "rejection_reason": "Sin proveedor"},
                                headers=admin_headers)
        assert rejected.status_code == 200
        assert rejected.json()["rejection_reason"] == "Sin proveedor"

        assert client.get("/item-requests/", headers=admin_headers).json() == []
        everything = client.get("/item-requests/", params={"status": "all"}, headers=admin_headers).json()
        assert len(everything) == 1

    def test_invalid_status_filter(self, client, admin_headers):
        response = client.get("/item-requests/", params={"status": "unknown"}, headers=admin_headers)
        assert response.status_code == 422

    def test_customer_sees_only_own_requests(self, client, customer_headers, other_customer_headers):
        client.post("/portal/item-requests", json={"item_name": "A"}, headers=customer_headers)
        client.post("/portal/item-requests", json={"item_name": "B"}, headers=other_customer_headers)

        mine = client.get("/portal/item-requests", headers=customer_headers).json()
        assert [r["item_name"] for r in mine] == ["A"]
