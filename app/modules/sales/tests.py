"""
Tests para Cotizaciones y Órdenes de venta

- Solicitud del portal -> borrador -> precios del admin -> envío
- Respuesta del cliente (sólo documentos enviados y propios)
- Generación de factura desde una orden aprobada (una sola vez)
"""
from decimal import Decimal

import pytest

from app.common.exceptions import ValidationError
from app.modules.sales.utils import build_line_items, line_amount
from app.modules.sales.models import QuoteLineItem
from app.modules.sales.schemas import LineItemCreate


LINES = [
    {"name": "Instalación", "quantity": "2", "rate": "0"},
    {"name": "Mantenimiento", "quantity": "1.5", "rate": "0"},
]

PRICED_LINES = [
    {"name": "Instalación", "quantity": "2", "rate": "1500.00"},
    {"name": "Mantenimiento", "quantity": "1.5", "rate": "333.33"},
]


def _request(client, headers, request_type="quote", lines=LINES):
    response = client.post("/portal/requests", json={"request_type": request_type, "line_items": lines},
                           headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def _approved_order(client, customer_headers, admin_headers):
    order = _request(client, customer_headers, "sales_order")["sales_order"]
    client.put(f"/sales-orders/{order['id']}", json={"line_items": PRICED_LINES}, headers=admin_headers)
    client.post(f"/sales-orders/{order['id']}/send", headers=admin_headers)
    response = client.post(f"/portal/sales-orders/{order['id']}/action", json={"action": "approve"},
                           headers=customer_headers)
    assert response.json()["order_status"] == "approved"
    return response.json()


class TestLineTotals:

    def test_line_amount_rounds_half_up(self):
        assert line_amount(Decimal("1.5"), Decimal("333.33")) == Decimal("500.00")
        assert line_amount(3, "0.335") == Decimal("1.02")

    def test_line_amount_beyond_column_limit(self):
        with pytest.raises(ValidationError):
            line_amount("9999999", "9999999999999")

    def test_build_line_items_subtotal(self):
        lines = [LineItemCreate(**line) for line in PRICED_LINES]
        built, subtotal = build_line_items(QuoteLineItem, lines)
        assert [line.position for line in built] == [0, 1]
        assert subtotal == Decimal("3500.00")


class TestPortalRequests:

    def test_quote_request_is_draft_and_hidden_from_customer(self, client, customer_headers):
        result = _request(client, customer_headers)
        assert result["sales_order"] is None
        assert result["quote"]["status"] == "draft"
        assert result["quote"]["number"] == "QT-000001"

        visible = client.get("/portal/quotes", headers=customer_headers).json()
        assert visible["total"] == 0

    def test_both_links_order_to_quote(self, client, customer_headers):
        result = _request(client, customer_headers, "both")
        assert result["sales_order"]["quote_id"] == result["quote"]["id"]
        assert result["sales_order"]["number"] == "SO-001001"

    def test_empty_lines_rejected(self, client, customer_headers):
        response = client.post("/portal/requests", json={"line_items": []}, headers=customer_headers)
        assert response.status_code == 422


class TestQuoteFlow:

    def test_price_send_and_approve(self, client, customer_headers, admin_headers):
        quote = _request(client, customer_headers)["quote"]

        priced = client.put(f"/quotes/{quote['id']}", json={"line_items": PRICED_LINES}, headers=admin_headers)
        assert priced.status_code == 200
        assert Decimal(priced.json()["total"]) == Decimal("3500.00")

        sent = client.post(f"/quotes/{quote['id']}/send", headers=admin_headers)
        assert sent.json()["status"] == "sent"

        # enviada: ya no se edita
        assert client.put(f"/quotes/{quote['id']}", json={"notes": "x"}, headers=admin_headers).status_code == 409

        assert client.get("/portal/quotes", headers=customer_headers).json()["total"] == 1
        approved = client.post(f"/portal/quotes/{quote['id']}/approve", headers=customer_headers)
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"

        again = client.post(f"/portal/quotes/{quote['id']}/reject", headers=customer_headers)
        assert again.status_code == 409

    def test_customer_cannot_answer_draft(self, client, customer_headers):
        quote = _request(client, customer_headers)["quote"]
        response = client.post(f"/portal/quotes/{quote['id']}/approve", headers=customer_headers)
        assert response.status_code == 409

    def test_customer_cannot_answer_foreign_quote(self, client, customer_headers, other_customer_headers,
                                                  admin_headers):
        quote = _request(client, customer_headers)["quote"]
        client.post(f"/quotes/{quote['id']}/send", headers=admin_headers)

        response = client.post(f"/portal/quotes/{quote['id']}/approve", headers=other_customer_headers)
        assert response.status_code == 403

    def test_scrap_quote(self, client, customer_headers, admin_headers):
        quote = _request(client, customer_headers)["quote"]
        scrapped = client.post(f"/quotes/{quote['id']}/scrap", headers=admin_headers)
        assert scrapped.json()["status"] == "rejected"
        assert client.post(f"/quotes/{quote['id']}/scrap", headers=admin_headers).status_code == 409


class TestSalesOrderInvoicing:

    def test_generate_invoice_once(self, client, customer_headers, admin_headers):
        order = _approved_order(client, customer_headers, admin_headers)

        response = client.post(f"/sales-orders/{order['id']}/generate-invoice", headers=admin_headers)
        assert response.status_code == 201
        invoice = response.json()
        assert invoice["status"] == "sent"
        assert invoice["sales_order_id"] == order["id"]
        assert Decimal(invoice["total"]) == Decimal("3500.00")
        assert Decimal(invoice["balance_due"]) == Decimal("3500.00")

        refreshed = client.get(f"/sales-orders/{order['id']}", headers=admin_headers).json()
        assert refreshed["invoice_status"] == "invoiced"
        assert refreshed["invoice_id"] == invoice["id"]

        second = client.post(f"/sales-orders/{order['id']}/generate-invoice", headers=admin_headers)
        assert second.status_code == 409
        assert second.json()["code"] == "CONFLICT"

        invoices = client.get("/invoices/", headers=admin_headers).json()
        assert invoices["total"] == 1

    def test_unapproved_order_cannot_be_invoiced(self, client, customer_headers, admin_headers):
        order = _request(client, customer_headers, "sales_order")["sales_order"]
        response = client.post(f"/sales-orders/{order['id']}/generate-invoice", headers=admin_headers)
        assert response.status_code == 409

    def test_rejected_order(self, client, customer_headers, admin_headers):
        order = _request(client, customer_headers, "sales_order")["sales_order"]
        client.post(f"/sales-orders/{order['id']}/send", headers=admin_headers)
        response = client.post(f"/portal/sales-orders/{order['id']}/action", json={"action": "reject"},
                               headers=customer_headers)
        assert response.json()["order_status"] == "rejected"

    def test_invalid_action(self, client, customer_headers):
        order = _request(client, customer_headers, "sales_order")["sales_order"]
        response = client.post(f"/portal/sales-orders/{order['id']}/action", json={"action": "cancel"},
                               headers=customer_headers)
        assert response.status_code == 422

    def test_filter_orders_by_invoice_status(self, client, customer_headers, admin_headers):
        order = _approved_order(client, customer_headers, admin_headers)
        client.post(f"/sales-orders/{order['id']}/generate-invoice", headers=admin_headers)
        _request(client, customer_headers, "sales_order")

        pending = client.get("/sales-orders/", params={"invoice_status": "not_invoiced"},
                             headers=admin_headers).json()
        assert pending["total"] == 1
