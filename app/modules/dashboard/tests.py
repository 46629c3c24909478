"""
Tests para el dashboard del portal de clientes
"""
from datetime import date, timedelta
from decimal import Decimal

from app.modules.dashboard.service import CustomerDashboardService


class TestCustomerDashboard:

    def test_empty_dashboard(self, client, customer_headers):
        response = client.get("/portal/dashboard", headers=customer_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["currency"] == "INR"
        assert Decimal(data["outstanding_balance"]) == Decimal("0")
        assert data["unpaid_invoices"] == 0
        assert data["open_quotes"] == 0

    def test_summary(self, client, admin_headers, customer_headers, customer, other_customer,
                     create_invoice, submit_payment):
        current = create_invoice(customer.id, rate="1000")
        create_invoice(customer.id, rate="250", issue_date="2020-01-01", due_date="2020-01-31")
        create_invoice(customer.id, rate="999", status="draft")
        create_invoice(other_customer.id, rate="5000")

        verified = submit_payment("600", [(current["id"], "400")]).json()
        submit_payment("100", [(current["id"], "100")])
        client.post(f"/payments/{verified['id']}/verify", headers=admin_headers)

        quote = client.post("/portal/requests", json={
            "request_type": "both",
            "line_items": [{"name": "Visita técnica", "quantity": "1", "rate": "0"}]
        }, headers=customer_headers).json()["quote"]
        client.post(f"/quotes/{quote['id']}/send", headers=admin_headers)

        data = client.get("/portal/dashboard", headers=customer_headers).json()
        assert Decimal(data["outstanding_balance"]) == Decimal("850.00")
        assert data["unpaid_invoices"] == 2
        assert data["overdue_invoices"] == 1
        assert Decimal(data["overdue_balance"]) == Decimal("250.00")
        assert data["pending_payments"] == 1
        assert Decimal(data["pending_payments_amount"]) == Decimal("100.00")
        assert Decimal(data["unused_credit"]) == Decimal("200.00")
        assert data["open_quotes"] == 1
        # la orden sigue en borrador
        assert data["open_sales_orders"] == 0

    def test_overdue_uses_current_date(self, db_session, customer, create_invoice):
        due = date.today() + timedelta(days=3)
        create_invoice(customer.id, rate="100", due_date=due.isoformat())

        service = CustomerDashboardService(db_session, customer)
        assert service.get_summary("INR")["overdue_invoices"] == 0
        later = service.get_summary("INR", today=due + timedelta(days=1))
        assert later["overdue_invoices"] == 1
