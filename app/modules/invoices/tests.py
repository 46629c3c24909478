"""
Tests para el módulo de Facturas

- Creación (draft / sent), numeración y vencimiento por defecto
- Envío, anulación y recálculo administrativo
- Vistas del portal: sin borradores, sólo facturas propias, saldo recalculado
"""
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

from app.core.config import settings
from app.modules.invoices.models import Invoice
from app.modules.invoices.service import InvoiceService
from app.modules.payments.ledger import InvoiceStatus


def _days_ago(days):
    return (date.today() - timedelta(days=days)).isoformat()


class TestCreateInvoice:

    def test_create_draft_with_default_due_date(self, client, admin_headers, customer, create_invoice):
        invoice = create_invoice(customer.id, rate="499.995", status="draft")

        assert invoice["status"] == "draft"
        assert invoice["number"] == "INV-1001"
        assert Decimal(invoice["total"]) == Decimal("500.00")
        assert Decimal(invoice["balance_due"]) == Decimal("500.00")
        expected_due = date.today() + timedelta(days=settings.INVOICE_DUE_DAYS)
        assert invoice["due_date"] == expected_due.isoformat()

    def test_numbers_are_sequential(self, customer, create_invoice):
        first = create_invoice(customer.id)
        second = create_invoice(customer.id)
        assert (first["number"], second["number"]) == ("INV-1001", "INV-1002")

    def test_due_date_before_issue_date_rejected(self, client, admin_headers, customer):
        response = client.post("/invoices/", json={
            "customer_id": str(customer.id),
            "issue_date": "2026-03-10",
            "due_date": "2026-03-01",
            "items": [{"name": "X", "quantity": "1", "rate": "10"}]
        }, headers=admin_headers)
        assert response.status_code == 422

    def test_cannot_create_paid_invoice(self, client, admin_headers, customer):
        response = client.post("/invoices/", json={
            "customer_id": str(customer.id),
            "status": "paid",
            "items": [{"name": "X", "quantity": "1", "rate": "10"}]
        }, headers=admin_headers)
        assert response.status_code == 422

    def test_unknown_customer(self, client, admin_headers):
        response = client.post("/invoices/", json={
            "customer_id": str(uuid4()),
            "items": [{"name": "X", "quantity": "1", "rate": "10"}]
        }, headers=admin_headers)
        assert response.status_code == 404

    def test_past_due_invoice_is_overdue_when_sent(self, customer, create_invoice):
        invoice = create_invoice(customer.id, issue_date="2020-01-01", due_date="2020-01-16")
        assert invoice["status"] == "overdue"


class TestInvoiceLifecycle:

    def test_send_draft(self, client, admin_headers, customer, create_invoice):
        invoice = create_invoice(customer.id, status="draft")

        sent = client.post(f"/invoices/{invoice['id']}/send", headers=admin_headers)
        assert sent.status_code == 200
        assert sent.json()["status"] == "sent"

        again = client.post(f"/invoices/{invoice['id']}/send", headers=admin_headers)
        assert again.status_code == 409

        detail = client.get(f"/invoices/{invoice['id']}", headers=admin_headers).json()
        assert [a["action"] for a in detail["activities"]] == ["created", "sent"]
        assert detail["sent_at"] is not None

    def test_void_invoice(self, client, admin_headers, customer, create_invoice):
        invoice = create_invoice(customer.id)

        voided = client.post(f"/invoices/{invoice['id']}/void", json={"reason": "Duplicada"},
                             headers=admin_headers)
        assert voided.status_code == 200
        assert voided.json()["status"] == "void"

        assert client.post(f"/invoices/{invoice['id']}/void", headers=admin_headers).status_code == 409

    def test_void_with_verified_payment_rejected(self, client, admin_headers, customer, create_invoice,
                                                 submit_payment):
        invoice = create_invoice(customer.id)
        payment = submit_payment("400", [(invoice["id"], "400")]).json()
        client.post(f"/payments/{payment['id']}/verify", headers=admin_headers)

        response = client.post(f"/invoices/{invoice['id']}/void", headers=admin_headers)
        assert response.status_code == 409

    def test_recalculate_corrects_stale_balance(self, client, admin_headers, customer, create_invoice,
                                                submit_payment, db_session):
        invoice = create_invoice(customer.id)
        payment = submit_payment("1000", [(invoice["id"], "1000")]).json()
        client.post(f"/payments/{payment['id']}/verify", headers=admin_headers)

        # saldo persistido corrupto (ej: datos importados)
        stored = db_session.get(Invoice, UUID(invoice["id"]))
        stored.amount_paid = Decimal("0")
        stored.balance_due = Decimal("1000")
        stored.status = InvoiceStatus.SENT
        db_session.commit()

        response = client.post(f"/invoices/{invoice['id']}/recalculate", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "paid"
        assert Decimal(data["amount_paid"]) == Decimal("1000.00")
        assert Decimal(data["balance_due"]) == Decimal("0.00")

        detail = client.get(f"/invoices/{invoice['id']}", headers=admin_headers).json()
        assert detail["activities"][-1]["action"] == "recalculated"

    def test_list_counts_by_status(self, client, admin_headers, customer, create_invoice):
        create_invoice(customer.id, status="draft")
        create_invoice(customer.id)
        create_invoice(customer.id)

        data = client.get("/invoices/", params={"status": "sent"}, headers=admin_headers).json()
        assert data["total"] == 2
        counts = {c["status"]: c["count"] for c in data["counts_by_status"]}
        assert counts["draft"] == 1
        assert counts["sent"] == 2
        assert counts["paid"] == 0

    def test_search_by_number(self, client, admin_headers, customer, create_invoice):
        create_invoice(customer.id)
        second = create_invoice(customer.id)
        data = client.get("/invoices/", params={"search": second["number"]}, headers=admin_headers).json()
        assert [i["id"] for i in data["items"]] == [second["id"]]

    def test_overdue_derived_without_recalculate(self, client, admin_headers, customer, create_invoice,
                                                 db_session):
        invoice = create_invoice(customer.id)
        create_invoice(customer.id)

        # el vencimiento pasa sin que nadie recalcule: el estado guardado sigue en sent
        stored = db_session.get(Invoice, UUID(invoice["id"]))
        stored.due_date = date.today() - timedelta(days=1)
        db_session.commit()
        assert stored.status == InvoiceStatus.SENT

        data = client.get("/invoices/", params={"status": "overdue"}, headers=admin_headers).json()
        assert [i["id"] for i in data["items"]] == [invoice["id"]]
        counts = {c["status"]: c["count"] for c in data["counts_by_status"]}
        assert (counts["overdue"], counts["sent"]) == (1, 1)

        detail = client.get(f"/invoices/{invoice['id']}", headers=admin_headers).json()
        assert detail["status"] == "overdue"

    def test_list_uses_given_date(self, db_session, organization, customer, create_invoice):
        invoice = create_invoice(customer.id)
        due = date.fromisoformat(invoice["due_date"])

        service = InvoiceService(db_session)
        assert service.list_invoices(organization.id, InvoiceStatus.OVERDUE)["total"] == 0
        later = service.list_invoices(organization.id, InvoiceStatus.OVERDUE, today=due + timedelta(days=1))
        assert [view.number for view in later["items"]] == [invoice["number"]]


class TestPortalInvoices:

    def test_drafts_hidden_from_customer(self, client, customer_headers, customer, create_invoice):
        draft = create_invoice(customer.id, status="draft")
        sent = create_invoice(customer.id)

        listed = client.get("/portal/invoices", headers=customer_headers).json()
        assert [i["id"] for i in listed["items"]] == [sent["id"]]

        response = client.get(f"/portal/invoices/{draft['id']}", headers=customer_headers)
        assert response.status_code == 404

    def test_foreign_invoice_forbidden(self, client, customer_headers, other_customer, create_invoice):
        invoice = create_invoice(other_customer.id)
        response = client.get(f"/portal/invoices/{invoice['id']}", headers=customer_headers)
        assert response.status_code == 403

    def test_detail_shows_running_balance(self, client, admin_headers, customer_headers, customer,
                                          create_invoice, submit_payment):
        invoice = create_invoice(customer.id)
        first = submit_payment("300", [(invoice["id"], "300")], payment_date=_days_ago(10)).json()
        submit_payment("200", [(invoice["id"], "200")], payment_date=_days_ago(5))
        client.post(f"/payments/{first['id']}/verify", headers=admin_headers)

        detail = client.get(f"/portal/invoices/{invoice['id']}", headers=customer_headers).json()
        assert detail["status"] == "partially_paid"
        assert Decimal(detail["balance_due"]) == Decimal("700.00")
        rows = [(p["payment_status"], Decimal(p["running_balance"])) for p in detail["payments"]]
        assert rows == [("verified", Decimal("700.00")), ("pending_verification", Decimal("700.00"))]
