"""
Tests para notificaciones por email

- Render de templates Jinja2
- Encolado fire-and-forget (deshabilitado, sin email, broker caído)
- Tareas de Celery ejecutadas localmente
"""
from types import SimpleNamespace
from uuid import uuid4

from kombu.exceptions import OperationalError

from app.core.config import settings
from app.modules.email import notifications
from app.modules.email.service import EmailService, email_service, format_money
from app.modules.email.tasks import send_invoice_email_task, send_payment_status_email_task


def _payment(email="ravi@example.in"):
    customer = SimpleNamespace(label="Ravi Kumar", email=email)
    return SimpleNamespace(
        number="PAY-1001",
        status=SimpleNamespace(value="verified"),
        amount="1500.00",
        currency="INR",
        rejection_reason=None,
        customer=customer,
    )


class TestTemplates:

    def test_format_money(self):
        assert format_money("12500.5", "INR") == "INR 12,500.50"
        assert format_money(None) == "None"

    def test_render_invoice_template(self):
        html = EmailService().render_template("invoice_sent.html", {
            "number": "INV-1001",
            "customer_name": "Ravi Kumar",
            "issue_date": "2026-10-01",
            "due_date": "2026-10-16",
            "total": "1000.00",
            "balance_due": "1000.00",
            "currency": "INR",
            "invoice_url": "http://localhost:3000/portal/invoices/1",
        })
        assert "INV-1001" in html
        assert "INR 1,000.00" in html
        assert settings.EMAIL_FROM_NAME in html

    def test_render_payment_templates(self):
        context = {
            "number": "PAY-1001",
            "amount": "500",
            "currency": "INR",
            "customer_name": "Ravi",
            "rejection_reason": "Referencia inválida",
            "invoices": [{"number": "INV-1001", "balance_due": "0.00"}],
        }
        service = EmailService()
        assert "INV-1001" in service.render_template("payment_verified.html", context)
        assert "Referencia inválida" in service.render_template("payment_rejected.html", context)

    def test_send_without_configuration(self, monkeypatch):
        service = EmailService()
        monkeypatch.setattr(service, "from_email", "")
        assert service.send_email(["x@example.in"], "Asunto", html_content="<p>Hola</p>") is False


class TestDispatch:

    def test_disabled_notifications_skip(self, monkeypatch):
        calls = []
        monkeypatch.setattr(settings, "NOTIFICATIONS_ENABLED", False)
        monkeypatch.setattr(send_payment_status_email_task, "delay", lambda *args: calls.append(args))

        assert notifications.notify_payment_status(_payment()) is False
        assert calls == []

    def test_queues_payload(self, monkeypatch):
        calls = []
        monkeypatch.setattr(settings, "NOTIFICATIONS_ENABLED", True)
        monkeypatch.setattr(send_payment_status_email_task, "delay", lambda *args: calls.append(args))

        invoice = SimpleNamespace(number="INV-1001", balance_due="0.00")
        assert notifications.notify_payment_status(_payment(), [invoice]) is True

        to_email, payload = calls[0]
        assert to_email == "ravi@example.in"
        assert payload["status"] == "verified"
        assert payload["invoices"] == [{"number": "INV-1001", "balance_due": "0.00"}]

    def test_missing_email_skips(self, monkeypatch):
        monkeypatch.setattr(settings, "NOTIFICATIONS_ENABLED", True)
        assert notifications.notify_payment_status(_payment(email=None)) is False

    def test_broker_down_does_not_raise(self, monkeypatch):
        def unavailable(*args):
            raise OperationalError("Connection refused")

        monkeypatch.setattr(settings, "NOTIFICATIONS_ENABLED", True)
        monkeypatch.setattr(send_payment_status_email_task, "delay", unavailable)
        assert notifications.notify_payment_status(_payment()) is False


class TestTasks:

    def test_payment_task_renders_and_sends(self, monkeypatch):
        sent = []

        def fake_send(to_emails, subject, html_content=None, text_content=None, cc_emails=None):
            sent.append((to_emails, subject, html_content))
            return True

        monkeypatch.setattr(email_service, "send_email", fake_send)
        result = send_payment_status_email_task.apply(args=["ravi@example.in", {
            "number": "PAY-1001", "status": "rejected", "amount": "10", "currency": "INR",
            "rejection_reason": "Duplicado", "invoices": []
        }]).get()

        assert result["status"] == "success"
        to_emails, subject, html = sent[0]
        assert to_emails == ["ravi@example.in"]
        assert subject == "Pago PAY-1001 rechazado"
        assert "Duplicado" in html

    def test_subject_carries_organization(self, monkeypatch):
        sent = []

        def fake_send(to_emails, subject, html_content=None, text_content=None, cc_emails=None):
            sent.append((subject, html_content))
            return True

        monkeypatch.setattr(email_service, "send_email", fake_send)
        send_payment_status_email_task.apply(args=["ravi@example.in", {
            "number": "PAY-1002", "status": "verified", "amount": "10", "currency": "INR",
            "organization_name": "Acme Billing", "invoices": []
        }]).get()

        subject, html = sent[0]
        assert subject == "Pago PAY-1002 verificado - Acme Billing"
        assert "Acme Billing" in html


class TestOrganizationName:

    def test_lookup(self, db_session, organization):
        assert notifications.organization_name_for(db_session, organization.id) == "Acme Billing"
        assert notifications.organization_name_for(db_session, uuid4()) == ""

    def test_invoice_and_payment_payloads(self, monkeypatch, client, admin_headers, customer,
                                          create_invoice, submit_payment):
        queued = []
        monkeypatch.setattr(settings, "NOTIFICATIONS_ENABLED", True)
        monkeypatch.setattr(send_invoice_email_task, "delay", lambda *args: queued.append(args))
        monkeypatch.setattr(send_payment_status_email_task, "delay", lambda *args: queued.append(args))

        invoice = create_invoice(customer.id)
        payment = submit_payment("100", [(invoice["id"], "100")]).json()
        client.post(f"/payments/{payment['id']}/verify", headers=admin_headers)

        assert [payload["number"] for _, payload in queued] == [invoice["number"], payment["number"]]
        assert {payload["organization_name"] for _, payload in queued} == {"Acme Billing"}
