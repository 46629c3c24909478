"""
Tests para el módulo de Pagos

- Ledger: normalización de estados, saldo, asignaciones y máquina de estados
- Registro de pagos del portal con asignación a facturas
- Verificación / rechazo por el administrador y recálculo de saldos
- Historial y recibos del cliente
"""
import threading
import time

import pytest
from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

from app.common.exceptions import ConflictError, ValidationError
from app.common.locks import KeyedLock
from app.modules.payments.ledger import (
    BalanceSummary, InvoiceStatus, PaymentOutcome, PaymentStatus,
    affects_balance, calculate_balance, canonical_payment_status, normalize_payment_status,
    resolve_invoice_status, running_balances, to_money, transition_payment, validate_allocations
)


# ===== LEDGER =====

class TestPaymentStatusNormalizer:

    @pytest.mark.parametrize("status", [
        "PAID", "paid", "Verified", PaymentStatus.VERIFIED, "Received",
        "PaidSuccess", "PAID_SUCCESS", "Verified Payment", "PAID_SUCCESSFUL",
    ])
    def test_counted(self, status):
        assert normalize_payment_status(status) is PaymentOutcome.COUNTED

    @pytest.mark.parametrize("status", [
        None, "", "Pending Verification", PaymentStatus.PENDING_VERIFICATION,
        PaymentStatus.REJECTED, "failed", "paidd", 42,
    ])
    def test_not_counted(self, status):
        assert normalize_payment_status(status) is PaymentOutcome.NOT_COUNTED

    def test_canonical_status_for_import(self):
        assert canonical_payment_status("PAID_SUCCESS") is PaymentStatus.VERIFIED
        assert canonical_payment_status("Pending Verification") is PaymentStatus.PENDING_VERIFICATION
        assert canonical_payment_status("Failed") is PaymentStatus.REJECTED
        assert canonical_payment_status(None) is PaymentStatus.PENDING_VERIFICATION


class TestBalanceCalculator:

    def test_verified_and_pending(self):
        summary = calculate_balance(Decimal("1000.00"), [
            {"amount": "400", "status": "Verified"},
            {"amount": "200", "status": "Pending Verification"},
        ])
        assert summary == BalanceSummary(Decimal("1000.00"), Decimal("400.00"), Decimal("600.00"))

    def test_settled_then_overpaid_stays_zero(self):
        payments = [{"amount": "500", "status": "PAID_SUCCESS"}]
        assert calculate_balance("500.00", payments).balance_due == Decimal("0.00")

        for status in ("PAID_SUCCESS", "Pending Verification", None):
            summary = calculate_balance("500.00", payments + [{"amount": "500", "status": status}])
            assert summary.balance_due == Decimal("0.00")

    def test_none_payments_and_zero_total(self):
        assert calculate_balance("250", None).balance_due == Decimal("250.00")
        assert calculate_balance("0", [{"amount": "10", "status": "paid"}]).balance_due == Decimal("0.00")

    def test_float_amounts_go_through_str(self):
        summary = calculate_balance(0.3, [{"amount": 0.1, "status": "paid"}, {"amount": 0.2, "status": "paid"}])
        assert summary.amount_paid == Decimal("0.30")
        assert summary.balance_due == Decimal("0.00")

    def test_accepts_objects(self):
        payments = [SimpleNamespace(amount=Decimal("100"), status=PaymentStatus.VERIFIED)]
        assert calculate_balance("300", payments).amount_paid == Decimal("100.00")

    @pytest.mark.parametrize("total, amount", [("-1", "0"), ("abc", "0"), ("100", "-5"), ("100", "NaN")])
    def test_invalid_amounts(self, total, amount):
        with pytest.raises(ValidationError):
            calculate_balance(total, [{"amount": amount, "status": "paid"}])

    def test_bool_is_not_money(self):
        with pytest.raises(ValidationError):
            to_money(True)

    @pytest.mark.parametrize("total, amounts", [
        ("1000", ["100", "250.50"]),
        ("99.99", ["99.99"]),
        ("10", ["7", "7"]),
    ])
    def test_balance_properties(self, total, amounts):
        payments = [{"amount": a, "status": "verified"} for a in amounts]
        summary = calculate_balance(total, payments)
        assert summary.balance_due >= 0
        if summary.amount_paid <= summary.total:
            assert summary.amount_paid + summary.balance_due == summary.total
        else:
            assert summary.balance_due == 0
        assert calculate_balance(total, payments) == summary

    def test_running_balances(self):
        payments = [
            {"amount": "300", "status": "verified"},
            {"amount": "200", "status": "pending_verification"},
            {"amount": "900", "status": "verified"},
        ]
        balances = [balance for _, balance in running_balances("1000", payments)]
        assert balances == [Decimal("700.00"), Decimal("700.00"), Decimal("0.00")]


class TestAllocationLedger:

    def test_unused_credit(self):
        allocations = [{"invoice_id": uuid4(), "applied_amount": "600"}]
        assert validate_allocations("1000", allocations) == Decimal("400.00")

    def test_over_allocation_rejected(self):
        allocations = [
            {"invoice_id": uuid4(), "applied_amount": "600"},
            {"invoice_id": uuid4(), "applied_amount": "500"},
        ]
        with pytest.raises(ValidationError):
            validate_allocations("1000", allocations)

    def test_duplicate_invoice_rejected(self):
        invoice_id = uuid4()
        with pytest.raises(ValidationError):
            validate_allocations("1000", [
                {"invoice_id": invoice_id, "applied_amount": "100"},
                {"invoice_id": invoice_id, "applied_amount": "100"},
            ])

    @pytest.mark.parametrize("amount, applied", [("0", "1"), ("100", "0"), ("100", "x")])
    def test_non_positive_amounts_rejected(self, amount, applied):
        with pytest.raises(ValidationError):
            validate_allocations(amount, [{"invoice_id": uuid4(), "applied_amount": applied}])

    @pytest.mark.parametrize("amount", ["1e30", "10000000000000", Decimal("1E+40")])
    def test_oversized_amounts_rejected(self, amount):
        with pytest.raises(ValidationError):
            validate_allocations(amount, [])
        with pytest.raises(ValidationError):
            to_money(amount)

    def test_largest_amount_accepted(self):
        assert to_money("9999999999999.99") == Decimal("9999999999999.99")

    def test_transitions(self):
        assert transition_payment(PaymentStatus.PENDING_VERIFICATION, PaymentStatus.VERIFIED) is PaymentStatus.VERIFIED
        for terminal in (PaymentStatus.VERIFIED, PaymentStatus.REJECTED):
            for target in PaymentStatus:
                with pytest.raises(ConflictError):
                    transition_payment(terminal, target)
        with pytest.raises(ConflictError):
            transition_payment(PaymentStatus.PENDING_VERIFICATION, PaymentStatus.PENDING_VERIFICATION)

    def test_affects_balance(self):
        assert affects_balance(PaymentStatus.PENDING_VERIFICATION, PaymentStatus.VERIFIED)
        assert not affects_balance(PaymentStatus.PENDING_VERIFICATION, PaymentStatus.REJECTED)

    def test_resolve_invoice_status(self):
        today = date(2026, 6, 1)
        unpaid = calculate_balance("100", [])
        partial = calculate_balance("100", [{"amount": "40", "status": "verified"}])
        paid = calculate_balance("100", [{"amount": "100", "status": "verified"}])

        assert resolve_invoice_status(InvoiceStatus.SENT, paid, None, today) is InvoiceStatus.PAID
        assert resolve_invoice_status(InvoiceStatus.OVERDUE, partial, None, today) is InvoiceStatus.PARTIALLY_PAID
        assert resolve_invoice_status(InvoiceStatus.SENT, unpaid, today - timedelta(days=1), today) \
            is InvoiceStatus.OVERDUE
        assert resolve_invoice_status(InvoiceStatus.PAID, unpaid, today, today) is InvoiceStatus.SENT
        assert resolve_invoice_status(InvoiceStatus.DRAFT, paid, None, today) is InvoiceStatus.DRAFT
        assert resolve_invoice_status(InvoiceStatus.VOID, unpaid, None, today) is InvoiceStatus.VOID


class TestKeyedLock:

    def test_same_key_is_serialized(self):
        locks = KeyedLock()
        inside = []
        overlaps = []

        def worker():
            with locks.hold("pay-1"):
                inside.append(1)
                if len(inside) > 1:
                    overlaps.append(True)
                time.sleep(0.01)
                inside.pop()

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert overlaps == []
        # sin waiters el registro queda vacío
        assert len(locks) == 0

    def test_different_keys_do_not_block(self):
        locks = KeyedLock()
        with locks.hold("pay-1"):
            with locks.hold("pay-2"):
                assert len(locks) == 2


# ===== API =====

class TestSubmitPayment:

    def test_submit_is_pending_with_unused_credit(self, client, admin_headers, customer, create_invoice,
                                                  submit_payment):
        invoice = create_invoice(customer.id)
        response = submit_payment("1200", [(invoice["id"], "1000")], reference_number="UTR123",
                                  attachments=["receipts/utr123.pdf"])

        assert response.status_code == 201
        payment = response.json()
        assert payment["number"] == "PAY-1001"
        assert payment["status"] == "pending_verification"
        assert Decimal(payment["unused_amount"]) == Decimal("200.00")
        assert payment["allocations"][0]["invoice_number"] == invoice["number"]

        # pendiente: el saldo no cambia
        detail = client.get(f"/invoices/{invoice['id']}", headers=admin_headers).json()
        assert Decimal(detail["balance_due"]) == Decimal("1000.00")
        assert detail["activities"][-1]["action"] == "payment_recorded"

    def test_over_allocation_rejected(self, customer, create_invoice, submit_payment):
        first = create_invoice(customer.id)
        second = create_invoice(customer.id)
        response = submit_payment("1000", [(first["id"], "600"), (second["id"], "500")])
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_foreign_or_draft_invoice_rejected(self, customer, other_customer, create_invoice, submit_payment):
        foreign = create_invoice(other_customer.id)
        draft = create_invoice(customer.id, status="draft")

        assert submit_payment("100", [(foreign["id"], "100")]).status_code == 422
        assert submit_payment("100", [(draft["id"], "100")]).status_code == 422
        assert submit_payment("100", [(str(uuid4()), "100")]).status_code == 422

    def test_future_date_rejected(self, submit_payment, customer):
        tomorrow = (date.today() + timedelta(days=1)).isoformat()
        assert submit_payment("100", payment_date=tomorrow).status_code == 422

    def test_zero_amount_rejected(self, submit_payment, customer):
        assert submit_payment("0").status_code == 422

    def test_oversized_amount_rejected(self, submit_payment, customer, create_invoice):
        invoice = create_invoice(customer.id)
        for amount in ("1e30", "10000000000000"):
            assert submit_payment(amount, [(invoice["id"], "100")]).status_code == 422


class TestVerification:

    def test_verify_updates_balance_and_status(self, client, admin_headers, customer_headers, customer,
                                               create_invoice, submit_payment):
        invoice = create_invoice(customer.id)
        first = submit_payment("400", [(invoice["id"], "400")]).json()
        submit_payment("200", [(invoice["id"], "200")])

        verified = client.post(f"/payments/{first['id']}/verify", headers=admin_headers)
        assert verified.status_code == 200
        assert verified.json()["status"] == "verified"
        assert verified.json()["verified_at"] is not None

        detail = client.get(f"/invoices/{invoice['id']}", headers=admin_headers).json()
        assert detail["status"] == "partially_paid"
        assert Decimal(detail["amount_paid"]) == Decimal("400.00")
        assert Decimal(detail["balance_due"]) == Decimal("600.00")

        receipts = client.get("/portal/receipts", headers=customer_headers).json()
        assert [p["id"] for p in receipts["items"]] == [first["id"]]
        history = client.get("/portal/payments", headers=customer_headers).json()
        assert history["total"] == 2

    def test_full_payment_marks_paid(self, client, admin_headers, customer, create_invoice, submit_payment):
        invoice = create_invoice(customer.id, rate="500.00")
        payment = submit_payment("500", [(invoice["id"], "500")]).json()
        client.post(f"/payments/{payment['id']}/verify", headers=admin_headers)

        detail = client.get(f"/invoices/{invoice['id']}", headers=admin_headers).json()
        assert detail["status"] == "paid"
        assert Decimal(detail["balance_due"]) == Decimal("0.00")

    def test_payment_split_across_invoices(self, client, admin_headers, customer, create_invoice,
                                           submit_payment):
        first = create_invoice(customer.id, rate="300")
        second = create_invoice(customer.id, rate="700")
        payment = submit_payment("800", [(first["id"], "300"), (second["id"], "500")]).json()
        client.post(f"/payments/{payment['id']}/verify", headers=admin_headers)

        assert client.get(f"/invoices/{first['id']}", headers=admin_headers).json()["status"] == "paid"
        second_detail = client.get(f"/invoices/{second['id']}", headers=admin_headers).json()
        assert Decimal(second_detail["balance_due"]) == Decimal("200.00")

    def test_verify_twice_conflict(self, client, admin_headers, customer, create_invoice, submit_payment):
        invoice = create_invoice(customer.id)
        payment = submit_payment("100", [(invoice["id"], "100")]).json()

        assert client.post(f"/payments/{payment['id']}/verify", headers=admin_headers).status_code == 200
        again = client.post(f"/payments/{payment['id']}/verify", headers=admin_headers)
        assert again.status_code == 409
        assert client.post(f"/payments/{payment['id']}/reject", headers=admin_headers).status_code == 409

        detail = client.get(f"/invoices/{invoice['id']}", headers=admin_headers).json()
        assert Decimal(detail["amount_paid"]) == Decimal("100.00")

    def test_reject_keeps_balance(self, client, admin_headers, customer, create_invoice, submit_payment):
        invoice = create_invoice(customer.id)
        payment = submit_payment("100", [(invoice["id"], "100")]).json()

        rejected = client.post(f"/payments/{payment['id']}/reject", json={"reason": "UTR inválido"},
                               headers=admin_headers)
        assert rejected.status_code == 200
        assert rejected.json()["rejection_reason"] == "UTR inválido"
        assert client.post(f"/payments/{payment['id']}/verify", headers=admin_headers).status_code == 409

        detail = client.get(f"/invoices/{invoice['id']}", headers=admin_headers).json()
        assert detail["status"] == "sent"
        assert Decimal(detail["balance_due"]) == Decimal("1000.00")

    def test_verify_against_void_invoice_conflict(self, client, admin_headers, customer, create_invoice,
                                                  submit_payment):
        invoice = create_invoice(customer.id)
        payment = submit_payment("100", [(invoice["id"], "100")]).json()
        client.post(f"/invoices/{invoice['id']}/void", headers=admin_headers)

        response = client.post(f"/payments/{payment['id']}/verify", headers=admin_headers)
        assert response.status_code == 409
        status = client.get(f"/payments/{payment['id']}", headers=admin_headers).json()["status"]
        assert status == "pending_verification"

    def test_unknown_payment(self, client, admin_headers):
        assert client.post(f"/payments/{uuid4()}/verify", headers=admin_headers).status_code == 404

    def test_list_filters(self, client, admin_headers, customer, create_invoice, submit_payment):
        first = create_invoice(customer.id)
        second = create_invoice(customer.id)
        verified = submit_payment("100", [(first["id"], "100")]).json()
        submit_payment("50", [(second["id"], "50")])
        client.post(f"/payments/{verified['id']}/verify", headers=admin_headers)

        queue = client.get("/payments/", params={"status": "pending_verification"}, headers=admin_headers).json()
        assert queue["total"] == 1

        by_invoice = client.get("/payments/", params={"invoice_id": first["id"]}, headers=admin_headers).json()
        assert [p["id"] for p in by_invoice["items"]] == [verified["id"]]
