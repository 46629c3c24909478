"""
Resumen del portal para el cliente autenticado.

Los saldos se recalculan con el ledger en cada consulta; no dependen de que
el valor persistido en la factura esté al día.
"""
from datetime import date
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from app.modules.customers.models import Customer
from app.modules.invoices.models import Invoice
from app.modules.payments.ledger import (
    ZERO, InvoiceStatus, PaymentStatus, calculate_balance, resolve_invoice_status
)
from app.modules.payments.models import PaymentReceived, PaymentAllocation
from app.modules.sales.models import Quote, SalesOrder, SalesDocumentStatus, OrderInvoiceStatus


class CustomerDashboardService:
    """Métricas de cuenta por cobrar de un cliente"""

    def __init__(self, db: Session, customer: Customer):
        self.db = db
        self.customer = customer

    def _invoice_metrics(self, today: date) -> Dict:
        invoices = self.db.query(Invoice).options(
            selectinload(Invoice.allocations).selectinload(PaymentAllocation.payment)
        ).filter(
            Invoice.tenant_id == self.customer.tenant_id,
            Invoice.customer_id == self.customer.id,
            Invoice.status.notin_([InvoiceStatus.DRAFT, InvoiceStatus.VOID])
        ).all()

        outstanding = overdue_balance = ZERO
        unpaid = overdue = 0
        for invoice in invoices:
            summary = calculate_balance(invoice.total, invoice.applied_payments)
            if summary.balance_due == ZERO:
                continue
            unpaid += 1
            outstanding += summary.balance_due
            if resolve_invoice_status(invoice.status, summary, invoice.due_date, today) == InvoiceStatus.OVERDUE:
                overdue += 1
                overdue_balance += summary.balance_due

        return {
            "outstanding_balance": outstanding,
            "unpaid_invoices": unpaid,
            "overdue_invoices": overdue,
            "overdue_balance": overdue_balance,
        }

    def _payment_metrics(self) -> Dict:
        base = self.db.query(PaymentReceived).filter(
            PaymentReceived.tenant_id == self.customer.tenant_id,
            PaymentReceived.customer_id == self.customer.id
        )
        pending_count, pending_amount = base.filter(
            PaymentReceived.status == PaymentStatus.PENDING_VERIFICATION
        ).with_entities(
            func.count(PaymentReceived.id), func.coalesce(func.sum(PaymentReceived.amount), 0)
        ).one()
        unused = base.filter(
            PaymentReceived.status == PaymentStatus.VERIFIED
        ).with_entities(func.coalesce(func.sum(PaymentReceived.unused_amount), 0)).scalar()

        return {
            "pending_payments": pending_count or 0,
            "pending_payments_amount": Decimal(str(pending_amount or 0)),
            "unused_credit": Decimal(str(unused or 0)),
        }

    def _open_documents(self) -> Dict:
        open_quotes = self.db.query(func.count(Quote.id)).filter(
            Quote.tenant_id == self.customer.tenant_id,
            Quote.customer_id == self.customer.id,
            Quote.status == SalesDocumentStatus.SENT
        ).scalar()
        open_orders = self.db.query(func.count(SalesOrder.id)).filter(
            SalesOrder.tenant_id == self.customer.tenant_id,
            SalesOrder.customer_id == self.customer.id,
            SalesOrder.order_status.in_([SalesDocumentStatus.SENT, SalesDocumentStatus.APPROVED]),
            SalesOrder.invoice_status == OrderInvoiceStatus.NOT_INVOICED
        ).scalar()
        return {"open_quotes": open_quotes or 0, "open_sales_orders": open_orders or 0}

    def get_summary(self, currency: str, today: Optional[date] = None) -> Dict:
        today = today or date.today()
        return {
            "currency": currency,
            **self._invoice_metrics(today),
            **self._payment_metrics(),
            **self._open_documents(),
        }
