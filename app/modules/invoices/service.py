"""
Servicios de negocio para el módulo de Facturas

- Creación directa (admin) y desde una orden de venta aprobada
- Envío, anulación y recálculo administrativo del saldo
- Vistas del portal con saldo recién calculado

El saldo (`amount_paid`, `balance_due`) y el estado derivado sólo se escriben
en `recalculate_balance`, que delega el cálculo al ledger de pagos.
"""
from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import or_, desc
from typing import List, Optional, Dict, Any
from uuid import UUID
from datetime import date, datetime, timedelta, timezone
import logging
from collections import Counter

from app.core.config import settings
from app.common.exceptions import BillingError, ConflictError, NotFoundError, PermissionDeniedError
from app.common.sequences import next_document_number
from app.modules.customers.models import Customer
from app.modules.customers.service import CustomerService
from app.modules.email.notifications import notify_invoice_sent, organization_name_for
from app.modules.invoices.models import (
    Invoice, InvoiceLineItem, InvoiceActivity, CUSTOMER_VISIBLE_STATUSES
)
from app.modules.invoices.schemas import InvoiceCreate, InvoiceOut
from app.modules.payments.ledger import (
    BalanceSummary, InvoiceStatus, PaymentStatus,
    calculate_balance, resolve_invoice_status, running_balances
)
from app.modules.payments.models import PaymentAllocation
from app.modules.sales.utils import build_line_items, copy_line_items

logger = logging.getLogger(__name__)


class InvoiceService:
    """Servicio principal para gestión de facturas"""

    def __init__(self, db: Session):
        self.db = db

    # ===== Consultas =====

    def _base_query(self, tenant_id: UUID):
        return self.db.query(Invoice).filter(Invoice.tenant_id == tenant_id)

    def get_invoice(self, invoice_id: UUID, tenant_id: UUID, for_update: bool = False) -> Invoice:
        query = self._base_query(tenant_id).filter(Invoice.id == invoice_id)
        if for_update:
            query = query.with_for_update()
        invoice = query.first()
        if not invoice:
            raise NotFoundError("Factura", invoice_id)
        return invoice

    def list_invoices(
        self,
        tenant_id: UUID,
        status_filter: Optional[InvoiceStatus] = None,
        customer_id: Optional[UUID] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
        today: Optional[date] = None
    ) -> Dict[str, Any]:
        """
        Listar facturas con filtros y conteo por estado.

        El estado se deriva al leer (una factura enviada cuyo vencimiento ya
        pasó aparece como overdue aunque nadie la haya recalculado), así que
        filtro, conteos y paginación se aplican sobre las vistas.
        """
        query = self._base_query(tenant_id)
        if customer_id:
            query = query.filter(Invoice.customer_id == customer_id)
        if search:
            query = query.outerjoin(Customer, Customer.id == Invoice.customer_id).filter(or_(
                Invoice.number.ilike(f"%{search}%"),
                Customer.name.ilike(f"%{search}%")
            ))

        invoices = query.options(
            selectinload(Invoice.customer),
            selectinload(Invoice.allocations).selectinload(PaymentAllocation.payment)
        ).order_by(desc(Invoice.issue_date), desc(Invoice.created_at)).all()
        views = [self._view(invoice, fresh=True, today=today) for invoice in invoices]

        # Conteos sobre los mismos filtros, sin el de estado
        counts = Counter(view.status for view in views)
        counts_by_status = [{"status": st, "count": counts.get(st, 0)} for st in InvoiceStatus]

        if status_filter:
            views = [view for view in views if view.status == status_filter]

        return {
            "items": views[offset:offset + limit],
            "total": len(views),
            "limit": limit,
            "offset": offset,
            "counts_by_status": counts_by_status
        }

    def payment_rows(self, invoice: Invoice) -> List[Dict[str, Any]]:
        """Pagos aplicados a la factura con saldo acumulado, en orden de fecha"""
        allocations = sorted(
            invoice.allocations,
            key=lambda a: (a.payment.payment_date, a.payment.number)
        )
        entries = [
            {"amount": allocation.applied_amount, "status": allocation.payment.status, "allocation": allocation}
            for allocation in allocations
        ]
        return [
            {
                "payment_id": entry["allocation"].payment_id,
                "payment_number": entry["allocation"].payment.number,
                "payment_date": entry["allocation"].payment.payment_date,
                "payment_status": entry["status"],
                "applied_amount": entry["amount"],
                "running_balance": balance,
            }
            for entry, balance in running_balances(invoice.total, entries)
        ]

    def get_invoice_detail(self, invoice_id: UUID, tenant_id: UUID) -> Dict[str, Any]:
        invoice = self.get_invoice(invoice_id, tenant_id)
        return self._detail(invoice, fresh=True)

    def _detail(self, invoice: Invoice, fresh: bool = False) -> Dict[str, Any]:
        data = self._view(invoice, fresh).model_dump()
        data.update({
            "notes": invoice.notes,
            "sent_at": invoice.sent_at,
            "voided_at": invoice.voided_at,
            "line_items": invoice.line_items,
            "payments": self.payment_rows(invoice),
            "activities": invoice.activities,
        })
        return data

    def _view(self, invoice: Invoice, fresh: bool = False, today: Optional[date] = None) -> InvoiceOut:
        """
        Proyección de la factura.

        Con `fresh` el saldo y el estado se recalculan en memoria sin
        persistir (listados y detalle, admin y portal).
        """
        view = InvoiceOut.model_validate(invoice)
        if not fresh:
            return view
        summary = calculate_balance(invoice.total, invoice.applied_payments)
        return view.model_copy(update={
            "amount_paid": summary.amount_paid,
            "balance_due": summary.balance_due,
            "status": resolve_invoice_status(invoice.status, summary, invoice.due_date, today),
        })

    # ===== Saldo =====

    def recalculate_balance(self, invoice: Invoice, today: Optional[date] = None) -> BalanceSummary:
        """
        Recalcular y asignar amount_paid, balance_due y estado.

        No hace commit: el llamador controla la transacción.
        """
        summary = calculate_balance(invoice.total, invoice.applied_payments)
        invoice.amount_paid = summary.amount_paid
        invoice.balance_due = summary.balance_due
        invoice.status = resolve_invoice_status(invoice.status, summary, invoice.due_date, today)
        return summary

    def add_activity(self, invoice: Invoice, action: str, description: Optional[str] = None,
                     user_id: Optional[UUID] = None) -> InvoiceActivity:
        activity = InvoiceActivity(
            tenant_id=invoice.tenant_id,
            invoice=invoice,
            action=action,
            description=description,
            user_id=user_id
        )
        self.db.add(activity)
        return activity

    # ===== Escritura =====

    def create_invoice(self, invoice_data: InvoiceCreate, tenant_id: UUID, user_id: UUID) -> Invoice:
        """Crear factura directamente (admin)"""
        try:
            customer = CustomerService(self.db).get_customer_by_id(invoice_data.customer_id, tenant_id)

            line_items, subtotal = build_line_items(InvoiceLineItem, invoice_data.items)
            invoice = Invoice(
                tenant_id=tenant_id,
                customer_id=customer.id,
                created_by=user_id,
                number=next_document_number(self.db, tenant_id, "invoice"),
                status=InvoiceStatus.DRAFT,
                issue_date=invoice_data.issue_date,
                due_date=invoice_data.due_date or invoice_data.issue_date + timedelta(days=settings.INVOICE_DUE_DAYS),
                notes=invoice_data.notes,
                subtotal=subtotal,
                total=subtotal,
                line_items=line_items
            )
            self.db.add(invoice)
            self.recalculate_balance(invoice)
            self.add_activity(invoice, "created", f"Factura {invoice.number} creada", user_id)

            if invoice_data.status == InvoiceStatus.SENT:
                self._mark_sent(invoice, user_id)

            self.db.commit()
            self.db.refresh(invoice)
            logger.info(f"Invoice {invoice.number} created with status {invoice.status.value}")

        except (HTTPException, BillingError):
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating invoice: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error creando factura: {str(e)}"
            )

        if invoice.status != InvoiceStatus.DRAFT:
            self._notify_sent(invoice)
        return invoice

    def create_from_sales_order(self, order, user_id: Optional[UUID]) -> Invoice:
        """
        Crear la factura (Sent) de una orden de venta aprobada.

        No hace commit: la orden se marca como facturada en la misma transacción.
        """
        issue_date = date.today()
        invoice = Invoice(
            tenant_id=order.tenant_id,
            customer_id=order.customer_id,
            sales_order_id=order.id,
            created_by=user_id,
            number=next_document_number(self.db, order.tenant_id, "invoice"),
            status=InvoiceStatus.DRAFT,
            issue_date=issue_date,
            due_date=issue_date + timedelta(days=settings.INVOICE_DUE_DAYS),
            notes=order.notes,
            currency=order.currency,
            subtotal=order.subtotal,
            total=order.total,
            line_items=copy_line_items(InvoiceLineItem, order.line_items)
        )
        self.db.add(invoice)
        self.recalculate_balance(invoice)
        self.add_activity(invoice, "created", f"Generada desde la orden de venta {order.number}", user_id)
        self._mark_sent(invoice, user_id)
        return invoice

    def _mark_sent(self, invoice: Invoice, user_id: Optional[UUID]) -> None:
        invoice.status = InvoiceStatus.SENT
        invoice.sent_at = datetime.now(timezone.utc)
        self.recalculate_balance(invoice)
        self.add_activity(invoice, "sent", f"Factura {invoice.number} enviada al cliente", user_id)

    def _notify_sent(self, invoice: Invoice) -> None:
        notify_invoice_sent(invoice, organization_name_for(self.db, invoice.tenant_id))

    def send_invoice(self, invoice_id: UUID, tenant_id: UUID, user_id: UUID) -> Invoice:
        """Draft -> Sent"""
        try:
            invoice = self.get_invoice(invoice_id, tenant_id, for_update=True)
            if invoice.status != InvoiceStatus.DRAFT:
                raise ConflictError(
                    f"Sólo se pueden enviar facturas en borrador (estado actual: {invoice.status.value})"
                )
            self._mark_sent(invoice, user_id)
            self.db.commit()
            self.db.refresh(invoice)
            logger.info(f"Invoice {invoice.number} sent")

        except (HTTPException, BillingError):
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error sending invoice {invoice_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error enviando factura: {str(e)}"
            )

        self._notify_sent(invoice)
        return invoice

    def void_invoice(self, invoice_id: UUID, tenant_id: UUID, user_id: UUID,
                     reason: Optional[str] = None) -> Invoice:
        """
        Anular factura.

        No se permite si ya está anulada o si tiene pagos verificados aplicados.
        Los pagos pendientes asignados quedan pendientes; su verificación será
        rechazada mientras la factura esté anulada.
        """
        try:
            invoice = self.get_invoice(invoice_id, tenant_id, for_update=True)
            if invoice.status == InvoiceStatus.VOID:
                raise ConflictError("La factura ya está anulada")

            verified = [
                a for a in invoice.allocations if a.payment.status == PaymentStatus.VERIFIED
            ]
            if verified:
                raise ConflictError(
                    "No se puede anular una factura con pagos verificados aplicados",
                    payments=", ".join(a.payment.number for a in verified)
                )

            invoice.status = InvoiceStatus.VOID
            invoice.voided_at = datetime.now(timezone.utc)
            self.add_activity(invoice, "voided", reason or "Factura anulada", user_id)
            self.db.commit()
            self.db.refresh(invoice)
            logger.info(f"Invoice {invoice.number} voided")
            return invoice

        except (HTTPException, BillingError):
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error voiding invoice {invoice_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error anulando factura: {str(e)}"
            )

    def recalculate(self, invoice_id: UUID, tenant_id: UUID, user_id: UUID) -> Dict[str, Any]:
        """Corrección administrativa: recalcular saldo y estado desde los pagos actuales"""
        try:
            invoice = self.get_invoice(invoice_id, tenant_id, for_update=True)
            before = (invoice.amount_paid, invoice.balance_due, invoice.status)
            summary = self.recalculate_balance(invoice)
            after = (invoice.amount_paid, invoice.balance_due, invoice.status)

            if before != after:
                self.add_activity(
                    invoice, "recalculated",
                    f"Saldo recalculado: pagado {summary.amount_paid}, pendiente {summary.balance_due}",
                    user_id
                )
                logger.info(f"Invoice {invoice.number} balance corrected: {before} -> {after}")

            self.db.commit()
            self.db.refresh(invoice)

        except (HTTPException, BillingError):
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error recalculating invoice {invoice_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error recalculando factura: {str(e)}"
            )

        return {
            "invoice_id": invoice.id,
            "number": invoice.number,
            "status": invoice.status,
            **summary.as_dict()
        }

    # ===== Portal =====

    def list_customer_invoices(self, customer: Customer, status_filter: Optional[InvoiceStatus] = None,
                               limit: int = 100, offset: int = 0) -> Dict[str, Any]:
        """Facturas del cliente (sin borradores) con saldo recién calculado"""
        query = self._base_query(customer.tenant_id).filter(
            Invoice.customer_id == customer.id,
            Invoice.status.in_(CUSTOMER_VISIBLE_STATUSES)
        )
        invoices = query.options(
            selectinload(Invoice.allocations).selectinload(PaymentAllocation.payment)
        ).order_by(desc(Invoice.issue_date), desc(Invoice.created_at)).all()

        views = [self._view(invoice, fresh=True) for invoice in invoices]
        if status_filter:
            views = [view for view in views if view.status == status_filter]

        return {
            "items": views[offset:offset + limit],
            "total": len(views),
            "limit": limit,
            "offset": offset
        }

    def get_customer_invoice(self, customer: Customer, invoice_id: UUID) -> Dict[str, Any]:
        invoice = self._base_query(customer.tenant_id).filter(Invoice.id == invoice_id).first()
        if not invoice or invoice.status not in CUSTOMER_VISIBLE_STATUSES:
            raise NotFoundError("Factura", invoice_id)
        if invoice.customer_id != customer.id:
            raise PermissionDeniedError("La factura pertenece a otro cliente")
        return self._detail(invoice, fresh=True)
