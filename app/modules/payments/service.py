"""
Servicios de negocio para el módulo de Pagos

- Registro de pagos por el cliente (PendingVerification) con asignación a facturas
- Verificación / rechazo por el administrador
- Historial y recibos del cliente

La verificación es un ciclo read-modify-write: lock en proceso por pago,
SELECT ... FOR UPDATE del pago y de cada factura asignada (en orden de id),
recálculo de saldos y un único commit. Las notificaciones salen después del
commit.
"""
from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc
from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import datetime, timezone
import logging

from app.common.exceptions import BillingError, ConflictError, NotFoundError, ValidationError
from app.common.locks import payment_locks
from app.common.sequences import next_document_number
from app.modules.customers.models import Customer
from app.modules.email.notifications import notify_payment_status, organization_name_for
from app.modules.invoices.models import Invoice, PAYABLE_STATUSES
from app.modules.invoices.service import InvoiceService
from app.modules.payments.ledger import (
    InvoiceStatus, PaymentStatus, affects_balance, to_money, transition_payment, validate_allocations
)
from app.modules.payments.models import PaymentReceived, PaymentAllocation
from app.modules.payments.schemas import PaymentCreate

logger = logging.getLogger(__name__)


def payment_view(payment: PaymentReceived) -> Dict[str, Any]:
    """Proyección de un pago con el número de cada factura asignada"""
    return {
        "id": payment.id,
        "number": payment.number,
        "customer_id": payment.customer_id,
        "customer": payment.customer,
        "amount": payment.amount,
        "currency": payment.currency,
        "payment_date": payment.payment_date,
        "mode": payment.mode,
        "reference_number": payment.reference_number,
        "notes": payment.notes,
        "attachments": payment.attachments or [],
        "bank_charges": payment.bank_charges,
        "tds_amount": payment.tds_amount,
        "status": payment.status,
        "unused_amount": payment.unused_amount,
        "verified_at": payment.verified_at,
        "rejection_reason": payment.rejection_reason,
        "allocations": [
            {
                "invoice_id": allocation.invoice_id,
                "invoice_number": allocation.invoice.number,
                "applied_amount": allocation.applied_amount,
            }
            for allocation in payment.allocations
        ],
        "created_at": payment.created_at,
    }


class PaymentService:
    """Servicio principal para pagos recibidos"""

    def __init__(self, db: Session):
        self.db = db
        self.invoices = InvoiceService(db)

    def _base_query(self, tenant_id: UUID):
        return self.db.query(PaymentReceived).filter(PaymentReceived.tenant_id == tenant_id)

    def get_payment(self, payment_id: UUID, tenant_id: UUID, for_update: bool = False) -> PaymentReceived:
        query = self._base_query(tenant_id).filter(PaymentReceived.id == payment_id)
        if for_update:
            query = query.with_for_update()
        payment = query.first()
        if not payment:
            raise NotFoundError("Pago", payment_id)
        return payment

    def _paginate(self, query, limit: int, offset: int) -> Dict[str, Any]:
        total = query.count()
        payments = query.options(
            selectinload(PaymentReceived.customer),
            selectinload(PaymentReceived.allocations).selectinload(PaymentAllocation.invoice)
        ).order_by(
            desc(PaymentReceived.payment_date), desc(PaymentReceived.created_at), desc(PaymentReceived.number)
        ).offset(offset).limit(limit).all()
        return {
            "items": [payment_view(p) for p in payments],
            "total": total,
            "limit": limit,
            "offset": offset
        }

    # ===== Portal =====

    def submit_payment(self, customer: Customer, data: PaymentCreate, user_id: UUID) -> PaymentReceived:
        """
        Registrar un pago del cliente.

        Cada factura asignada debe existir en la organización, ser del cliente
        y estar emitida (no borrador ni anulada). El pago queda pendiente de
        verificación; el remanente no asignado se guarda como unused_amount.
        """
        try:
            unused = validate_allocations(data.amount, data.allocations)

            invoices = {}
            for allocation in data.allocations:
                invoice = self.db.query(Invoice).filter(
                    Invoice.id == allocation.invoice_id,
                    Invoice.tenant_id == customer.tenant_id,
                    Invoice.customer_id == customer.id
                ).first()
                if not invoice or invoice.status not in PAYABLE_STATUSES:
                    raise ValidationError(
                        f"Factura {allocation.invoice_id} no encontrada",
                        invoice_id=allocation.invoice_id
                    )
                invoices[invoice.id] = invoice

            payment = PaymentReceived(
                tenant_id=customer.tenant_id,
                customer_id=customer.id,
                number=next_document_number(self.db, customer.tenant_id, "payment"),
                amount=to_money(data.amount),
                payment_date=data.payment_date,
                mode=data.mode,
                reference_number=data.reference_number,
                notes=data.notes,
                attachments=data.attachments,
                bank_charges=to_money(data.bank_charges, "bank_charges"),
                tds_amount=to_money(data.tds_amount, "tds_amount"),
                status=PaymentStatus.PENDING_VERIFICATION,
                unused_amount=unused,
                allocations=[
                    PaymentAllocation(
                        tenant_id=customer.tenant_id,
                        invoice_id=allocation.invoice_id,
                        applied_amount=to_money(allocation.applied_amount, "applied_amount")
                    )
                    for allocation in data.allocations
                ]
            )
            self.db.add(payment)

            for allocation in data.allocations:
                self.invoices.add_activity(
                    invoices[allocation.invoice_id],
                    "payment_recorded",
                    f"Pago {payment.number} por {to_money(allocation.applied_amount)} registrado, pendiente de verificación",
                    user_id
                )

            self.db.commit()
            self.db.refresh(payment)
            logger.info(f"Payment {payment.number} submitted by customer {customer.id} ({payment.amount})")
            return payment

        except (HTTPException, BillingError):
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error submitting payment: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error registrando pago: {str(e)}"
            )

    def list_customer_payments(self, customer: Customer, limit: int = 100, offset: int = 0) -> Dict[str, Any]:
        """Historial de pagos del cliente, más recientes primero"""
        query = self._base_query(customer.tenant_id).filter(PaymentReceived.customer_id == customer.id)
        return self._paginate(query, limit, offset)

    def list_receipts(self, customer: Customer, limit: int = 100, offset: int = 0) -> Dict[str, Any]:
        """Recibos: sólo pagos verificados"""
        query = self._base_query(customer.tenant_id).filter(
            PaymentReceived.customer_id == customer.id,
            PaymentReceived.status == PaymentStatus.VERIFIED
        )
        return self._paginate(query, limit, offset)

    # ===== Admin =====

    def list_payments(self, tenant_id: UUID, status_filter: Optional[PaymentStatus] = None,
                      customer_id: Optional[UUID] = None, invoice_id: Optional[UUID] = None,
                      limit: int = 100, offset: int = 0) -> Dict[str, Any]:
        query = self._base_query(tenant_id)
        if status_filter:
            query = query.filter(PaymentReceived.status == status_filter)
        if customer_id:
            query = query.filter(PaymentReceived.customer_id == customer_id)
        if invoice_id:
            query = query.filter(PaymentReceived.allocations.any(PaymentAllocation.invoice_id == invoice_id))
        return self._paginate(query, limit, offset)

    def verify_payment(self, payment_id: UUID, tenant_id: UUID, user_id: UUID) -> PaymentReceived:
        return self._change_status(payment_id, tenant_id, user_id, PaymentStatus.VERIFIED)

    def reject_payment(self, payment_id: UUID, tenant_id: UUID, user_id: UUID,
                       reason: Optional[str] = None) -> PaymentReceived:
        return self._change_status(payment_id, tenant_id, user_id, PaymentStatus.REJECTED, reason)

    def _lock_invoices(self, payment: PaymentReceived) -> List[Invoice]:
        invoice_ids = sorted(allocation.invoice_id for allocation in payment.allocations)
        if not invoice_ids:
            return []
        return self.db.query(Invoice).filter(
            Invoice.id.in_(invoice_ids)
        ).order_by(Invoice.id).with_for_update().all()

    def _change_status(self, payment_id: UUID, tenant_id: UUID, user_id: UUID,
                       target: PaymentStatus, reason: Optional[str] = None) -> PaymentReceived:
        with payment_locks.hold(payment_id):
            try:
                payment = self.get_payment(payment_id, tenant_id, for_update=True)
                previous = payment.status
                transition_payment(previous, target)

                invoices = self._lock_invoices(payment)
                if target == PaymentStatus.VERIFIED:
                    voided = [invoice.number for invoice in invoices if invoice.status == InvoiceStatus.VOID]
                    if voided:
                        raise ConflictError(
                            "El pago está asignado a facturas anuladas",
                            invoices=", ".join(voided)
                        )

                payment.status = target
                if target == PaymentStatus.VERIFIED:
                    payment.verified_at = datetime.now(timezone.utc)
                    payment.verified_by = user_id
                else:
                    payment.rejection_reason = reason

                action = "payment_verified" if target == PaymentStatus.VERIFIED else "payment_rejected"
                for invoice in invoices:
                    if affects_balance(previous, target):
                        self.invoices.recalculate_balance(invoice)
                    self.invoices.add_activity(
                        invoice, action, f"Pago {payment.number} {target.value}", user_id
                    )

                self.db.commit()
                self.db.refresh(payment)
                logger.info(
                    f"Payment {payment.number} {previous.value} -> {target.value} by {user_id}; "
                    f"{len(invoices)} invoice(s) updated"
                )

            except (HTTPException, BillingError):
                self.db.rollback()
                raise
            except Exception as e:
                self.db.rollback()
                logger.error(f"Error changing payment {payment_id} to {target.value}: {str(e)}")
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail=f"Error actualizando pago: {str(e)}"
                )

        notify_payment_status(payment, invoices, organization_name_for(self.db, payment.tenant_id))
        return payment
