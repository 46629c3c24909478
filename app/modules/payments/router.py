"""
Routers del módulo de Pagos

- /payments: verificación de pagos por administradores
- /portal/payments, /portal/receipts: pagos del cliente autenticado
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.customers.service import get_portal_customer
from app.modules.payments.ledger import PaymentStatus
from app.modules.payments.schemas import PaymentCreate, PaymentReject, PaymentOut, PaymentList
from app.modules.payments.service import PaymentService, payment_view

router = APIRouter(prefix="/payments", tags=["Payments"])
portal_router = APIRouter(prefix="/portal", tags=["Customer Portal"])


@router.get("/", response_model=PaymentList)
def list_payments(
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    customer_id: Optional[UUID] = Query(None),
    invoice_id: Optional[UUID] = Query(None, description="Pagos asignados a esta factura"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    """Listar pagos recibidos (filtrar por estado para la cola de verificación)"""
    return PaymentService(db).list_payments(
        auth_context.tenant_id, status_filter, customer_id, invoice_id, limit, offset
    )


@router.get("/{payment_id}", response_model=PaymentOut)
def get_payment(
    payment_id: UUID,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    return payment_view(PaymentService(db).get_payment(payment_id, auth_context.tenant_id))


@router.post("/{payment_id}/verify", response_model=PaymentOut)
def verify_payment(
    payment_id: UUID,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    """
    Verificar un pago pendiente.

    Recalcula y persiste el saldo de cada factura asignada en la misma transacción.
    """
    payment = PaymentService(db).verify_payment(payment_id, auth_context.tenant_id, auth_context.user_id)
    return payment_view(payment)


@router.post("/{payment_id}/reject", response_model=PaymentOut)
def reject_payment(
    payment_id: UUID,
    body: Optional[PaymentReject] = None,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    payment = PaymentService(db).reject_payment(
        payment_id, auth_context.tenant_id, auth_context.user_id, body.reason if body else None
    )
    return payment_view(payment)


@portal_router.post("/payments", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
def submit_payment(
    payment_data: PaymentCreate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_customer())
):
    """Registrar un pago y su distribución entre facturas"""
    customer = get_portal_customer(db, auth_context)
    payment = PaymentService(db).submit_payment(customer, payment_data, auth_context.user_id)
    return payment_view(payment)


@portal_router.get("/payments", response_model=PaymentList)
def list_my_payments(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_customer())
):
    customer = get_portal_customer(db, auth_context)
    return PaymentService(db).list_customer_payments(customer, limit, offset)


@portal_router.get("/receipts", response_model=PaymentList)
def list_my_receipts(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_customer())
):
    """Pagos verificados del cliente"""
    customer = get_portal_customer(db, auth_context)
    return PaymentService(db).list_receipts(customer, limit, offset)
