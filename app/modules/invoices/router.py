"""
Routers del módulo de Facturas

- /invoices: gestión por administradores
- /portal/invoices: facturas del cliente autenticado
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.customers.service import get_portal_customer
from app.modules.invoices.schemas import (
    InvoiceCreate, InvoiceVoid, InvoiceOut, InvoiceDetail, InvoiceList, InvoiceBalance
)
from app.modules.invoices.service import InvoiceService
from app.modules.payments.ledger import InvoiceStatus

router = APIRouter(
    prefix="/invoices",
    tags=["Invoices"],
    responses={404: {"description": "Not found"}}
)

portal_router = APIRouter(prefix="/portal/invoices", tags=["Customer Portal"])


@router.post("/", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
def create_invoice(
    invoice_data: InvoiceCreate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    """
    Crear factura.

    - **status**: draft (por defecto) o sent; una factura enviada notifica al cliente
    - **due_date**: por defecto issue_date + INVOICE_DUE_DAYS
    """
    return InvoiceService(db).create_invoice(invoice_data, auth_context.tenant_id, auth_context.user_id)


@router.get("/", response_model=InvoiceList)
def list_invoices(
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
    customer_id: Optional[UUID] = Query(None),
    search: Optional[str] = Query(None, description="Número de factura o nombre del cliente"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    return InvoiceService(db).list_invoices(
        auth_context.tenant_id, status_filter, customer_id, search, limit, offset
    )


@router.get("/{invoice_id}", response_model=InvoiceDetail)
def get_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    """Detalle con líneas, pagos aplicados (saldo acumulado) y bitácora"""
    return InvoiceService(db).get_invoice_detail(invoice_id, auth_context.tenant_id)


@router.post("/{invoice_id}/send", response_model=InvoiceOut)
def send_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    return InvoiceService(db).send_invoice(invoice_id, auth_context.tenant_id, auth_context.user_id)


@router.post("/{invoice_id}/void", response_model=InvoiceOut)
def void_invoice(
    invoice_id: UUID,
    body: Optional[InvoiceVoid] = None,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    """Anular factura (no permitido con pagos verificados aplicados)"""
    return InvoiceService(db).void_invoice(
        invoice_id, auth_context.tenant_id, auth_context.user_id, body.reason if body else None
    )


@router.post("/{invoice_id}/recalculate", response_model=InvoiceBalance)
def recalculate_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    """Corrección administrativa del saldo a partir de los pagos actuales"""
    return InvoiceService(db).recalculate(invoice_id, auth_context.tenant_id, auth_context.user_id)


@portal_router.get("", response_model=InvoiceList)
def list_my_invoices(
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_customer())
):
    customer = get_portal_customer(db, auth_context)
    return InvoiceService(db).list_customer_invoices(customer, status_filter, limit, offset)


@portal_router.get("/{invoice_id}", response_model=InvoiceDetail)
def get_my_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_customer())
):
    customer = get_portal_customer(db, auth_context)
    return InvoiceService(db).get_customer_invoice(customer, invoice_id)
