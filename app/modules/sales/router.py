"""
Routers de Cotizaciones y Órdenes de venta

- /quotes, /sales-orders: administradores
- /portal/requests, /portal/quotes, /portal/sales-orders: cliente autenticado
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.customers.service import get_portal_customer
from app.modules.invoices.schemas import InvoiceOut
from app.modules.sales.models import SalesDocumentStatus, OrderInvoiceStatus
from app.modules.sales.schemas import (
    SalesRequestCreate, SalesRequestResult, SalesDocumentUpdate, SalesOrderAction,
    QuoteOut, QuoteList, SalesOrderOut, SalesOrderList
)
from app.modules.sales.service import SalesService

quotes_router = APIRouter(prefix="/quotes", tags=["Quotes"])
sales_orders_router = APIRouter(prefix="/sales-orders", tags=["Sales Orders"])
portal_router = APIRouter(prefix="/portal", tags=["Customer Portal"])


# ===== Cotizaciones (admin) =====

@quotes_router.get("/", response_model=QuoteList)
def list_quotes(
    status_filter: Optional[SalesDocumentStatus] = Query(None, alias="status"),
    customer_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    return SalesService(db).list_quotes(auth_context.tenant_id, status_filter, customer_id, limit=limit, offset=offset)


@quotes_router.get("/{quote_id}", response_model=QuoteOut)
def get_quote(
    quote_id: UUID,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    return SalesService(db).get_quote(quote_id, auth_context.tenant_id)


@quotes_router.put("/{quote_id}", response_model=QuoteOut)
def update_quote(
    quote_id: UUID,
    update: SalesDocumentUpdate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    """Editar líneas y precios de una cotización en borrador"""
    return SalesService(db).update_quote(quote_id, auth_context.tenant_id, update)


@quotes_router.post("/{quote_id}/send", response_model=QuoteOut)
def send_quote(
    quote_id: UUID,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    return SalesService(db).send_quote(quote_id, auth_context.tenant_id)


@quotes_router.post("/{quote_id}/scrap", response_model=QuoteOut)
def scrap_quote(
    quote_id: UUID,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    return SalesService(db).scrap_quote(quote_id, auth_context.tenant_id)


# ===== Órdenes de venta (admin) =====

@sales_orders_router.get("/", response_model=SalesOrderList)
def list_sales_orders(
    status_filter: Optional[SalesDocumentStatus] = Query(None, alias="status"),
    invoice_status: Optional[OrderInvoiceStatus] = Query(None),
    customer_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    return SalesService(db).list_sales_orders(
        auth_context.tenant_id, status_filter, invoice_status, customer_id, limit=limit, offset=offset
    )


@sales_orders_router.get("/{order_id}", response_model=SalesOrderOut)
def get_sales_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    return SalesService(db).get_sales_order(order_id, auth_context.tenant_id)


@sales_orders_router.put("/{order_id}", response_model=SalesOrderOut)
def update_sales_order(
    order_id: UUID,
    update: SalesDocumentUpdate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    return SalesService(db).update_sales_order(order_id, auth_context.tenant_id, update)


@sales_orders_router.post("/{order_id}/send", response_model=SalesOrderOut)
def send_sales_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    return SalesService(db).send_sales_order(order_id, auth_context.tenant_id)


@sales_orders_router.post("/{order_id}/generate-invoice", response_model=InvoiceOut,
                          status_code=status.HTTP_201_CREATED)
def generate_invoice(
    order_id: UUID,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_admin())
):
    """
    Generar la factura de una orden aprobada.

    Una orden se factura una sola vez; un segundo intento responde 409.
    """
    return SalesService(db).generate_invoice(order_id, auth_context.tenant_id, auth_context.user_id)


# ===== Portal =====

@portal_router.post("/requests", response_model=SalesRequestResult, status_code=status.HTTP_201_CREATED)
def submit_request(
    request: SalesRequestCreate,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_customer())
):
    """Solicitar cotización y/o orden de venta (quedan en borrador para el admin)"""
    customer = get_portal_customer(db, auth_context)
    return SalesService(db).submit_request(customer, request)


@portal_router.get("/quotes", response_model=QuoteList)
def list_my_quotes(
    status_filter: Optional[SalesDocumentStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_customer())
):
    customer = get_portal_customer(db, auth_context)
    return SalesService(db).list_quotes(
        customer.tenant_id, status_filter, customer.id, exclude_drafts=True, limit=limit, offset=offset
    )


@portal_router.post("/quotes/{quote_id}/approve", response_model=QuoteOut)
def approve_quote(
    quote_id: UUID,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_customer())
):
    customer = get_portal_customer(db, auth_context)
    return SalesService(db).respond_quote(customer, quote_id, approve=True)


@portal_router.post("/quotes/{quote_id}/reject", response_model=QuoteOut)
def reject_quote(
    quote_id: UUID,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_customer())
):
    customer = get_portal_customer(db, auth_context)
    return SalesService(db).respond_quote(customer, quote_id, approve=False)


@portal_router.get("/sales-orders", response_model=SalesOrderList)
def list_my_sales_orders(
    status_filter: Optional[SalesDocumentStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_customer())
):
    customer = get_portal_customer(db, auth_context)
    return SalesService(db).list_sales_orders(
        customer.tenant_id, status_filter, customer_id=customer.id, exclude_drafts=True,
        limit=limit, offset=offset
    )


@portal_router.post("/sales-orders/{order_id}/action", response_model=SalesOrderOut)
def respond_sales_order(
    order_id: UUID,
    body: SalesOrderAction,
    db: Session = Depends(get_db),
    auth_context = Depends(AuthDependencies.require_customer())
):
    customer = get_portal_customer(db, auth_context)
    return SalesService(db).respond_sales_order(customer, order_id, body.action)
