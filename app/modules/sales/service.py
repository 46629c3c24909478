"""
Servicios de negocio para Cotizaciones y Órdenes de venta

Flujo:
    cliente solicita (Draft) -> admin ajusta precios y envía (Sent)
    -> cliente aprueba o rechaza -> admin genera la factura de la orden aprobada

Una orden de venta genera a lo sumo una factura.
"""
from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc
from typing import Any, Dict, Optional, Tuple
from uuid import UUID
import logging

from app.common.exceptions import BillingError, ConflictError, NotFoundError, PermissionDeniedError
from app.common.sequences import next_document_number
from app.modules.customers.models import Customer
from app.modules.email.notifications import (
    notify_invoice_sent, notify_sales_document_sent, organization_name_for
)
from app.modules.invoices.models import Invoice
from app.modules.invoices.service import InvoiceService
from app.modules.items.models import RequestType
from app.modules.sales.models import (
    Quote, QuoteLineItem, SalesOrder, SalesOrderLineItem, SalesDocumentStatus, OrderInvoiceStatus
)
from app.modules.sales.schemas import SalesRequestCreate, SalesDocumentUpdate
from app.modules.sales.utils import build_line_items

logger = logging.getLogger(__name__)


class SalesService:
    """Servicio para cotizaciones y órdenes de venta"""

    def __init__(self, db: Session):
        self.db = db

    # ===== Creación =====

    def _new_quote(self, customer: Customer, lines, notes: Optional[str] = None,
                   item_request_id: Optional[UUID] = None) -> Quote:
        line_items, subtotal = build_line_items(QuoteLineItem, lines)
        quote = Quote(
            tenant_id=customer.tenant_id,
            customer_id=customer.id,
            number=next_document_number(self.db, customer.tenant_id, "quote"),
            status=SalesDocumentStatus.DRAFT,
            item_request_id=item_request_id,
            notes=notes,
            subtotal=subtotal,
            total=subtotal,
            line_items=line_items
        )
        self.db.add(quote)
        return quote

    def _new_sales_order(self, customer: Customer, lines, notes: Optional[str] = None,
                         item_request_id: Optional[UUID] = None, quote_id: Optional[UUID] = None) -> SalesOrder:
        line_items, subtotal = build_line_items(SalesOrderLineItem, lines)
        order = SalesOrder(
            tenant_id=customer.tenant_id,
            customer_id=customer.id,
            number=next_document_number(self.db, customer.tenant_id, "sales_order"),
            order_status=SalesDocumentStatus.DRAFT,
            invoice_status=OrderInvoiceStatus.NOT_INVOICED,
            item_request_id=item_request_id,
            quote_id=quote_id,
            notes=notes,
            subtotal=subtotal,
            total=subtotal,
            line_items=line_items
        )
        self.db.add(order)
        return order

    def create_drafts(self, customer: Customer, request_type: RequestType, lines,
                      notes: Optional[str] = None,
                      item_request_id: Optional[UUID] = None) -> Tuple[Optional[Quote], Optional[SalesOrder]]:
        """
        Crear los borradores pedidos por el cliente. No hace commit.

        Con request_type=both la orden de venta queda vinculada a la cotización.
        """
        lines = list(lines)
        quote = order = None
        if request_type.wants_quote:
            quote = self._new_quote(customer, lines, notes, item_request_id)
            self.db.flush()
        if request_type.wants_sales_order:
            order = self._new_sales_order(
                customer, lines, notes, item_request_id, quote.id if quote else None
            )
        return quote, order

    def submit_request(self, customer: Customer, request: SalesRequestCreate) -> Dict[str, Any]:
        """Solicitud del portal: cotización y/o orden de venta en borrador"""
        try:
            quote, order = self.create_drafts(customer, request.request_type, request.line_items, request.notes)
            self.db.commit()
            if quote:
                self.db.refresh(quote)
            if order:
                self.db.refresh(order)
            logger.info(
                f"Customer {customer.id} requested {request.request_type.value}: "
                f"quote={quote.number if quote else None} order={order.number if order else None}"
            )
            return {"quote": quote, "sales_order": order}

        except (HTTPException, BillingError):
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating sales request: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error creando solicitud: {str(e)}"
            )

    # ===== Consultas =====

    def get_quote(self, quote_id: UUID, tenant_id: UUID, for_update: bool = False) -> Quote:
        query = self.db.query(Quote).filter(Quote.id == quote_id, Quote.tenant_id == tenant_id)
        if for_update:
            query = query.with_for_update()
        quote = query.first()
        if not quote:
            raise NotFoundError("Cotización", quote_id)
        return quote

    def get_sales_order(self, order_id: UUID, tenant_id: UUID, for_update: bool = False) -> SalesOrder:
        query = self.db.query(SalesOrder).filter(SalesOrder.id == order_id, SalesOrder.tenant_id == tenant_id)
        if for_update:
            query = query.with_for_update()
        order = query.first()
        if not order:
            raise NotFoundError("Orden de venta", order_id)
        return order

    def list_quotes(self, tenant_id: UUID, status_filter: Optional[SalesDocumentStatus] = None,
                    customer_id: Optional[UUID] = None, exclude_drafts: bool = False,
                    limit: int = 100, offset: int = 0) -> Dict[str, Any]:
        query = self.db.query(Quote).filter(Quote.tenant_id == tenant_id)
        if status_filter:
            query = query.filter(Quote.status == status_filter)
        if customer_id:
            query = query.filter(Quote.customer_id == customer_id)
        if exclude_drafts:
            query = query.filter(Quote.status != SalesDocumentStatus.DRAFT)

        total = query.count()
        quotes = query.options(
            selectinload(Quote.customer), selectinload(Quote.line_items)
        ).order_by(desc(Quote.created_at), desc(Quote.number)).offset(offset).limit(limit).all()
        return {"items": quotes, "total": total, "limit": limit, "offset": offset}

    def list_sales_orders(self, tenant_id: UUID, status_filter: Optional[SalesDocumentStatus] = None,
                          invoice_status: Optional[OrderInvoiceStatus] = None,
                          customer_id: Optional[UUID] = None, exclude_drafts: bool = False,
                          limit: int = 100, offset: int = 0) -> Dict[str, Any]:
        query = self.db.query(SalesOrder).filter(SalesOrder.tenant_id == tenant_id)
        if status_filter:
            query = query.filter(SalesOrder.order_status == status_filter)
        if invoice_status:
            query = query.filter(SalesOrder.invoice_status == invoice_status)
        if customer_id:
            query = query.filter(SalesOrder.customer_id == customer_id)
        if exclude_drafts:
            query = query.filter(SalesOrder.order_status != SalesDocumentStatus.DRAFT)

        total = query.count()
        orders = query.options(
            selectinload(SalesOrder.customer), selectinload(SalesOrder.line_items)
        ).order_by(desc(SalesOrder.created_at), desc(SalesOrder.number)).offset(offset).limit(limit).all()
        return {"items": orders, "total": total, "limit": limit, "offset": offset}

    # ===== Admin =====

    def update_quote(self, quote_id: UUID, tenant_id: UUID, update: SalesDocumentUpdate) -> Quote:
        quote = self.get_quote(quote_id, tenant_id, for_update=True)
        if quote.status != SalesDocumentStatus.DRAFT:
            raise ConflictError("Sólo se pueden editar cotizaciones en borrador")
        if update.line_items is not None:
            quote.line_items, quote.subtotal = build_line_items(QuoteLineItem, update.line_items)
            quote.total = quote.subtotal
        if update.notes is not None:
            quote.notes = update.notes
        if update.expiry_date is not None:
            quote.expiry_date = update.expiry_date
        self.db.commit()
        self.db.refresh(quote)
        return quote

    def update_sales_order(self, order_id: UUID, tenant_id: UUID, update: SalesDocumentUpdate) -> SalesOrder:
        order = self.get_sales_order(order_id, tenant_id, for_update=True)
        if order.order_status != SalesDocumentStatus.DRAFT:
            raise ConflictError("Sólo se pueden editar órdenes de venta en borrador")
        if update.line_items is not None:
            order.line_items, order.subtotal = build_line_items(SalesOrderLineItem, update.line_items)
            order.total = order.subtotal
        if update.notes is not None:
            order.notes = update.notes
        self.db.commit()
        self.db.refresh(order)
        return order

    def send_quote(self, quote_id: UUID, tenant_id: UUID) -> Quote:
        """Draft -> Sent y notificar al cliente"""
        quote = self.get_quote(quote_id, tenant_id, for_update=True)
        if quote.status != SalesDocumentStatus.DRAFT:
            raise ConflictError(f"La cotización no está en borrador (estado: {quote.status.value})")
        quote.status = SalesDocumentStatus.SENT
        self.db.commit()
        self.db.refresh(quote)
        logger.info(f"Quote {quote.number} sent")
        notify_sales_document_sent(quote, "quote", organization_name_for(self.db, tenant_id))
        return quote

    def scrap_quote(self, quote_id: UUID, tenant_id: UUID) -> Quote:
        """Descartar cotización (Draft o Sent -> Rejected)"""
        quote = self.get_quote(quote_id, tenant_id, for_update=True)
        if quote.status not in (SalesDocumentStatus.DRAFT, SalesDocumentStatus.SENT):
            raise ConflictError(f"La cotización ya fue {quote.status.value}")
        quote.status = SalesDocumentStatus.REJECTED
        self.db.commit()
        self.db.refresh(quote)
        logger.info(f"Quote {quote.number} scrapped")
        return quote

    def send_sales_order(self, order_id: UUID, tenant_id: UUID) -> SalesOrder:
        """Draft -> Sent y notificar al cliente"""
        order = self.get_sales_order(order_id, tenant_id, for_update=True)
        if order.order_status != SalesDocumentStatus.DRAFT:
            raise ConflictError(f"La orden de venta no está en borrador (estado: {order.order_status.value})")
        order.order_status = SalesDocumentStatus.SENT
        self.db.commit()
        self.db.refresh(order)
        logger.info(f"Sales order {order.number} sent")
        notify_sales_document_sent(order, "sales_order", organization_name_for(self.db, tenant_id))
        return order

    def generate_invoice(self, order_id: UUID, tenant_id: UUID, user_id: UUID) -> Invoice:
        """
        Generar la factura de una orden aprobada.

        Requiere order_status=approved e invoice_status=not_invoiced; un segundo
        intento es ConflictError. Orden e invoice se escriben en un solo commit.
        """
        try:
            order = self.get_sales_order(order_id, tenant_id, for_update=True)
            if order.invoice_status == OrderInvoiceStatus.INVOICED or order.invoice is not None:
                raise ConflictError(f"La orden de venta {order.number} ya fue facturada")
            if order.order_status != SalesDocumentStatus.APPROVED:
                raise ConflictError(
                    f"La orden de venta debe estar aprobada (estado: {order.order_status.value})"
                )

            invoice = InvoiceService(self.db).create_from_sales_order(order, user_id)
            order.invoice_status = OrderInvoiceStatus.INVOICED

            self.db.commit()
            self.db.refresh(invoice)
            logger.info(f"Invoice {invoice.number} generated from sales order {order.number}")

        except (HTTPException, BillingError):
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error generating invoice for sales order {order_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error generando factura: {str(e)}"
            )

        notify_invoice_sent(invoice, organization_name_for(self.db, tenant_id))
        return invoice

    # ===== Portal =====

    def _owned(self, document, customer: Customer, label: str):
        if document.customer_id != customer.id:
            raise PermissionDeniedError(f"La {label} pertenece a otro cliente")
        return document

    def respond_quote(self, customer: Customer, quote_id: UUID, approve: bool) -> Quote:
        """Aprobar o rechazar una cotización enviada"""
        quote = self._owned(self.get_quote(quote_id, customer.tenant_id, for_update=True), customer, "cotización")
        if quote.status != SalesDocumentStatus.SENT:
            raise ConflictError(f"Sólo se pueden responder cotizaciones enviadas (estado: {quote.status.value})")
        quote.status = SalesDocumentStatus.APPROVED if approve else SalesDocumentStatus.REJECTED
        self.db.commit()
        self.db.refresh(quote)
        logger.info(f"Quote {quote.number} {quote.status.value} by customer {customer.id}")
        return quote

    def respond_sales_order(self, customer: Customer, order_id: UUID, action: str) -> SalesOrder:
        """action: approve | reject"""
        order = self._owned(
            self.get_sales_order(order_id, customer.tenant_id, for_update=True), customer, "orden de venta"
        )
        if order.order_status != SalesDocumentStatus.SENT:
            raise ConflictError(
                f"Sólo se pueden responder órdenes enviadas (estado: {order.order_status.value})"
            )
        order.order_status = SalesDocumentStatus.APPROVED if action == "approve" else SalesDocumentStatus.REJECTED
        self.db.commit()
        self.db.refresh(order)
        logger.info(f"Sales order {order.number} {order.order_status.value} by customer {customer.id}")
        return order
