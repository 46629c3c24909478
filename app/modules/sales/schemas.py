from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List, Literal
from uuid import UUID
from datetime import date, datetime

from app.modules.customers.schemas import CustomerSummary
from app.modules.items.models import RequestType
from app.modules.sales.models import SalesDocumentStatus, OrderInvoiceStatus
from app.modules.payments.ledger import MAX_MONEY, MAX_QUANTITY


# Líneas (compartidas con facturas)
class LineItemCreate(BaseModel):
    item_id: Optional[UUID] = None
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    unit: Optional[str] = Field(None, max_length=20)
    quantity: Decimal = Field(..., gt=0, le=MAX_QUANTITY, description="Cantidad debe ser mayor a 0")
    rate: Decimal = Field(Decimal("0"), ge=0, le=MAX_MONEY, description="Precio unitario")

    @field_validator('quantity')
    @classmethod
    def validate_quantity(cls, v):
        if v <= 0:
            raise ValueError('La cantidad debe ser mayor a 0')
        return v


class LineItemOut(BaseModel):
    id: UUID
    item_id: Optional[UUID]
    name: str
    description: Optional[str]
    unit: Optional[str]
    quantity: Decimal
    rate: Decimal
    amount: Decimal

    class Config:
        from_attributes = True


# Solicitud del portal
class SalesRequestCreate(BaseModel):
    """El cliente pide una cotización y/o una orden de venta"""
    request_type: RequestType = RequestType.QUOTE
    line_items: List[LineItemCreate] = Field(..., min_length=1)
    notes: Optional[str] = None


class SalesDocumentUpdate(BaseModel):
    """Edición de un borrador por el admin (ej: poner precios antes de enviar)"""
    line_items: Optional[List[LineItemCreate]] = Field(None, min_length=1)
    notes: Optional[str] = None
    expiry_date: Optional[date] = None


class SalesOrderAction(BaseModel):
    action: Literal["approve", "reject"]


# Cotizaciones
class QuoteOut(BaseModel):
    id: UUID
    number: str
    quote_date: date
    expiry_date: Optional[date]
    status: SalesDocumentStatus
    currency: str
    subtotal: Decimal
    total: Decimal
    notes: Optional[str]
    item_request_id: Optional[UUID]
    customer: CustomerSummary
    line_items: List[LineItemOut] = []
    created_at: datetime

    class Config:
        from_attributes = True


class QuoteList(BaseModel):
    items: List[QuoteOut]
    total: int
    limit: int
    offset: int


# Órdenes de venta
class SalesOrderOut(BaseModel):
    id: UUID
    number: str
    order_date: date
    order_status: SalesDocumentStatus
    invoice_status: OrderInvoiceStatus
    currency: str
    subtotal: Decimal
    total: Decimal
    notes: Optional[str]
    quote_id: Optional[UUID]
    item_request_id: Optional[UUID]
    invoice_id: Optional[UUID] = None
    customer: CustomerSummary
    line_items: List[LineItemOut] = []
    created_at: datetime

    class Config:
        from_attributes = True


class SalesOrderList(BaseModel):
    items: List[SalesOrderOut]
    total: int
    limit: int
    offset: int


class SalesRequestResult(BaseModel):
    quote: Optional[QuoteOut] = None
    sales_order: Optional[SalesOrderOut] = None
