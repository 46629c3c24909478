from pydantic import BaseModel, Field, field_validator, model_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime

from app.modules.customers.schemas import CustomerSummary
from app.modules.payments.ledger import InvoiceStatus, PaymentStatus
from app.modules.sales.schemas import LineItemCreate, LineItemOut


# Invoice Schemas
class InvoiceCreate(BaseModel):
    customer_id: UUID
    issue_date: date = Field(default_factory=date.today)
    due_date: Optional[date] = None
    notes: Optional[str] = None
    status: InvoiceStatus = InvoiceStatus.DRAFT
    items: List[LineItemCreate] = Field(..., min_length=1, description="Debe incluir al menos un item")

    @model_validator(mode='after')
    def validate_due_date(self):
        if self.due_date and self.issue_date and self.due_date < self.issue_date:
            raise ValueError('La fecha de vencimiento no puede ser anterior a la fecha de emisión')
        return self

    @field_validator('status')
    @classmethod
    def validate_initial_status(cls, v):
        if v not in (InvoiceStatus.DRAFT, InvoiceStatus.SENT):
            raise ValueError('Una factura nueva sólo puede crearse como draft o sent')
        return v


class InvoiceVoid(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class InvoiceOut(BaseModel):
    id: UUID
    number: str
    status: InvoiceStatus
    customer_id: UUID
    customer: Optional[CustomerSummary] = None
    sales_order_id: Optional[UUID]
    issue_date: date
    due_date: Optional[date]
    currency: str
    subtotal: Decimal
    total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class InvoicePaymentOut(BaseModel):
    """Pago aplicado a la factura con el saldo acumulado después de él"""
    payment_id: UUID
    payment_number: str
    payment_date: date
    payment_status: PaymentStatus
    applied_amount: Decimal
    running_balance: Decimal


class InvoiceActivityOut(BaseModel):
    id: UUID
    action: str
    description: Optional[str]
    user_id: Optional[UUID]
    created_at: datetime

    class Config:
        from_attributes = True


class InvoiceDetail(InvoiceOut):
    notes: Optional[str]
    sent_at: Optional[datetime]
    voided_at: Optional[datetime]
    line_items: List[LineItemOut]
    payments: List[InvoicePaymentOut] = []
    activities: List[InvoiceActivityOut] = []


class InvoiceStatusCount(BaseModel):
    status: InvoiceStatus
    count: int


class InvoiceList(BaseModel):
    items: List[InvoiceOut]
    total: int
    limit: int
    offset: int
    counts_by_status: List[InvoiceStatusCount] = Field(default_factory=list)


class InvoiceBalance(BaseModel):
    """Resultado de un recálculo de saldo"""
    invoice_id: UUID
    number: str
    status: InvoiceStatus
    total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
