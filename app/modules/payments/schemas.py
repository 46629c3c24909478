from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime

from app.modules.customers.schemas import CustomerSummary
from app.modules.payments.ledger import MAX_MONEY, PaymentStatus
from app.modules.payments.models import PaymentMode


class AllocationCreate(BaseModel):
    invoice_id: UUID
    applied_amount: Decimal = Field(..., gt=0, le=MAX_MONEY, description="Monto aplicado a la factura")


class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, le=MAX_MONEY, description="Monto debe ser mayor a 0")
    payment_date: date = Field(default_factory=date.today)
    mode: PaymentMode = PaymentMode.BANK_TRANSFER
    reference_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    attachments: List[str] = Field(default_factory=list, description="Referencias a comprobantes")
    bank_charges: Decimal = Field(Decimal("0"), ge=0, le=MAX_MONEY)
    tds_amount: Decimal = Field(Decimal("0"), ge=0, le=MAX_MONEY)
    allocations: List[AllocationCreate] = Field(default_factory=list)

    @field_validator('payment_date')
    @classmethod
    def validate_payment_date(cls, v):
        if v > date.today():
            raise ValueError('La fecha del pago no puede ser futura')
        return v


class PaymentReject(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class AllocationOut(BaseModel):
    invoice_id: UUID
    invoice_number: str
    applied_amount: Decimal


class PaymentOut(BaseModel):
    id: UUID
    number: str
    customer_id: UUID
    customer: Optional[CustomerSummary] = None
    amount: Decimal
    currency: str
    payment_date: date
    mode: PaymentMode
    reference_number: Optional[str]
    notes: Optional[str]
    attachments: Optional[List[str]]
    bank_charges: Decimal
    tds_amount: Decimal
    status: PaymentStatus
    unused_amount: Decimal
    verified_at: Optional[datetime]
    rejection_reason: Optional[str]
    allocations: List[AllocationOut] = []
    created_at: datetime


class PaymentList(BaseModel):
    items: List[PaymentOut]
    total: int
    limit: int
    offset: int
