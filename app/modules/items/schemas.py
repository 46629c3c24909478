from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import datetime

from app.modules.customers.schemas import CustomerSummary
from app.modules.items.models import ItemType, ItemRequestStatus, RequestType
from app.modules.payments.ledger import MAX_MONEY, MAX_QUANTITY


# Catálogo
class ItemBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    item_type: ItemType = ItemType.GOODS
    unit: Optional[str] = Field(None, max_length=20)
    rate: Decimal = Field(Decimal("0"), ge=0, le=MAX_MONEY)
    purchase_rate: Optional[Decimal] = Field(None, ge=0, le=MAX_MONEY)
    tax_preference: str = Field("taxable", max_length=20)


class ItemCreate(ItemBase):
    pass


class ItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    item_type: Optional[ItemType] = None
    unit: Optional[str] = Field(None, max_length=20)
    rate: Optional[Decimal] = Field(None, ge=0, le=MAX_MONEY)
    purchase_rate: Optional[Decimal] = Field(None, ge=0, le=MAX_MONEY)
    tax_preference: Optional[str] = Field(None, max_length=20)
    is_active: Optional[bool] = None


class ItemOut(ItemBase):
    id: UUID
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ItemList(BaseModel):
    items: List[ItemOut]
    total: int
    limit: int
    offset: int


# Solicitudes de items
class ItemRequestCreate(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    quantity: Decimal = Field(Decimal("1"), gt=0, le=MAX_QUANTITY)
    unit: Optional[str] = Field(None, max_length=20)
    request_type: RequestType = RequestType.QUOTE

    @field_validator('item_name')
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('El nombre del item es requerido')
        return v


class ItemRequestStatusUpdate(BaseModel):
    status: ItemRequestStatus
    rejection_reason: Optional[str] = Field(None, max_length=500)
    rate: Optional[Decimal] = Field(None, ge=0, le=MAX_MONEY, description="Precio del item creado al aprobar")


class ItemRequestOut(BaseModel):
    id: UUID
    item_name: str
    description: Optional[str]
    quantity: Decimal
    unit: Optional[str]
    request_type: RequestType
    status: ItemRequestStatus
    rejection_reason: Optional[str]
    item_id: Optional[UUID]
    customer: Optional[CustomerSummary] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ItemRequestSubmitted(BaseModel):
    """Respuesta del portal: la solicitud y los borradores creados a partir de ella"""
    request: ItemRequestOut
    quote_id: Optional[UUID] = None
    quote_number: Optional[str] = None
    sales_order_id: Optional[UUID] = None
    sales_order_number: Optional[str] = None
