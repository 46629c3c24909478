"""
Esquemas Pydantic para el módulo de Clientes
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from uuid import UUID
from datetime import datetime
import re

from app.common.validators import validate_gstin, validate_india_phone, validate_pincode
from app.modules.customers.models import CustomerType


class Address(BaseModel):
    street: Optional[str] = Field("", max_length=200)
    city: Optional[str] = Field("", max_length=100)
    state: Optional[str] = Field("", max_length=100)
    country: Optional[str] = Field("India", max_length=100)
    pincode: Optional[str] = Field("", max_length=10)

    @field_validator('pincode')
    @classmethod
    def check_pincode(cls, v):
        if v and not validate_pincode(v):
            raise ValueError('PIN code inválido')
        return v


class CustomerProfileFields(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    display_name: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)
    company_name: Optional[str] = Field(None, max_length=200)
    customer_type: CustomerType = CustomerType.BUSINESS
    billing_address: Optional[Address] = None
    shipping_address: Optional[Address] = None
    gstin: Optional[str] = Field(None, max_length=15)
    place_of_supply: Optional[str] = Field(None, max_length=50)

    @field_validator('phone')
    @classmethod
    def check_phone(cls, v):
        if v and not validate_india_phone(v):
            raise ValueError('Teléfono inválido')
        return v

    @field_validator('gstin')
    @classmethod
    def check_gstin(cls, v):
        if v:
            v = v.strip().upper()
            if not validate_gstin(v):
                raise ValueError('GSTIN inválido')
        return v or None


class CustomerProfileUpdate(CustomerProfileFields):
    """Perfil enviado por el propio cliente desde el portal (email viene de la cuenta)"""
    pass


class CustomerCreate(CustomerProfileFields):
    email: Optional[str] = Field(None, max_length=100)
    user_id: Optional[UUID] = None
    notes: Optional[str] = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        if v:
            if not re.match(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$', v):
                raise ValueError('Email inválido')
            return v.lower()
        return v


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    display_name: Optional[str] = Field(None, max_length=200)
    email: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    company_name: Optional[str] = Field(None, max_length=200)
    customer_type: Optional[CustomerType] = None
    billing_address: Optional[Address] = None
    shipping_address: Optional[Address] = None
    gstin: Optional[str] = Field(None, max_length=15)
    place_of_supply: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class CustomerOut(BaseModel):
    id: UUID
    name: str
    display_name: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    company_name: Optional[str]
    customer_type: CustomerType
    billing_address: Optional[Dict[str, Any]]
    shipping_address: Optional[Dict[str, Any]]
    gstin: Optional[str]
    place_of_supply: Optional[str]
    user_id: Optional[UUID]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CustomerSummary(BaseModel):
    """Proyección mínima para facturas, pagos y documentos de venta"""
    id: UUID
    name: str
    email: Optional[str]
    billing_address: Optional[Dict[str, Any]]

    class Config:
        from_attributes = True


class CustomerList(BaseModel):
    items: List[CustomerOut]
    total: int
    limit: int
    offset: int
