from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from uuid import UUID
from datetime import datetime
import re

from app.modules.auth.models import UserRole

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


class UserBase(BaseModel):
    email: str = Field(..., max_length=100)
    name: str = Field(..., min_length=1, max_length=200)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        if not re.match(EMAIL_PATTERN, v):
            raise ValueError('Email inválido')
        return v.lower()


class UserCreate(UserBase):
    password: str = Field(..., min_length=8, max_length=128)
    organization_id: UUID


class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = Field(None, max_length=100)
    currency: str = Field("INR", min_length=3, max_length=3)
    admin: UserBase
    admin_password: str = Field(..., min_length=8, max_length=128)


class OrganizationOut(BaseModel):
    id: UUID
    name: str
    email: Optional[str]
    currency: str
    created_at: datetime

    class Config:
        from_attributes = True


class UserLogin(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: UUID
    email: str
    name: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class UserOrganizationOut(BaseModel):
    organization_id: UUID
    organization_name: str
    role: UserRole
    is_active: bool


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut
    organizations: List[UserOrganizationOut] = []


class AuthContext(BaseModel):
    user_id: UUID
    email: str
    tenant_id: Optional[UUID] = None
    user_role: Optional[str] = None
