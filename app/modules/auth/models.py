from sqlalchemy import Column, String, Boolean, ForeignKey, DateTime, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from uuid import uuid4
from datetime import datetime, timezone
from app.database.database import Base
from app.common.mixins import TimestampMixin
import enum


class UserRole(enum.Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    CUSTOMER = "customer"


ADMIN_ROLES = [UserRole.SUPER_ADMIN.value, UserRole.ADMIN.value]
CUSTOMER_ROLES = [UserRole.CUSTOMER.value]


class Organization(Base, TimestampMixin):
    """Organización emisora de facturas (tenant)"""
    __tablename__ = "organizations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(200), nullable=False)
    email = Column(String(100), nullable=True)
    currency = Column(String(3), nullable=False, default="INR")
    is_active = Column(Boolean, default=True)

    user_organizations = relationship("UserOrganization", back_populates="organization", cascade="all, delete-orphan")


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String, unique=True, nullable=False)
    password = Column(String, nullable=False)
    name = Column(String(200), nullable=False)
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime(timezone=True), nullable=True)

    user_organizations = relationship("UserOrganization", back_populates="user", cascade="all, delete-orphan")


class UserOrganization(Base, TimestampMixin):
    __tablename__ = "user_organizations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id"), nullable=False)
    role = Column(String, nullable=False, default=UserRole.CUSTOMER.value)  # super_admin, admin, customer
    is_active = Column(Boolean, default=True)
    joined_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    user = relationship("User", back_populates="user_organizations")
    organization = relationship("Organization", back_populates="user_organizations")

    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uq_user_organization"),
    )
