"""
Modelos SQLAlchemy para el módulo de Clientes

Un Customer es el perfil de facturación de un cliente dentro de una organización:
- Datos de contacto y direcciones de facturación/envío
- Identificadores fiscales (GSTIN, place of supply)
- Vínculo explícito con la cuenta de usuario (user_id)

Unicidad garantizada al escribir: un usuario tiene a lo sumo un perfil por
organización, y el email es único por organización.
"""

from app.database.database import Base
from sqlalchemy import Column, String, Boolean, ForeignKey, Text, JSON, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin
import enum


class CustomerType(str, enum.Enum):
    BUSINESS = "business"
    INDIVIDUAL = "individual"


class Customer(Base, TenantMixin, TimestampMixin):
    __tablename__ = "customers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    # Información básica
    name = Column(String(200), nullable=False, index=True)
    display_name = Column(String(200), nullable=True)
    email = Column(String(100), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    company_name = Column(String(200), nullable=True)
    customer_type = Column(String(20), nullable=False, default=CustomerType.BUSINESS.value)

    # Direcciones (JSON flexible) {street, city, state, country, pincode}
    billing_address = Column(JSON, nullable=True)
    shipping_address = Column(JSON, nullable=True)

    # Identificación fiscal
    gstin = Column(String(15), nullable=True)
    place_of_supply = Column(String(50), nullable=True)

    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # Cuenta de usuario del portal (opcional para clientes creados por el admin)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)

    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("tenant_id", "user_id", name="uq_customer_tenant_user"),
        UniqueConstraint("tenant_id", "email", name="uq_customer_tenant_email"),
    )

    @property
    def label(self) -> str:
        return self.display_name or self.name
