"""
Common mixins for multi-tenant models
"""
from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text, Uuid
from sqlalchemy.sql import func


class TenantMixin:
    """Mixin for multi-tenant models that adds tenant_id (organization) for tenant-scoped queries"""

    tenant_id = Column(Uuid(as_uuid=True), nullable=False, index=True)


class TimestampMixin:
    """Mixin for models that need timestamp tracking"""

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)


class LineItemMixin:
    """Línea de documento (cotización, orden de venta, factura): amount = quantity * rate"""

    item_id = Column(Uuid(as_uuid=True), nullable=True)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    unit = Column(String(20), nullable=True)
    quantity = Column(Numeric(10, 3), nullable=False)
    rate = Column(Numeric(15, 2), nullable=False, default=0)
    amount = Column(Numeric(15, 2), nullable=False, default=0)
