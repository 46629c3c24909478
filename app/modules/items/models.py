from app.database.database import Base
from sqlalchemy import Column, String, Boolean, ForeignKey, Numeric, Enum, Text, Uuid
from sqlalchemy.orm import relationship
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin
import enum


class ItemType(str, enum.Enum):
    GOODS = "goods"
    SERVICE = "service"


class ItemRequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RequestType(str, enum.Enum):
    QUOTE = "quote"
    SALES_ORDER = "sales_order"
    BOTH = "both"

    @property
    def wants_quote(self) -> bool:
        return self in (RequestType.QUOTE, RequestType.BOTH)

    @property
    def wants_sales_order(self) -> bool:
        return self in (RequestType.SALES_ORDER, RequestType.BOTH)


class Item(Base, TenantMixin, TimestampMixin):
    """Producto o servicio del catálogo de la organización"""
    __tablename__ = "items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    item_type = Column(Enum(ItemType), nullable=False, default=ItemType.GOODS)
    unit = Column(String(20), nullable=True)
    rate = Column(Numeric(15, 2), nullable=False, default=0)
    purchase_rate = Column(Numeric(15, 2), nullable=True)
    tax_preference = Column(String(20), nullable=False, default="taxable")
    is_active = Column(Boolean, nullable=False, default=True)


class ItemRequest(Base, TenantMixin, TimestampMixin):
    """Solicitud de un cliente para un producto que no está en el catálogo"""
    __tablename__ = "item_requests"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)

    item_name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    quantity = Column(Numeric(10, 3), nullable=False, default=1)
    unit = Column(String(20), nullable=True)
    request_type = Column(Enum(RequestType), nullable=False, default=RequestType.QUOTE)
    status = Column(Enum(ItemRequestStatus), nullable=False, default=ItemRequestStatus.PENDING)
    rejection_reason = Column(Text, nullable=True)

    # Item creado al aprobar la solicitud
    item_id = Column(Uuid(as_uuid=True), ForeignKey("items.id"), nullable=True)

    customer = relationship("Customer")
    item = relationship("Item")
