from app.database.database import Base
from sqlalchemy import Column, String, ForeignKey, Numeric, Enum, Date, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from datetime import date
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin, LineItemMixin
from app.core.config import settings
import enum


class SalesDocumentStatus(str, enum.Enum):
    DRAFT = "draft"          # Creado por el cliente o el admin, sin precios confirmados
    SENT = "sent"            # Enviado al cliente para aprobación
    APPROVED = "approved"
    REJECTED = "rejected"


class OrderInvoiceStatus(str, enum.Enum):
    NOT_INVOICED = "not_invoiced"
    INVOICED = "invoiced"


class Quote(Base, TenantMixin, TimestampMixin):
    __tablename__ = "quotes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    number = Column(String(50), nullable=False)
    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    item_request_id = Column(Uuid(as_uuid=True), ForeignKey("item_requests.id"), nullable=True)

    quote_date = Column(Date, nullable=False, default=date.today)
    expiry_date = Column(Date, nullable=True)
    status = Column(Enum(SalesDocumentStatus), nullable=False, default=SalesDocumentStatus.DRAFT)

    currency = Column(String(3), nullable=False, default=settings.DEFAULT_CURRENCY)
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    total = Column(Numeric(15, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)

    customer = relationship("Customer")
    line_items = relationship("QuoteLineItem", back_populates="quote", cascade="all, delete-orphan",
                              order_by="QuoteLineItem.position")

    __table_args__ = (
        UniqueConstraint("tenant_id", "number", name="uq_quote_tenant_number"),
    )


class QuoteLineItem(Base, LineItemMixin):
    __tablename__ = "quote_line_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    quote_id = Column(Uuid(as_uuid=True), ForeignKey("quotes.id"), nullable=False, index=True)

    quote = relationship("Quote", back_populates="line_items")


class SalesOrder(Base, TenantMixin, TimestampMixin):
    __tablename__ = "sales_orders"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    number = Column(String(50), nullable=False)
    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    quote_id = Column(Uuid(as_uuid=True), ForeignKey("quotes.id"), nullable=True)
    item_request_id = Column(Uuid(as_uuid=True), ForeignKey("item_requests.id"), nullable=True)

    order_date = Column(Date, nullable=False, default=date.today)
    order_status = Column(Enum(SalesDocumentStatus), nullable=False, default=SalesDocumentStatus.DRAFT)
    invoice_status = Column(Enum(OrderInvoiceStatus), nullable=False, default=OrderInvoiceStatus.NOT_INVOICED)

    currency = Column(String(3), nullable=False, default=settings.DEFAULT_CURRENCY)
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    total = Column(Numeric(15, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)

    customer = relationship("Customer")
    line_items = relationship("SalesOrderLineItem", back_populates="sales_order", cascade="all, delete-orphan",
                              order_by="SalesOrderLineItem.position")
    invoice = relationship("Invoice", back_populates="sales_order", uselist=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "number", name="uq_sales_order_tenant_number"),
    )

    @property
    def invoice_id(self):
        return self.invoice.id if self.invoice else None


class SalesOrderLineItem(Base, LineItemMixin):
    __tablename__ = "sales_order_line_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    sales_order_id = Column(Uuid(as_uuid=True), ForeignKey("sales_orders.id"), nullable=False, index=True)

    sales_order = relationship("SalesOrder", back_populates="line_items")
