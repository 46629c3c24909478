from app.database.database import Base
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Enum, Date, Text, JSON, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from datetime import date
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin
from app.core.config import settings
from app.modules.payments.ledger import PaymentStatus
import enum


class PaymentMode(str, enum.Enum):
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"
    CHEQUE = "cheque"
    CARD = "card"
    UPI = "upi"
    ONLINE = "online"
    OTHER = "other"


class PaymentReceived(Base, TenantMixin, TimestampMixin):
    """Pago reportado por un cliente, pendiente de verificación por el admin"""
    __tablename__ = "payments_received"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    number = Column(String(50), nullable=False)
    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)

    amount = Column(Numeric(15, 2), nullable=False)
    currency = Column(String(3), nullable=False, default=settings.DEFAULT_CURRENCY)
    payment_date = Column(Date, nullable=False, default=date.today)
    mode = Column(Enum(PaymentMode), nullable=False, default=PaymentMode.BANK_TRANSFER)
    reference_number = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    attachments = Column(JSON, nullable=True)  # Referencias a comprobantes (no se almacenan archivos)
    bank_charges = Column(Numeric(15, 2), nullable=False, default=0)
    tds_amount = Column(Numeric(15, 2), nullable=False, default=0)

    status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING_VERIFICATION, index=True)
    unused_amount = Column(Numeric(15, 2), nullable=False, default=0)

    verified_at = Column(DateTime(timezone=True), nullable=True)
    verified_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    customer = relationship("Customer")
    allocations = relationship("PaymentAllocation", back_populates="payment", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("tenant_id", "number", name="uq_payment_tenant_number"),
    )


class PaymentAllocation(Base, TenantMixin):
    """Parte de un pago aplicada a una factura"""
    __tablename__ = "payment_allocations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    payment_id = Column(Uuid(as_uuid=True), ForeignKey("payments_received.id"), nullable=False, index=True)
    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id"), nullable=False, index=True)
    applied_amount = Column(Numeric(15, 2), nullable=False)

    payment = relationship("PaymentReceived", back_populates="allocations")
    invoice = relationship("Invoice", back_populates="allocations")

    __table_args__ = (
        UniqueConstraint("payment_id", "invoice_id", name="uq_allocation_payment_invoice"),
    )
