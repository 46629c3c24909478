from app.database.database import Base
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Enum, Date, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from datetime import date, datetime, timezone
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin, LineItemMixin
from app.core.config import settings
from app.modules.payments.ledger import InvoiceStatus


# Estados visibles en el portal del cliente (el borrador nunca se expone)
CUSTOMER_VISIBLE_STATUSES = [
    InvoiceStatus.SENT,
    InvoiceStatus.PARTIALLY_PAID,
    InvoiceStatus.PAID,
    InvoiceStatus.OVERDUE,
    InvoiceStatus.VOID,
]

# Estados que admiten nuevos pagos
PAYABLE_STATUSES = [
    InvoiceStatus.SENT,
    InvoiceStatus.PARTIALLY_PAID,
    InvoiceStatus.OVERDUE,
    InvoiceStatus.PAID,
]


class Invoice(Base, TenantMixin, TimestampMixin):
    __tablename__ = "invoices"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    # References
    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    sales_order_id = Column(Uuid(as_uuid=True), ForeignKey("sales_orders.id"), nullable=True, unique=True)
    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)

    # Invoice data
    number = Column(String(50), nullable=False)
    status = Column(Enum(InvoiceStatus), nullable=False, default=InvoiceStatus.DRAFT, index=True)

    # Dates
    issue_date = Column(Date, nullable=False, default=date.today)
    due_date = Column(Date, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    voided_at = Column(DateTime(timezone=True), nullable=True)

    # Content
    notes = Column(Text, nullable=True)
    currency = Column(String(3), nullable=False, default=settings.DEFAULT_CURRENCY)

    # Totals
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    total = Column(Numeric(15, 2), nullable=False, default=0)

    # Saldo persistido; sólo lo escribe InvoiceService.recalculate_balance
    amount_paid = Column(Numeric(15, 2), nullable=False, default=0)
    balance_due = Column(Numeric(15, 2), nullable=False, default=0)

    # Relationships
    customer = relationship("Customer")
    sales_order = relationship("SalesOrder", back_populates="invoice")
    created_by_user = relationship("User")
    line_items = relationship("InvoiceLineItem", back_populates="invoice", cascade="all, delete-orphan",
                              order_by="InvoiceLineItem.position")
    allocations = relationship("PaymentAllocation", back_populates="invoice")
    activities = relationship("InvoiceActivity", back_populates="invoice", cascade="all, delete-orphan",
                              order_by="InvoiceActivity.created_at")

    __table_args__ = (
        UniqueConstraint("tenant_id", "number", name="uq_invoice_tenant_number"),
    )

    @property
    def applied_payments(self):
        """
        Pagos aplicados a esta factura como entradas {amount, status}.

        `amount` es el monto asignado a la factura, no el total del pago.
        """
        return [
            {"amount": allocation.applied_amount, "status": allocation.payment.status}
            for allocation in self.allocations
        ]


class InvoiceLineItem(Base, LineItemMixin):
    __tablename__ = "invoice_line_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id"), nullable=False, index=True)

    invoice = relationship("Invoice", back_populates="line_items")


class InvoiceActivity(Base, TenantMixin, TimestampMixin):
    """Bitácora de la factura: envío, pagos registrados/verificados, anulación"""
    __tablename__ = "invoice_activities"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)

    action = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)

    # Marca con microsegundos: define el orden de la bitácora
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    invoice = relationship("Invoice", back_populates="activities")
