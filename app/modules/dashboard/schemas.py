from pydantic import BaseModel
from decimal import Decimal


class CustomerDashboard(BaseModel):
    currency: str
    outstanding_balance: Decimal
    unpaid_invoices: int
    overdue_invoices: int
    overdue_balance: Decimal
    pending_payments: int
    pending_payments_amount: Decimal
    unused_credit: Decimal
    open_quotes: int
    open_sales_orders: int
