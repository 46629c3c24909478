"""
Notificaciones al cliente (fire-and-forget).

Los servicios las llaman después del commit. Encolar nunca hace fallar la
request: si el broker no responde se registra un warning y se continúa.
"""
import logging
from typing import Any, Dict, Iterable, Optional

from kombu.exceptions import OperationalError

from app.core.config import settings
from app.modules.auth.models import Organization
from app.modules.email.tasks import (
    send_invoice_email_task,
    send_sales_document_email_task,
    send_payment_status_email_task
)

logger = logging.getLogger(__name__)


def _dispatch(task, to_email: Optional[str], payload: Dict[str, Any], label: str) -> bool:
    if not settings.NOTIFICATIONS_ENABLED:
        logger.debug(f"Notifications disabled, skipping {label}")
        return False
    if not to_email:
        logger.info(f"No customer email for {label}, notification skipped")
        return False
    try:
        task.delay(to_email, payload)
    except (OperationalError, ConnectionError) as e:
        logger.warning(f"Could not enqueue {label} for {to_email}: {e}")
        return False
    logger.info(f"Queued {label} for {to_email}")
    return True


def organization_name_for(db, tenant_id) -> str:
    """Nombre de la organización emisora para asunto y encabezado del correo"""
    organization = db.get(Organization, tenant_id)
    return organization.name if organization else ""


def _customer_fields(customer) -> Dict[str, Any]:
    return {
        "customer_name": customer.label if customer else "Cliente",
    }


def notify_invoice_sent(invoice, organization_name: str = "") -> bool:
    customer = invoice.customer
    payload = {
        "id": str(invoice.id),
        "number": invoice.number,
        "issue_date": invoice.issue_date.isoformat() if invoice.issue_date else None,
        "due_date": invoice.due_date.isoformat() if invoice.due_date else None,
        "total": str(invoice.total),
        "balance_due": str(invoice.balance_due),
        "currency": invoice.currency,
        "organization_name": organization_name,
        **_customer_fields(customer)
    }
    return _dispatch(send_invoice_email_task, customer.email if customer else None, payload,
                     f"invoice {invoice.number}")


def notify_sales_document_sent(document, kind: str, organization_name: str = "") -> bool:
    """kind: "quote" | "sales_order" """
    customer = document.customer
    payload = {
        "kind": kind,
        "id": str(document.id),
        "number": document.number,
        "total": str(document.total),
        "currency": document.currency,
        "organization_name": organization_name,
        **_customer_fields(customer)
    }
    return _dispatch(send_sales_document_email_task, customer.email if customer else None, payload,
                     f"{kind} {document.number}")


def notify_payment_status(payment, invoices: Iterable[Any] = (), organization_name: str = "") -> bool:
    customer = payment.customer
    payload = {
        "number": payment.number,
        "status": payment.status.value,
        "amount": str(payment.amount),
        "currency": payment.currency,
        "rejection_reason": payment.rejection_reason,
        "organization_name": organization_name,
        "invoices": [
            {"number": invoice.number, "balance_due": str(invoice.balance_due)}
            for invoice in invoices
        ],
        **_customer_fields(customer)
    }
    return _dispatch(send_payment_status_email_task, customer.email if customer else None, payload,
                     f"payment {payment.number} {payment.status.value}")
