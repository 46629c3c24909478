"""
Tareas asíncronas de Celery para el envío de correos electrónicos.

Reciben sólo datos serializables (dicts con strings/números); la sesión de
base de datos nunca cruza al worker.
"""
import logging
from typing import Dict, Any, List
from app.core.celery import celery_app
from app.modules.email.service import email_service

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """El servidor SMTP no aceptó el mensaje."""


def _deliver(to_emails: List[str], subject: str, template_name: str, context: Dict[str, Any]) -> None:
    if not email_service.send_template_email(
        to_emails=to_emails,
        subject=subject,
        template_name=template_name,
        context=context
    ):
        raise EmailDeliveryError(f"Failed to send {template_name}")


@celery_app.task(bind=True, max_retries=3)
def send_invoice_email_task(self, to_email: str, invoice_data: Dict[str, Any]):
    """
    Notificar al cliente una factura emitida.

    invoice_data: number, customer_name, issue_date, due_date, total,
    balance_due, currency, organization_name
    """
    try:
        subject = f"Factura {invoice_data.get('number', 'N/A')} - {invoice_data.get('organization_name', '')}".rstrip(" -")
        _deliver([to_email], subject, "invoice_sent.html", {
            **invoice_data,
            "invoice_url": f"{email_service.frontend_url}/portal/invoices/{invoice_data.get('id')}"
        })
        logger.info(f"Invoice email {invoice_data.get('number')} sent to {to_email}")
        return {"status": "success", "recipient": to_email, "invoice_number": invoice_data.get("number")}

    except EmailDeliveryError as exc:
        logger.error(f"Invoice email sending failed to {to_email}: {str(exc)}")
        if self.request.retries < self.max_retries:
            raise self.retry(exc=exc, countdown=60 * (2 ** self.request.retries))
        return {"status": "failed", "error": str(exc), "recipient": to_email}


@celery_app.task(bind=True, max_retries=3)
def send_sales_document_email_task(self, to_email: str, document_data: Dict[str, Any]):
    """
    Notificar una cotización u orden de venta enviada para aprobación.

    document_data: kind ("quote" | "sales_order"), number, customer_name,
    total, currency, organization_name
    """
    kind_label = "Cotización" if document_data.get("kind") == "quote" else "Orden de venta"
    try:
        _deliver(
            [to_email],
            f"{kind_label} {document_data.get('number', '')} lista para tu aprobación - "
            f"{document_data.get('organization_name', '')}".rstrip(" -"),
            "sales_document_sent.html",
            {**document_data, "kind_label": kind_label}
        )
        return {"status": "success", "recipient": to_email, "number": document_data.get("number")}

    except EmailDeliveryError as exc:
        logger.error(f"Sales document email failed to {to_email}: {str(exc)}")
        if self.request.retries < self.max_retries:
            raise self.retry(exc=exc, countdown=30 * (2 ** self.request.retries))
        return {"status": "failed", "error": str(exc), "recipient": to_email}


@celery_app.task(bind=True, max_retries=3)
def send_payment_status_email_task(self, to_email: str, payment_data: Dict[str, Any]):
    """
    Notificar al cliente la verificación o el rechazo de su pago.

    payment_data: number, status ("verified" | "rejected"), amount, currency,
    customer_name, rejection_reason, invoices [{number, balance_due}],
    organization_name
    """
    verified = payment_data.get("status") == "verified"
    template_name = "payment_verified.html" if verified else "payment_rejected.html"
    subject = (
        f"Pago {payment_data.get('number', '')} verificado" if verified
        else f"Pago {payment_data.get('number', '')} rechazado"
    )
    organization_name = payment_data.get("organization_name")
    if organization_name:
        subject = f"{subject} - {organization_name}"
    try:
        _deliver([to_email], subject, template_name, payment_data)
        return {"status": "success", "recipient": to_email, "number": payment_data.get("number")}

    except EmailDeliveryError as exc:
        logger.error(f"Payment email failed to {to_email}: {str(exc)}")
        if self.request.retries < self.max_retries:
            raise self.retry(exc=exc, countdown=30 * (2 ** self.request.retries))
        return {"status": "failed", "error": str(exc), "recipient": to_email}
