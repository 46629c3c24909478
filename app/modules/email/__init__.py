"""
Módulo de email: servicio SMTP, tareas de Celery y notificaciones al cliente.
"""

from .service import email_service
from .tasks import (
    send_invoice_email_task,
    send_sales_document_email_task,
    send_payment_status_email_task
)

__all__ = [
    'email_service',
    'send_invoice_email_task',
    'send_sales_document_email_task',
    'send_payment_status_email_task'
]
