import smtplib
import ssl
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import List, Optional, Dict, Any
from pathlib import Path
import logging
from jinja2 import Environment, FileSystemLoader, select_autoescape
from app.core.config import settings

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"


def format_money(value: Any, currency: str = "") -> str:
    """Filtro Jinja2: 12500.5 -> '12,500.50'"""
    try:
        text = f"{float(value):,.2f}"
    except (TypeError, ValueError):
        text = str(value)
    return f"{currency} {text}".strip()


class EmailService:
    """
    Servicio de correo electrónico con templates Jinja2.

    Los templates viven en `app/modules/email/templates` y extienden `base.html`.
    """

    def __init__(self):
        self.smtp_server = settings.EMAIL_SMTP_SERVER
        self.smtp_port = settings.EMAIL_SMTP_PORT
        self.username = settings.EMAIL_USERNAME
        self.password = settings.EMAIL_PASSWORD
        self.use_tls = settings.EMAIL_USE_TLS
        self.from_email = settings.EMAIL_FROM
        self.from_name = settings.EMAIL_FROM_NAME
        self.frontend_url = settings.FRONTEND_URL

        self.jinja_env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=select_autoescape(['html', 'xml'])
        )
        self.jinja_env.filters["money"] = format_money

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_server and self.from_email)

    def _create_smtp_connection(self):
        """Crear conexión SMTP segura."""
        try:
            if self.use_tls:
                context = ssl.create_default_context()
                server = smtplib.SMTP(self.smtp_server, self.smtp_port)
                server.starttls(context=context)
            else:
                server = smtplib.SMTP_SSL(self.smtp_server, self.smtp_port)

            if self.username:
                server.login(self.username, self.password)
            return server
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Error creating SMTP connection: {str(e)}")
            raise

    def render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        """
        Renderizar template de email.

        El contexto se completa con `portal_url` y `organization_name` cuando
        no vienen definidos.
        """
        template = self.jinja_env.get_template(template_name)
        full_context = {"portal_url": self.frontend_url, **context}
        full_context["organization_name"] = context.get("organization_name") or self.from_name
        return template.render(**full_context)

    def send_email(
        self,
        to_emails: List[str],
        subject: str,
        html_content: Optional[str] = None,
        text_content: Optional[str] = None,
        cc_emails: Optional[List[str]] = None
    ) -> bool:
        """
        Enviar correo electrónico.

        Returns:
            True si se envió correctamente, False en caso contrario
        """
        if not self.is_configured:
            logger.warning(f"Email not configured, skipping '{subject}' to {', '.join(to_emails)}")
            return False

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = f"{self.from_name} <{self.from_email}>"
            msg['To'] = ', '.join(to_emails)

            if cc_emails:
                msg['Cc'] = ', '.join(cc_emails)

            if text_content:
                msg.attach(MIMEText(text_content, 'plain', 'utf-8'))

            if html_content:
                msg.attach(MIMEText(html_content, 'html', 'utf-8'))

            with self._create_smtp_connection() as server:
                recipients = to_emails + (cc_emails or [])
                server.sendmail(self.from_email, recipients, msg.as_string())

            logger.info(f"Email sent successfully to {', '.join(to_emails)}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Error sending email: {str(e)}")
            return False

    def send_template_email(
        self,
        to_emails: List[str],
        subject: str,
        template_name: str,
        context: Dict[str, Any],
        cc_emails: Optional[List[str]] = None
    ) -> bool:
        """Enviar correo usando template (ej: "invoice_sent.html")."""
        html_content = self.render_template(template_name, context)
        return self.send_email(
            to_emails=to_emails,
            subject=subject,
            html_content=html_content,
            cc_emails=cc_emails
        )


# Singleton instance
email_service = EmailService()
