"""
Notification dispatcher.

Renders lifecycle emails from Jinja2 templates and delivers them over SMTP.
Without SMTP credentials, messages are logged instead of sent (dev mode).
Delivery failures are logged and never raised: a missed email must not abort
a lifecycle job.
"""

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any, Dict, Optional

import jinja2

from compliance.config import settings
from compliance.platform.errors import NotificationDeliveryError

logger = logging.getLogger(__name__)

TEMPLATES_PATH = Path(__file__).parent / "templates" / "emails"

EMAIL_SUBJECTS: Dict[str, str] = {
    "expiry_30day": "Your {service_name} expires in 30 days",
    "expiry_5day": "URGENT: Your {service_name} expires in 5 days",
    "autopay_reminder": "Autopay reminder: {service_name} renews in 10 days",
    "autopay_success": "Your {service_name} has been renewed",
    "autopay_failed": "Action required: {service_name} renewal failed",
}


class NotificationDispatcher:
    """Sends templated lifecycle emails."""

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_pass: Optional[str] = None,
        from_email: Optional[str] = None,
        templates_path: Optional[Path] = None,
    ):
        self.smtp_host = smtp_host or settings.SMTP_HOST
        self.smtp_port = smtp_port or settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER if smtp_user is None else smtp_user
        self.smtp_pass = settings.SMTP_PASS if smtp_pass is None else smtp_pass
        self.from_email = from_email or settings.EMAIL_FROM

        self.template_env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(searchpath=str(templates_path or TEMPLATES_PATH)),
            autoescape=jinja2.select_autoescape(["html"]),
            undefined=jinja2.StrictUndefined,
        )

    def render(self, template_name: str, template_data: Dict[str, Any]):
        """
        Render subject and HTML body for a template.

        Raises:
            NotificationDeliveryError: Unknown template or missing variables
        """
        context = {
            "company_name": settings.COMPANY_NAME,
            "company_phone": settings.COMPANY_PHONE,
            "company_email": settings.COMPANY_EMAIL,
            "frontend_url": settings.FRONTEND_URL,
            **template_data,
        }
        try:
            subject = EMAIL_SUBJECTS[template_name].format(**context)
            html = self.template_env.get_template(f"{template_name}.html").render(**context)
        except (KeyError, jinja2.TemplateError) as e:
            raise NotificationDeliveryError(
                f"Failed to render email template '{template_name}': {e}",
                details={"template": template_name},
            ) from e
        return subject, html

    def _deliver(self, to_address: str, subject: str, html_content: str) -> None:
        """Send a rendered message over SMTP (blocking)."""
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to_address
        msg.attach(MIMEText(html_content, "html"))

        if not (self.smtp_user and self.smtp_pass):
            logger.info("DEV MODE - Would send email", extra={"to": to_address, "subject": subject})
            return

        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
            server.starttls()
            server.login(self.smtp_user, self.smtp_pass)
            server.send_message(msg)

    async def send(self, to_address: str, template_name: str, template_data: Dict[str, Any]) -> bool:
        """
        Render and send an email.

        Args:
            to_address: Recipient
            template_name: One of EMAIL_SUBJECTS
            template_data: Template variables

        Returns:
            True if the email was handed to the mail server (or logged in dev mode)
        """
        try:
            subject, html_content = self.render(template_name, template_data)
            await asyncio.to_thread(self._deliver, to_address, subject, html_content)
        except Exception as e:
            logger.error(
                "Failed to send email",
                extra={"to": to_address, "template": template_name, "error": str(e)},
            )
            return False

        logger.info("Email sent", extra={"to": to_address, "template": template_name})
        return True
