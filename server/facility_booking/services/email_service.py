"""SMTP delivery of HTML e-mails rendered from Jinja2 templates."""

import asyncio
import logging
import smtplib
import ssl
from datetime import datetime
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from ..core.config import Settings, settings as default_settings
from ..core.observability import metrics_collector

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"
BRAND_NAME = "UTC Perlis"
CONTACT_PHONE = "04-9705310"


class EmailService:
    """
    Render and send transactional e-mails.

    ``smtplib`` is blocking, so delivery runs in a worker thread. Sending
    never raises: failures are logged, counted and reported as ``False``.
    """

    def __init__(self, config: Optional[Settings] = None, template_dir: Path = TEMPLATE_DIR):
        self.config = config or default_settings
        self.env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def _common_context(self) -> dict[str, Any]:
        return {
            "brand_name": BRAND_NAME,
            "contact_phone": CONTACT_PHONE,
            "current_year": datetime.now().year,
            "site_url": self.config.site_url,
        }

    def render(self, template_name: str, context: dict[str, Any]) -> str:
        """
        Render ``email/<template_name>.html`` with the common context.

        Raises:
            jinja2.TemplateError: If the template is missing or broken
        """
        template = self.env.get_template(f"email/{template_name}.html")
        return template.render(**self._common_context(), **context)

    def _build_message(self, to: str, subject: str, html: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.config.sender_address
        message["To"] = to
        message["Subject"] = subject
        message.set_content("Sila lihat versi HTML email ini.")
        message.add_alternative(html, subtype="html")
        return message

    def _deliver(self, message: EmailMessage) -> None:
        config = self.config
        if config.smtp_use_ssl:
            smtp = smtplib.SMTP_SSL(
                config.smtp_host, config.smtp_port, context=ssl.create_default_context(), timeout=30
            )
        else:
            smtp = smtplib.SMTP(config.smtp_host, config.smtp_port, timeout=30)

        with smtp:
            if not config.smtp_use_ssl and config.smtp_starttls:
                smtp.starttls(context=ssl.create_default_context())
            if config.smtp_user:
                smtp.login(config.smtp_user, config.smtp_password)
            smtp.send_message(message)

    async def send(
        self,
        to: str,
        subject: str,
        template_name: str,
        context: dict[str, Any],
    ) -> bool:
        """
        Render a template and deliver it.

        Args:
            to: Recipient address
            subject: Subject line
            template_name: Template under ``templates/email`` without extension
            context: Template variables

        Returns:
            True if the relay accepted the message
        """
        try:
            html = self.render(template_name, context)
            message = self._build_message(to, subject, html)
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError, TemplateError, ValueError) as e:
            metrics_collector.record_email(template_name, sent=False)
            logger.error(
                f"Failed to send {template_name} email: {e!s}",
                exc_info=True,
                extra={"template": template_name, "recipient": to}
            )
            return False

        metrics_collector.record_email(template_name, sent=True)
        logger.info("Email sent", extra={"template": template_name, "recipient": to})
        return True
