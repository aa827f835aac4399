"""Email delivery over SMTP"""

import re
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from html import unescape
import logging

import aiosmtplib

from notification_service.core.config import Settings
from notification_service.core.exceptions import DeliveryError

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")


def html_to_text(html_body: str) -> str:
    """Rough plain-text alternative of an HTML body"""
    text = _TAG_RE.sub("", html_body)
    text = _BLANK_LINES_RE.sub("\n\n", unescape(text))
    return text.strip()


class EmailService:
    """Sends rendered HTML email through aiosmtplib"""

    def __init__(self, settings: Settings):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.use_tls = settings.SMTP_USE_TLS
        self.start_tls = settings.SMTP_START_TLS
        self.from_email = settings.SMTP_FROM_EMAIL
        self.from_name = settings.SMTP_FROM_NAME
        self.enabled = bool(self.smtp_host)
        self.dry_run = settings.ENVIRONMENT == "development"

        if not self.enabled:
            logger.warning("Email service is disabled - SMTP host not configured")

    def build_message(self, to_email: str, subject: str, html_body: str) -> MIMEMultipart:
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = f"{self.from_name} <{self.from_email}>"
        msg['To'] = to_email

        msg.attach(MIMEText(html_to_text(html_body), 'plain', 'utf-8'))
        msg.attach(MIMEText(html_body, 'html', 'utf-8'))
        return msg

    async def send(self, destination: str, primary_text: str, body: str) -> None:
        if not self.enabled:
            if not self.dry_run:
                raise DeliveryError("email provider not configured")
            logger.info(f"Email (disabled): To {destination} - {primary_text}")
            return

        msg = self.build_message(destination, primary_text, body)

        try:
            await aiosmtplib.send(
                msg,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                use_tls=self.use_tls,
                start_tls=self.start_tls if not self.use_tls else False,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {destination}: {str(e)}")
            raise DeliveryError(f"failed to send email: {e}") from e

        logger.info(f"Email sent successfully to {destination}")
