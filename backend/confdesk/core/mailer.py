# confdesk/core/mailer.py
"""
SMTP mail sender.

smtplib is blocking, so the actual send runs in a worker thread. When SMTP
credentials are missing the message is logged and dropped.
"""
import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from ..config import settings

logger = logging.getLogger(__name__)


def is_configured() -> bool:
    return bool(settings.smtp_user and settings.smtp_password)


def _build_message(to: str, subject: str, html: str) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["From"] = settings.mail_from or settings.smtp_user
    msg["To"] = to
    msg["Subject"] = subject
    msg.attach(MIMEText(html, "html"))
    return msg


def _send_sync(to: str, subject: str, html: str) -> None:
    msg = _build_message(to, subject, html)
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
        if settings.smtp_starttls:
            server.starttls()
        server.login(settings.smtp_user, settings.smtp_password)
        server.send_message(msg)


async def send_email(to: str, subject: str, html: str) -> None:
    """Send one HTML mail. SMTP errors propagate so the outbox can retry."""
    if not is_configured():
        logger.warning("[mailer] SMTP not configured, skipping mail to %s: %s", to, subject)
        return
    await asyncio.to_thread(_send_sync, to, subject, html)
    logger.info("[mailer] sent '%s' to %s", subject, to)
