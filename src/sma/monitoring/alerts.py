"""Alert delivery for the backfill worker.

Every alert is logged. When e-mail is enabled, it is also sent over SMTP
in a worker thread so the event loop never blocks on the mail server.
Delivery failures are logged and swallowed: alerting must never fail a
backfill run.
"""

import asyncio
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage

from sma.config import AlertSettings
from sma.logging import get_logger

logger = get_logger(__name__)


class AlertSink(ABC):
    """Fire-and-forget alert channel."""

    @abstractmethod
    async def send(self, alert_type: str, message: str) -> None:
        """Deliver an alert. Implementations must not raise on delivery failure."""
        ...


class AlertMonitor(AlertSink):
    """Log-and-email alert sink driven by AlertSettings.

    Args:
        settings: Alert configuration (enabled flags, SMTP credentials, recipients).
    """

    def __init__(self, settings: AlertSettings) -> None:
        self._settings = settings

    async def send(self, alert_type: str, message: str) -> None:
        if not self._settings.enabled:
            return

        logger.warning("alert", alert_type=alert_type, alert_message=message)

        if not self._settings.email_enabled:
            return
        try:
            await asyncio.to_thread(self._send_email, alert_type, message)
        except (OSError, smtplib.SMTPException) as e:
            logger.error("alert_email_failed", alert_type=alert_type, error=str(e))
            return
        logger.info("alert_email_sent", alert_type=alert_type)

    def _send_email(self, alert_type: str, message: str) -> None:
        msg = EmailMessage()
        msg["Subject"] = f"Alert: {alert_type}"
        msg["From"] = self._settings.from_email
        msg["To"] = ", ".join(self._settings.to_emails)
        msg.set_content(message)

        with smtplib.SMTP(self._settings.smtp_host, self._settings.smtp_port, timeout=30) as smtp:
            smtp.starttls()
            if self._settings.smtp_username:
                smtp.login(
                    self._settings.smtp_username,
                    self._settings.smtp_password.get_secret_value(),
                )
            smtp.send_message(msg)
