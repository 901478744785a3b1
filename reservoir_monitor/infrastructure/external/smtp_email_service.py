"""
SMTP email sender.

Provides async email delivery using aiosmtplib.
"""
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import aiosmtplib

from ...application.interfaces.services import NotificationSender
from ...config import SMTPSettings
from ...domain.entities.notification import NotificationChannel, NotificationMessage
from .email_templates import get_alert_notification_template, get_digest_template

logger = logging.getLogger(__name__)


class SMTPEmailSender(NotificationSender):
    """
    SMTP-based email channel.

    Uses aiosmtplib with STARTTLS. Returns False instead of raising on
    SMTP failures so the dispatcher can record them per recipient.
    """

    channel = NotificationChannel.EMAIL

    def __init__(self, settings: SMTPSettings):
        """
        Initialize SMTP email sender.

        Args:
            settings: SMTP configuration
        """
        self._settings = settings

    def build_message(self, recipient: str, message: NotificationMessage) -> MIMEMultipart:
        """Build the multipart email for a notification."""
        if message.alert_id is None:
            plain_body, html_body = get_digest_template(message.subject, message.body)
        else:
            plain_body, html_body = get_alert_notification_template(
                site_name=message.site_name or message.site_id,
                alert_type=message.alert_type or "",
                message=message.body,
                severity=message.severity.value,
                alert_time=message.created_at.strftime("%Y-%m-%d %H:%M UTC"),
                escalated=message.escalated,
            )

        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = f"{self._settings.from_name} <{self._settings.from_email}>"
        msg["To"] = recipient
        msg.attach(MIMEText(plain_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    async def send(self, recipient: str, message: NotificationMessage) -> bool:
        """
        Send an alert email.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self._settings.enabled:
            logger.warning(f"Email sending is disabled. Skipping email to {recipient}")
            return False

        msg = self.build_message(recipient, message)

        try:
            async with aiosmtplib.SMTP(
                hostname=self._settings.host,
                port=self._settings.port,
                use_tls=self._settings.use_tls,
                start_tls=self._settings.start_tls,
                timeout=self._settings.timeout,
            ) as smtp:
                if self._settings.user and self._settings.password:
                    await smtp.login(self._settings.user, self._settings.password)
                await smtp.send_message(msg)

            logger.info(f"Email sent to {recipient}: {message.subject}")
            return True

        except aiosmtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed: {str(e)}")
            return False
        except aiosmtplib.SMTPConnectError as e:
            logger.error(f"Failed to connect to SMTP server: {str(e)}")
            return False
        except aiosmtplib.SMTPException as e:
            logger.error(f"SMTP error sending email to {recipient}: {str(e)}")
            return False
