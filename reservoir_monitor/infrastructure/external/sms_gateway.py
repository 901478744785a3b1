"""
SMS gateway client.
"""
from typing import Any, Dict, Optional

import httpx

from ...config import SMSSettings
from ...domain.entities.notification import NotificationChannel, NotificationMessage
from .http_sender import HttpNotificationSender

# Concatenated SMS are billed per segment
MAX_SMS_LENGTH = 306


def format_sms(message: NotificationMessage) -> str:
    """Compact single-message text for SMS."""
    prefix = "ESCALATED " if message.escalated else ""
    text = f"{prefix}[{message.severity.value}] {message.body}"
    if len(text) > MAX_SMS_LENGTH:
        text = text[:MAX_SMS_LENGTH - 3] + "..."
    return text


class HttpSmsGateway(HttpNotificationSender):
    """Sends SMS through an HTTP gateway."""

    channel = NotificationChannel.SMS

    def __init__(self, settings: SMSSettings, client: Optional[httpx.AsyncClient] = None):
        super().__init__(
            base_url=settings.base_url,
            api_key=settings.api_key,
            timeout=settings.timeout,
            client=client,
        )
        self.path = settings.send_path
        self.sender_id = settings.sender_id

    def build_payload(self, recipient: str, message: NotificationMessage) -> Dict[str, Any]:
        return {
            "to": recipient,
            "from": self.sender_id,
            "text": format_sms(message),
        }
