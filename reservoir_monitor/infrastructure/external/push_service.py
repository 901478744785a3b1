"""
Push notification service client.

Recipients are topics; technicians' devices subscribe to the topic of
each site they look after.
"""
from typing import Any, Dict, Optional

import httpx

from ...config import PushSettings
from ...domain.entities.alert import Severity
from ...domain.entities.notification import NotificationChannel, NotificationMessage
from .http_sender import HttpNotificationSender


class HttpPushService(HttpNotificationSender):
    """Publishes push notifications to a topic-based push service."""

    channel = NotificationChannel.PUSH

    def __init__(self, settings: PushSettings, client: Optional[httpx.AsyncClient] = None):
        super().__init__(
            base_url=settings.base_url,
            api_key=settings.api_key,
            timeout=settings.timeout,
            client=client,
        )
        self.path = settings.publish_path

    def build_payload(self, recipient: str, message: NotificationMessage) -> Dict[str, Any]:
        urgent = message.severity >= Severity.HIGH
        return {
            "topic": recipient,
            "title": message.subject,
            "body": message.body,
            "priority": "high" if urgent else "normal",
            "data": {
                "alert_id": str(message.alert_id) if message.alert_id else None,
                "alert_type": message.alert_type,
                "site_id": message.site_id,
                "severity": message.severity.value,
                "escalated": message.escalated,
            },
        }
