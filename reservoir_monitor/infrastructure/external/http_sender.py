"""
Shared plumbing for notification channels delivered over HTTP.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from ...application.interfaces.services import NotificationSender
from ...domain.entities.notification import NotificationMessage

logger = logging.getLogger(__name__)


class HttpNotificationSender(NotificationSender):
    """
    Base class for senders that POST one JSON document per notification.

    Subclasses set `channel`, `path` and build the payload.
    """

    path: str = "/"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self._timeout,
            )
        return self._client

    def build_payload(self, recipient: str, message: NotificationMessage) -> Dict[str, Any]:
        raise NotImplementedError

    async def send(self, recipient: str, message: NotificationMessage) -> bool:
        """
        POST the notification.

        Returns:
            True on a 2xx response, False otherwise
        """
        payload = self.build_payload(recipient, message)
        try:
            response = await self._get_client().post(self.path, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"{self.channel.value} request to {recipient} failed: {e}")
            return False

        if response.is_success:
            logger.info(f"{self.channel.value} notification sent to {recipient}")
            return True

        logger.error(
            f"{self.channel.value} provider rejected notification to {recipient}: "
            f"{response.status_code} - {response.text}"
        )
        return False

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
