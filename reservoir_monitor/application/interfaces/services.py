"""
External service interfaces (ports).

These interfaces define contracts for external services
that the monitoring core depends on.
"""
from abc import ABC, abstractmethod
from typing import List

from ...domain.entities.notification import NotificationChannel, NotificationMessage
from ...domain.entities.reading import SensorInfo, SensorSnapshot


class NotificationSender(ABC):
    """Interface for one notification delivery channel."""

    channel: NotificationChannel

    @abstractmethod
    async def send(self, recipient: str, message: NotificationMessage) -> bool:
        """
        Deliver a message to one recipient.

        Returns:
            True if the provider accepted the message
        """
        pass

    async def close(self) -> None:
        """Release any held connections."""
        return None


class SensorDirectory(ABC):
    """Interface for looking up sensors and reservoirs."""

    @abstractmethod
    async def describe_sensor(self, site_id: str, sensor_id: str) -> SensorInfo:
        """Get display names and reservoir capacity for a sensor."""
        pass

    @abstractmethod
    async def list_snapshots(self) -> List[SensorSnapshot]:
        """Get the current status snapshot of every known sensor."""
        pass
