"""
Repository interfaces (ports) for the monitoring core.

These interfaces define the contract for persistence operations
without specifying the implementation details.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from uuid import UUID

from ...domain.entities.alert import AlertType, Severity, TechnicalAlert


class TechnicalAlertRepository(ABC):
    """Repository interface for TechnicalAlert entities."""

    @abstractmethod
    async def get_by_id(self, id: UUID) -> Optional[TechnicalAlert]:
        """
        Get alert by ID.

        Args:
            id: Alert UUID

        Returns:
            Alert if found, None otherwise
        """
        pass

    @abstractmethod
    async def add(self, alert: TechnicalAlert) -> TechnicalAlert:
        """
        Add new alert.

        Args:
            alert: Alert to add

        Returns:
            Added alert
        """
        pass

    @abstractmethod
    async def update(self, alert: TechnicalAlert) -> TechnicalAlert:
        """
        Update existing alert.

        Args:
            alert: Alert to update

        Returns:
            Updated alert
        """
        pass

    @abstractmethod
    async def get_open(self, sensor_id: str, alert_type: AlertType) -> Optional[TechnicalAlert]:
        """Get the unread alert for a sensor and alert type, if any."""
        pass

    @abstractmethod
    async def list_unread(self, site_id: Optional[str] = None) -> List[TechnicalAlert]:
        """Get unread alerts, newest first, optionally for one site."""
        pass

    @abstractmethod
    async def list_by_site(
        self,
        site_id: str,
        limit: int = 100,
        offset: int = 0,
        unread_only: bool = False
    ) -> List[TechnicalAlert]:
        """Get alerts for a site, newest first."""
        pass

    @abstractmethod
    async def count(
        self,
        site_id: Optional[str] = None,
        is_read: Optional[bool] = None,
        severity: Optional[Severity] = None
    ) -> int:
        """Count alerts matching the given filters."""
        pass


class SettingsRepository(ABC):
    """
    Repository interface for settings records.

    A record is a JSON-like mapping stored per (category, scope). The
    scope is either "global" or a site id.
    """

    @abstractmethod
    async def get(self, category: str, scope: str) -> Optional[Dict[str, Any]]:
        """Get the stored record, None if the scope has none."""
        pass

    @abstractmethod
    async def save(self, category: str, scope: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """Create or replace the record."""
        pass

    @abstractmethod
    async def delete(self, category: str, scope: str) -> bool:
        """Delete the record. Returns False if none existed."""
        pass
