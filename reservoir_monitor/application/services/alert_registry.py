"""
Alert Registry Application Service.

Owns the lifecycle of technical alerts. For every (sensor, alert type)
an alert moves NONE -> OPEN -> ACKNOWLEDGED. Only a technician's
acknowledgement closes an alert; a recovered metric leaves it open.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar
from uuid import UUID

from ...domain.entities.alert import AlertCondition, AlertDetails, Severity, TechnicalAlert
from ...domain.entities.base import utc_now
from ...domain.entities.reading import SensorInfo
from ...domain.exceptions import EntityNotFoundException, PersistenceError
from ...domain.services.alert_messages import build_alert_message
from ..interfaces.repositories import TechnicalAlertRepository

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class RegistryResult:
    """Outcome of recording a condition."""
    alert: TechnicalAlert
    created: bool = False
    severity_raised: bool = False

    @property
    def should_notify(self) -> bool:
        return self.created or self.severity_raised


@dataclass
class AlertStats:
    """Counters shown on the technician alert view."""
    total: int
    unread: int
    critical_unread: int
    read: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "unread": self.unread,
            "critical_unread": self.critical_unread,
            "read": self.read,
        }


class AlertRegistry:
    """
    Deduplicates alert conditions into persisted technical alerts.

    Transitions for the same (sensor_id, alert type) are serialized.
    Repository failures are retried once, then raised as PersistenceError.
    """

    def __init__(
        self,
        repository: TechnicalAlertRepository,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._repository = repository
        self._clock = clock
        self._locks: Dict[Tuple[str, Any], asyncio.Lock] = {}
        self._lock_users: Dict[Tuple[str, Any], int] = {}

        # Callbacks
        self._on_notify: Optional[Callable[[TechnicalAlert], Any]] = None
        self._on_acknowledged: Optional[Callable[[UUID], Any]] = None

    def set_on_notify(self, callback: Callable[[TechnicalAlert], Any]) -> None:
        """Set callback for alerts that need a notification (new or more severe)."""
        self._on_notify = callback

    def set_on_acknowledged(self, callback: Callable[[UUID], Any]) -> None:
        """Set callback for alerts that were marked read."""
        self._on_acknowledged = callback

    @asynccontextmanager
    async def _key_lock(self, key: Tuple[str, Any]) -> AsyncIterator[None]:
        """Hold the lock for one alert key; it is dropped once nobody holds or awaits it."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                del self._locks[key]

    async def _persist(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await call()
        except PersistenceError as e:
            logger.warning(f"Alert {operation} failed, retrying once: {e.message}")
        try:
            return await call()
        except PersistenceError as e:
            logger.error(f"Alert {operation} failed after retry: {e.message}")
            raise

    def _fire(self, callback: Optional[Callable], argument: Any) -> None:
        if callback is None:
            return
        try:
            callback(argument)
        except Exception:
            logger.exception("Error in alert registry callback")

    async def record(
        self,
        condition: AlertCondition,
        info: Optional[SensorInfo] = None,
    ) -> RegistryResult:
        """
        Record a detected condition.

        Creates an alert if none is open for the condition's key,
        otherwise refreshes the open alert in place.

        Args:
            condition: Condition from the evaluator
            info: Display names for the alert details

        Returns:
            RegistryResult describing what changed

        Raises:
            PersistenceError: If storing fails twice
        """
        info = info or SensorInfo.unknown(condition.sensor_id, condition.site_id)
        message = build_alert_message(condition, info)

        async with self._key_lock(condition.key):
            existing = await self._persist(
                "lookup",
                lambda: self._repository.get_open(condition.sensor_id, condition.type),
            )

            if existing is None:
                alert = TechnicalAlert(
                    sensor_id=condition.sensor_id,
                    site_id=condition.site_id,
                    type=condition.type,
                    severity=condition.severity,
                    message=message,
                    details=AlertDetails(
                        sensor_name=info.sensor_name,
                        site_name=info.site_name,
                        current_value=condition.measured_value,
                        threshold=condition.threshold,
                        unit=condition.unit,
                    ),
                    created_at=condition.detected_at,
                )
                alert = await self._persist("create", lambda: self._repository.add(alert))
                result = RegistryResult(alert=alert, created=True)
                logger.info(
                    f"Opened {alert.type.value} alert {alert.id} for sensor "
                    f"{alert.sensor_id} ({alert.severity.value})"
                )
            else:
                raised = existing.refresh(condition, message)
                alert = await self._persist("update", lambda: self._repository.update(existing))
                result = RegistryResult(alert=alert, severity_raised=raised)
                if raised:
                    logger.info(f"Alert {alert.id} severity raised to {alert.severity.value}")

        if result.should_notify:
            self._fire(self._on_notify, result.alert)
        return result

    async def get(self, alert_id: UUID) -> TechnicalAlert:
        """
        Get an alert by id.

        Raises:
            EntityNotFoundException: If the alert does not exist
        """
        alert = await self._persist("lookup", lambda: self._repository.get_by_id(alert_id))
        if alert is None:
            raise EntityNotFoundException("TechnicalAlert", alert_id)
        return alert

    async def mark_alert_read(
        self,
        alert_id: UUID,
        when: Optional[datetime] = None,
    ) -> TechnicalAlert:
        """
        Acknowledge an alert. The next detection of the same condition
        opens a new alert.

        Raises:
            EntityNotFoundException: If the alert does not exist
            PersistenceError: If storing fails twice
        """
        alert = await self.get(alert_id)
        async with self._key_lock(alert.key):
            alert = await self.get(alert_id)
            if alert.is_read:
                return alert
            alert.acknowledge(when or self._clock())
            alert = await self._persist("acknowledge", lambda: self._repository.update(alert))

        logger.info(f"Alert {alert_id} marked read")
        self._fire(self._on_acknowledged, alert.id)
        return alert

    async def mark_all_read(self, site_id: Optional[str] = None) -> int:
        """
        Acknowledge every unread alert, optionally for one site.

        Returns:
            Number of alerts marked read
        """
        unread = await self.list_unread(site_id)
        when = self._clock()
        for alert in unread:
            await self.mark_alert_read(alert.id, when)
        return len(unread)

    async def escalate(
        self,
        alert_id: UUID,
        when: Optional[datetime] = None,
    ) -> Optional[TechnicalAlert]:
        """
        Promote an unread alert by one severity step, once.

        Returns:
            The escalated alert, or None if it was read, already
            escalated or no longer exists
        """
        alert = await self._persist("lookup", lambda: self._repository.get_by_id(alert_id))
        if alert is None:
            return None
        async with self._key_lock(alert.key):
            alert = await self._persist("lookup", lambda: self._repository.get_by_id(alert_id))
            if alert is None or not alert.escalate(when or self._clock()):
                return None
            alert = await self._persist("escalate", lambda: self._repository.update(alert))

        logger.info(f"Alert {alert.id} escalated to {alert.severity.value}")
        return alert

    async def list_unread(self, site_id: Optional[str] = None) -> List[TechnicalAlert]:
        return await self._persist("list", lambda: self._repository.list_unread(site_id))

    async def list_by_site(
        self,
        site_id: str,
        limit: int = 100,
        offset: int = 0,
        unread_only: bool = False,
    ) -> List[TechnicalAlert]:
        return await self._persist(
            "list",
            lambda: self._repository.list_by_site(site_id, limit, offset, unread_only),
        )

    async def get_stats(self, site_id: Optional[str] = None) -> AlertStats:
        """Count total, unread, critical unread and read alerts."""
        total = await self._persist("count", lambda: self._repository.count(site_id))
        unread = await self._persist(
            "count", lambda: self._repository.count(site_id, is_read=False)
        )
        critical_unread = await self._persist(
            "count",
            lambda: self._repository.count(site_id, is_read=False, severity=Severity.CRITICAL),
        )
        return AlertStats(
            total=total,
            unread=unread,
            critical_unread=critical_unread,
            read=total - unread,
        )
