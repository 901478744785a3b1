"""
Escalation scheduler for unread technical alerts.

Alerts registered by the dispatcher are escalated once their delay has
elapsed without a technician marking them read.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional
from uuid import UUID

from ..application.services.alert_registry import AlertRegistry
from ..application.services.notification_settings import NotificationSettingsStore
from ..domain.entities.alert import TechnicalAlert
from ..domain.entities.base import ensure_utc, utc_now
from ..domain.exceptions import PersistenceError

logger = logging.getLogger(__name__)


class EscalationScheduler:
    """
    Single timer loop escalating overdue alerts.

    Features:
    - One escalation per alert: the registration is dropped when it fires
    - Missed ticks catch up on the next tick
    - Failed escalations stay registered and retry on the next tick
    """

    def __init__(
        self,
        registry: AlertRegistry,
        dispatcher=None,
        tick_interval: float = 60.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the escalation scheduler.

        Args:
            registry: Alert registry holding alert state.
            dispatcher: Notification dispatcher for escalated alerts.
            tick_interval: Seconds between ticks.
            clock: Source of the current time.
        """
        self.registry = registry
        self.dispatcher = dispatcher
        self.tick_interval = tick_interval
        self._clock = clock

        # Alert id -> due time
        self._due: Dict[UUID, datetime] = {}

        # State
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    def set_dispatcher(self, dispatcher) -> None:
        self.dispatcher = dispatcher

    @property
    def pending(self) -> int:
        return len(self._due)

    def due_at(self, alert_id: UUID) -> Optional[datetime]:
        return self._due.get(alert_id)

    def register(
        self,
        alert_id: UUID,
        delay_minutes: float,
        created_at: Optional[datetime] = None,
    ) -> datetime:
        """
        Schedule an alert for escalation.

        Registering an already scheduled alert keeps its original due time.

        Args:
            alert_id: Alert to watch.
            delay_minutes: Minutes after creation before escalating.
            created_at: Alert creation time, defaults to now.

        Returns:
            The due time.
        """
        if alert_id in self._due:
            return self._due[alert_id]
        start = ensure_utc(created_at) if created_at else self._clock()
        due = start + timedelta(minutes=delay_minutes)
        self._due[alert_id] = due
        logger.debug(f"Registered alert {alert_id} for escalation at {due.isoformat()}")
        return due

    def unregister(self, alert_id: UUID) -> bool:
        """Stop watching an alert. Returns False if it was not registered."""
        removed = self._due.pop(alert_id, None) is not None
        if removed:
            logger.debug(f"Unregistered alert {alert_id} from escalation")
        return removed

    async def tick(self, now: Optional[datetime] = None) -> List[TechnicalAlert]:
        """
        Escalate every registered alert whose due time has passed.

        Args:
            now: Reference time, defaults to the clock.

        Returns:
            Alerts escalated by this tick.
        """
        now = ensure_utc(now) if now else self._clock()
        due_ids = [alert_id for alert_id, due in self._due.items() if due <= now]
        escalated: List[TechnicalAlert] = []

        for alert_id in due_ids:
            due = self._due.pop(alert_id, None)
            if due is None:
                continue

            try:
                alert = await self.registry.escalate(alert_id, now)
            except PersistenceError as e:
                logger.error(f"Escalation of alert {alert_id} failed, retrying next tick: {e.message}")
                self._due[alert_id] = due
                continue

            if alert is None:
                # Read, already escalated or deleted
                continue

            escalated.append(alert)
            if self.dispatcher is not None:
                try:
                    await self.dispatcher.dispatch(alert, escalated=True)
                except Exception as e:
                    logger.error(f"Error dispatching escalated alert {alert_id}: {e}")

        if escalated:
            logger.info(f"Escalated {len(escalated)} alerts")
        return escalated

    async def restore(self, settings_store: NotificationSettingsStore) -> int:
        """
        Re-register unread alerts after a restart.

        Returns:
            Number of alerts registered.
        """
        restored = 0
        for alert in await self.registry.list_unread():
            if alert.is_escalated:
                continue
            settings = await settings_store.get(alert.site_id)
            if not settings.technical_alerts.escalates(alert.severity):
                continue
            self.register(alert.id, settings.technical_alerts.escalation_delay, alert.created_at)
            restored += 1
        logger.info(f"Restored {restored} alerts for escalation")
        return restored

    async def start(self) -> None:
        """Start the tick loop."""
        if self._running:
            return
        logger.info(f"Starting escalation scheduler (interval={self.tick_interval}s)")
        self._running = True
        self._shutdown_event.clear()
        self._task = asyncio.create_task(self._run(), name="escalation_scheduler")

    async def stop(self) -> None:
        """Stop the tick loop and wait for the current tick to finish."""
        if not self._running:
            return
        logger.info("Stopping escalation scheduler")
        self._running = False
        self._shutdown_event.set()

        if self._task and not self._task.done():
            try:
                await asyncio.wait_for(self._task, timeout=self.tick_interval + 5)
            except asyncio.TimeoutError:
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
        self._task = None
        logger.info("Escalation scheduler stopped")

    async def _run(self) -> None:
        while self._running:
            try:
                await self.tick()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Unexpected error in escalation tick: {e}")

            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self.tick_interval,
                )
                # Shutdown event was set
                break
            except asyncio.TimeoutError:
                pass
