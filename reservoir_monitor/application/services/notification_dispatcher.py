"""
Notification Dispatcher Application Service.

Routes technical alerts to email, SMS and push according to the
notification settings of the alert's site.
"""
import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple
from uuid import UUID

from ...domain.entities.alert import TechnicalAlert
from ...domain.entities.notification import (
    Frequency,
    NotificationChannel,
    NotificationMessage,
    NotificationSettings,
)
from ...domain.exceptions import DispatchError
from ..interfaces.services import NotificationSender
from .notification_settings import NotificationSettingsStore

logger = logging.getLogger(__name__)

DEFAULT_PUSH_TOPIC = "site-{site_id}"

DigestKey = Tuple[str, NotificationChannel]


@dataclass
class DeliveryResult:
    """Result of one send to one recipient."""
    channel: NotificationChannel
    recipient: str
    delivered: bool
    error: Optional[str] = None


@dataclass
class DispatchReport:
    """What the dispatcher did with one alert."""
    alert_id: UUID
    escalated: bool = False
    deliveries: List[DeliveryResult] = field(default_factory=list)
    queued: List[DigestKey] = field(default_factory=list)
    skipped: Dict[NotificationChannel, str] = field(default_factory=dict)
    escalation_registered: bool = False

    @property
    def sent_count(self) -> int:
        return sum(1 for d in self.deliveries if d.delivered)

    @property
    def failures(self) -> List[DeliveryResult]:
        return [d for d in self.deliveries if not d.delivered]


class DigestQueue:
    """
    Pending notifications for channels that deliver hourly or daily.

    Entries are grouped by (recipient, channel) so each flush sends one
    combined message per group.
    """

    def __init__(self):
        self._pending: Dict[Frequency, Dict[DigestKey, List[NotificationMessage]]] = {
            Frequency.HOURLY: defaultdict(list),
            Frequency.DAILY: defaultdict(list),
        }

    def add(
        self,
        frequency: Frequency,
        recipient: str,
        channel: NotificationChannel,
        message: NotificationMessage,
    ) -> None:
        if frequency == Frequency.IMMEDIATE:
            raise ValueError("immediate notifications are not queued")
        self._pending[frequency][(recipient, channel)].append(message)

    def pop(self, frequency: Frequency) -> Dict[DigestKey, List[NotificationMessage]]:
        """Remove and return everything queued for a frequency."""
        batch = dict(self._pending[frequency])
        self._pending[frequency] = defaultdict(list)
        return batch

    def pending(self, frequency: Optional[Frequency] = None) -> int:
        frequencies = [frequency] if frequency else list(self._pending)
        return sum(
            len(messages)
            for f in frequencies
            for messages in self._pending[f].values()
        )


def build_notification(alert: TechnicalAlert, escalated: bool = False) -> NotificationMessage:
    """Render the notification for an alert."""
    prefix = "[ESCALATED] " if escalated else ""
    site_name = alert.details.site_name or alert.site_id
    return NotificationMessage(
        subject=f"{prefix}[{alert.severity.value}] {alert.type.value} - {site_name}",
        body=alert.message,
        severity=alert.severity,
        site_id=alert.site_id,
        alert_id=alert.id,
        alert_type=alert.type.value,
        site_name=site_name,
        escalated=escalated,
    )


def build_digest(messages: List[NotificationMessage], frequency: Frequency) -> NotificationMessage:
    """Combine queued notifications into one message."""
    severity = max((m.severity for m in messages), key=lambda s: s.rank)
    sites = {m.site_id for m in messages}
    single_site = len(sites) == 1
    lines = [f"- {m.subject}: {m.body}" for m in messages]
    return NotificationMessage(
        subject=f"{frequency.value.capitalize()} alert digest ({len(messages)} alerts)",
        body="\n".join(lines),
        severity=severity,
        site_id=messages[0].site_id if single_site else "*",
        site_name=messages[0].site_name if single_site else "",
    )


class NotificationDispatcher:
    """
    Sends alert notifications per channel preferences.

    A failing channel never blocks the others. Each send is bounded by
    `send_timeout` seconds.
    """

    def __init__(
        self,
        settings_store: NotificationSettingsStore,
        senders: Iterable[NotificationSender],
        escalation_scheduler=None,
        send_timeout: float = 10.0,
        push_topic: str = DEFAULT_PUSH_TOPIC,
    ):
        self._settings_store = settings_store
        self._senders: Dict[NotificationChannel, NotificationSender] = {
            sender.channel: sender for sender in senders
        }
        self._escalation_scheduler = escalation_scheduler
        self._send_timeout = send_timeout
        self._push_topic = push_topic
        self.digests = DigestQueue()

        self._tasks: Set[asyncio.Task] = set()

    def set_escalation_scheduler(self, scheduler) -> None:
        self._escalation_scheduler = scheduler

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def submit(self, alert: TechnicalAlert, escalated: bool = False) -> asyncio.Task:
        """
        Dispatch in the background.

        Must be called from a running event loop. Failures are logged.
        """
        task = asyncio.create_task(
            self._dispatch_logged(alert, escalated),
            name=f"dispatch_{alert.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _dispatch_logged(self, alert: TechnicalAlert, escalated: bool) -> Optional[DispatchReport]:
        try:
            return await self.dispatch(alert, escalated)
        except Exception:
            logger.exception(f"Unexpected error dispatching alert {alert.id}")
            return None

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for background dispatches to finish.

        Returns:
            False if some were still running after the timeout
        """
        if not self._tasks:
            return True
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} notification dispatches still running at shutdown")
            return False
        return True

    def _recipients(self, channel: NotificationChannel, alert: TechnicalAlert,
                    settings: NotificationSettings) -> List[str]:
        if channel == NotificationChannel.PUSH:
            return [self._push_topic.format(site_id=alert.site_id)]
        return list(settings.channel(channel).recipients)

    async def dispatch(self, alert: TechnicalAlert, escalated: bool = False) -> DispatchReport:
        """
        Notify every eligible channel about an alert.

        Args:
            alert: The new, more severe or escalated alert
            escalated: True when called by the escalation scheduler

        Returns:
            DispatchReport with per-recipient results
        """
        settings = await self._settings_store.get(alert.site_id)
        message = build_notification(alert, escalated)
        report = DispatchReport(alert_id=alert.id, escalated=escalated)
        sends = []

        for channel in NotificationChannel:
            channel_settings = settings.channel(channel)
            if not channel_settings.enabled:
                report.skipped[channel] = "disabled"
                continue
            if not channel_settings.accepts(alert.type.value, alert.severity):
                report.skipped[channel] = "filtered"
                continue
            sender = self._senders.get(channel)
            if sender is None:
                report.skipped[channel] = "no sender"
                logger.warning(f"No sender configured for {channel.value} notifications")
                continue
            recipients = self._recipients(channel, alert, settings)
            if not recipients:
                report.skipped[channel] = "no recipients"
                continue

            if channel_settings.frequency == Frequency.IMMEDIATE:
                sends.extend(
                    self._send(sender, recipient, message) for recipient in recipients
                )
            else:
                for recipient in recipients:
                    self.digests.add(channel_settings.frequency, recipient, channel, message)
                    report.queued.append((recipient, channel))

        if sends:
            report.deliveries = list(await asyncio.gather(*sends))

        if not escalated and settings.technical_alerts.escalates(alert.severity):
            if self._escalation_scheduler is not None:
                self._escalation_scheduler.register(
                    alert.id,
                    settings.technical_alerts.escalation_delay,
                    created_at=alert.created_at,
                )
                report.escalation_registered = True

        logger.info(
            f"Dispatched alert {alert.id}: {report.sent_count} sent, "
            f"{len(report.failures)} failed, {len(report.queued)} queued"
        )
        return report

    async def flush_digests(self, frequency: Frequency) -> List[DeliveryResult]:
        """
        Send one combined message per (recipient, channel) queued for a frequency.

        Called by a periodic job.
        """
        batch = self.digests.pop(frequency)
        sends = []
        for (recipient, channel), messages in batch.items():
            sender = self._senders.get(channel)
            if sender is None:
                logger.warning(f"Dropping {channel.value} digest for {recipient}: no sender")
                continue
            sends.append(self._send(sender, recipient, build_digest(messages, frequency)))
        if not sends:
            return []
        return list(await asyncio.gather(*sends))

    async def _send(
        self,
        sender: NotificationSender,
        recipient: str,
        message: NotificationMessage,
    ) -> DeliveryResult:
        channel = sender.channel
        try:
            delivered = await asyncio.wait_for(
                sender.send(recipient, message),
                timeout=self._send_timeout,
            )
            reason = None if delivered else "rejected by provider"
        except asyncio.TimeoutError:
            delivered, reason = False, f"timed out after {self._send_timeout}s"
        except Exception as e:
            delivered, reason = False, str(e) or e.__class__.__name__

        if not delivered:
            error = DispatchError(channel.value, recipient, reason)
            logger.error(error.message)
            return DeliveryResult(channel, recipient, False, error=reason)
        return DeliveryResult(channel, recipient, True)
