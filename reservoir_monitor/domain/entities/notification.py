"""
Notification domain entities.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple
from uuid import UUID

from .alert import Severity
from .base import utc_now


class NotificationChannel(str, Enum):
    """Notification delivery channels."""
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"


class Frequency(str, Enum):
    """How often a channel delivers."""
    IMMEDIATE = "immediate"
    HOURLY = "hourly"
    DAILY = "daily"


@dataclass(frozen=True)
class ChannelSettings:
    """Per-channel delivery preferences."""
    enabled: bool = False
    recipients: Tuple[str, ...] = ()
    alert_types: FrozenSet[str] = frozenset()
    frequency: Frequency = Frequency.IMMEDIATE
    critical_only: bool = False

    def accepts(self, alert_type: str, severity: Severity) -> bool:
        """
        Check the alert-type filter.

        Entries may name alert types (e.g. BATTERY_LOW) or severities
        (e.g. CRITICAL); either one matching lets the alert through.
        """
        if self.critical_only and severity != Severity.CRITICAL:
            return False
        return alert_type in self.alert_types or severity.value in self.alert_types


@dataclass(frozen=True)
class TechnicalAlertSettings:
    """Escalation preferences for technical alerts."""
    enabled: bool = False
    severity_levels: FrozenSet[str] = frozenset()
    auto_escalation: bool = False
    escalation_delay: int = 30  # minutes

    def escalates(self, severity: Severity) -> bool:
        if not self.auto_escalation:
            return False
        return not self.severity_levels or severity.value in self.severity_levels


@dataclass(frozen=True)
class NotificationSettings:
    """Notification preferences for one scope."""
    email: ChannelSettings
    sms: ChannelSettings
    push: ChannelSettings
    technical_alerts: TechnicalAlertSettings

    def channel(self, channel: NotificationChannel) -> ChannelSettings:
        return {
            NotificationChannel.EMAIL: self.email,
            NotificationChannel.SMS: self.sms,
            NotificationChannel.PUSH: self.push,
        }[channel]

    def to_dict(self) -> Dict[str, Any]:
        def channel_dict(settings: ChannelSettings) -> Dict[str, Any]:
            return {
                "enabled": settings.enabled,
                "recipients": list(settings.recipients),
                "alert_types": sorted(settings.alert_types),
                "frequency": settings.frequency.value,
                "critical_only": settings.critical_only,
            }

        return {
            "email_notifications": channel_dict(self.email),
            "sms_notifications": channel_dict(self.sms),
            "push_notifications": channel_dict(self.push),
            "technical_alerts": {
                "enabled": self.technical_alerts.enabled,
                "severity_levels": sorted(self.technical_alerts.severity_levels),
                "auto_escalation": self.technical_alerts.auto_escalation,
                "escalation_delay": self.technical_alerts.escalation_delay,
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NotificationSettings":
        """Build from a stored mapping keyed like the settings service."""
        technical = data.get("technical_alerts") or {}
        return cls(
            email=_channel_from_dict(data.get("email_notifications") or {}),
            sms=_channel_from_dict(data.get("sms_notifications") or {}),
            push=_channel_from_dict(data.get("push_notifications") or {}),
            technical_alerts=TechnicalAlertSettings(
                enabled=bool(technical.get("enabled", False)),
                severity_levels=frozenset(_string_list(technical.get("severity_levels"))),
                auto_escalation=bool(technical.get("auto_escalation", False)),
                escalation_delay=int(technical.get("escalation_delay", 30)),
            ),
        )


def _string_list(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise TypeError(f"expected a list of strings, got {type(value).__name__}")
    return tuple(str(item) for item in value)


def _channel_from_dict(data: Mapping[str, Any]) -> ChannelSettings:
    return ChannelSettings(
        enabled=bool(data.get("enabled", False)),
        recipients=_string_list(data.get("recipients")),
        alert_types=frozenset(_string_list(data.get("alert_types"))),
        frequency=Frequency(data.get("frequency", Frequency.IMMEDIATE.value)),
        critical_only=bool(data.get("critical_only", False)),
    )


DEFAULT_NOTIFICATION_SETTINGS = NotificationSettings(
    email=ChannelSettings(
        enabled=False,
        alert_types=frozenset({"CRITICAL", "HIGH"}),
        frequency=Frequency.IMMEDIATE,
    ),
    sms=ChannelSettings(
        enabled=False,
        alert_types=frozenset({"CRITICAL"}),
        frequency=Frequency.IMMEDIATE,
    ),
    push=ChannelSettings(
        enabled=False,
        alert_types=frozenset({"CRITICAL", "HIGH", "MEDIUM"}),
        critical_only=False,
    ),
    technical_alerts=TechnicalAlertSettings(
        enabled=False,
        severity_levels=frozenset({"CRITICAL", "HIGH"}),
        auto_escalation=False,
        escalation_delay=30,
    ),
)


@dataclass(frozen=True)
class NotificationMessage:
    """Rendered notification handed to a channel sender."""
    subject: str
    body: str
    severity: Severity
    site_id: str
    alert_id: Optional[UUID] = None
    alert_type: Optional[str] = None
    site_name: str = ""
    escalated: bool = False
    created_at: datetime = field(default_factory=utc_now)
