"""
Alert domain entities.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from .base import Entity, utc_now


class Severity(str, Enum):
    """Alert severity levels, totally ordered LOW < MEDIUM < HIGH < CRITICAL."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    def promote(self) -> "Severity":
        """Return the next severity up, capped at CRITICAL."""
        return _SEVERITY_ORDER[min(self.rank + 1, len(_SEVERITY_ORDER) - 1)]

    def __lt__(self, other):
        if isinstance(other, Severity):
            return self.rank < other.rank
        return NotImplemented

    def __le__(self, other):
        if isinstance(other, Severity):
            return self.rank <= other.rank
        return NotImplemented

    def __gt__(self, other):
        if isinstance(other, Severity):
            return self.rank > other.rank
        return NotImplemented

    def __ge__(self, other):
        if isinstance(other, Severity):
            return self.rank >= other.rank
        return NotImplemented


_SEVERITY_ORDER = [Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL]


class ThresholdBand(str, Enum):
    """Metric-specific band labels."""
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"
    EMERGENCY = "EMERGENCY"

    @property
    def severity(self) -> Severity:
        return _BAND_SEVERITY[self]


_BAND_SEVERITY = {
    ThresholdBand.WARNING: Severity.MEDIUM,
    ThresholdBand.CRITICAL: Severity.HIGH,
    ThresholdBand.EMERGENCY: Severity.CRITICAL,
}


class AlertType(str, Enum):
    """Kinds of technical alerts."""
    LOW_WATER_LEVEL = "LOW_WATER_LEVEL"
    BATTERY_LOW = "BATTERY_LOW"
    SIGNAL_WEAK = "SIGNAL_WEAK"
    ACCURACY_LOW = "ACCURACY_LOW"
    SENSOR_FAILED = "SENSOR_FAILED"
    MAINTENANCE_NEEDED = "MAINTENANCE_NEEDED"
    CALIBRATION_DUE = "CALIBRATION_DUE"


@dataclass(frozen=True)
class AlertCondition:
    """
    Transient determination that a sensor breaches a threshold.

    Produced by the evaluator, consumed immediately by the registry.
    """
    site_id: str
    sensor_id: str
    type: AlertType
    severity: Severity
    measured_value: Optional[float] = None
    threshold: Optional[float] = None
    unit: str = "%"
    band: Optional[ThresholdBand] = None
    detected_at: datetime = field(default_factory=utc_now)

    @property
    def key(self) -> tuple:
        return (self.sensor_id, self.type)


@dataclass
class AlertDetails:
    """Context shown to the technician with an alert."""
    sensor_name: str
    site_name: str
    current_value: Optional[float] = None
    threshold: Optional[float] = None
    unit: str = "%"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sensor_name": self.sensor_name,
            "site_name": self.site_name,
            "current_value": self.current_value,
            "threshold": self.threshold,
            "unit": self.unit,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlertDetails":
        return cls(
            sensor_name=data.get("sensor_name", ""),
            site_name=data.get("site_name", ""),
            current_value=data.get("current_value"),
            threshold=data.get("threshold"),
            unit=data.get("unit", "%"),
        )


@dataclass(kw_only=True, eq=False)
class TechnicalAlert(Entity):
    """
    Persisted, human-actionable record of a detected condition.

    An alert stays open until a technician marks it read. Recovery of the
    underlying metric never closes it, so an intermittent fault remains
    visible to operators.
    """
    sensor_id: str
    site_id: str
    type: AlertType
    severity: Severity
    message: str = ""
    details: AlertDetails = field(default_factory=lambda: AlertDetails("", ""))
    is_read: bool = False
    read_at: Optional[datetime] = None
    escalated_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return not self.is_read

    @property
    def is_escalated(self) -> bool:
        return self.escalated_at is not None

    @property
    def key(self) -> tuple:
        return (self.sensor_id, self.type)

    def refresh(self, condition: AlertCondition, message: str) -> bool:
        """
        Apply a repeat detection of the same condition.

        Details always follow the latest measurement. Severity only ever
        goes up while the alert is open.

        Returns:
            True if the severity increased.
        """
        self.details.current_value = condition.measured_value
        self.details.threshold = condition.threshold
        self.details.unit = condition.unit
        self.message = message
        raised = condition.severity > self.severity
        if raised:
            self.severity = condition.severity
        self.mark_updated(condition.detected_at)
        return raised

    def acknowledge(self, when: Optional[datetime] = None) -> None:
        """Mark the alert read."""
        if self.is_read:
            return
        self.is_read = True
        self.read_at = when or utc_now()
        self.mark_updated(self.read_at)

    def escalate(self, when: Optional[datetime] = None) -> bool:
        """
        Promote severity by one step and stamp the escalation time.

        Returns:
            False if the alert is already read or already escalated.
        """
        if self.is_read or self.is_escalated:
            return False
        self.severity = self.severity.promote()
        self.escalated_at = when or utc_now()
        self.mark_updated(self.escalated_at)
        return True
