"""
Telemetry domain entities.

Readings arrive from the sensor gateway, snapshots come from the
periodic sensor status check.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .base import utc_now


class ReadingKind(str, Enum):
    """Metric carried by a reading."""
    LEVEL = "LEVEL"
    BATTERY = "BATTERY"
    SIGNAL = "SIGNAL"
    ACCURACY = "ACCURACY"


class SensorStatus(str, Enum):
    """Operational status reported for a sensor."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    MAINTENANCE = "MAINTENANCE"
    FAILED = "FAILED"


PERCENT = "%"


@dataclass(frozen=True)
class Reading:
    """
    One timestamped measurement of a single metric.

    Readings are immutable once emitted. The pair
    (sensor_id, kind, observed_at) identifies a reading.
    """
    site_id: str
    sensor_id: str
    kind: ReadingKind
    value: float
    unit: str
    observed_at: datetime
    source: str = "gateway"

    @property
    def dedup_key(self) -> tuple:
        return (self.site_id, self.sensor_id, self.kind)

    @property
    def is_percentage(self) -> bool:
        return self.unit == PERCENT


@dataclass(frozen=True)
class SensorSnapshot:
    """Status snapshot of a sensor, used for non-streamed checks."""
    sensor_id: str
    site_id: str
    name: str = ""
    status: SensorStatus = SensorStatus.ACTIVE
    battery_level: Optional[float] = None
    signal_strength: Optional[float] = None
    accuracy: Optional[float] = None
    last_calibration_date: Optional[datetime] = None
    observed_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class SensorInfo:
    """Human-readable context for a sensor and its reservoir."""
    sensor_name: str
    site_name: str
    reservoir_capacity: Optional[float] = None

    @classmethod
    def unknown(cls, sensor_id: str, site_id: str) -> "SensorInfo":
        return cls(sensor_name=sensor_id, site_name=f"Site {site_id}")
