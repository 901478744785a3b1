"""
Alert threshold configuration.

Thresholds are grouped by category. For every "low is bad" metric the
bands are ordered emergency < critical < warning.
"""
import math
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Mapping, Tuple


@dataclass(frozen=True)
class LevelBands:
    """Three-tier bands for the reservoir fill level, in percent."""
    warning: float
    critical: float
    emergency: float


@dataclass(frozen=True)
class TwoTierBands:
    """Two-tier bands for battery, signal and accuracy, in percent."""
    warning: float
    critical: float


@dataclass(frozen=True)
class MaintenanceInterval:
    """Maintenance intervals in days."""
    preventive: int
    inspection: int
    emergency: int


@dataclass(frozen=True)
class CalibrationReminder:
    """Days before a calibration falls due to start reminding."""
    days_before: int


@dataclass(frozen=True)
class AlertThresholds:
    """Fully populated threshold configuration for one scope."""
    low_water_level: LevelBands
    battery_level: TwoTierBands
    signal_strength: TwoTierBands
    accuracy_threshold: TwoTierBands
    maintenance_interval: MaintenanceInterval
    calibration_reminder: CalibrationReminder

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, Any]]) -> "AlertThresholds":
        """Build from a complete mapping. Use merge_thresholds for partial data."""
        return cls(**{
            f.name: _CATEGORY_TYPES[f.name](**data[f.name])
            for f in fields(cls)
        })

    def validate(self) -> Dict[str, List[str]]:
        """
        Check band ordering and value ranges.

        Returns:
            Mapping of category to error messages, empty when valid.
        """
        errors: Dict[str, List[str]] = {}

        def add(category: str, message: str) -> None:
            errors.setdefault(category, []).append(message)

        level = self.low_water_level
        if not level.emergency < level.critical < level.warning:
            add("low_water_level", "expected emergency < critical < warning")

        for category in PERCENT_CATEGORIES:
            bands = getattr(self, category)
            if category != "low_water_level" and not bands.critical < bands.warning:
                add(category, "expected critical < warning")
            for name, value in asdict(bands).items():
                if not 0 <= value <= 100:
                    add(category, f"{name} must be between 0 and 100")

        for name, value in asdict(self.maintenance_interval).items():
            if value <= 0:
                add("maintenance_interval", f"{name} must be a positive number of days")

        if self.calibration_reminder.days_before < 0:
            add("calibration_reminder", "days_before must not be negative")

        return errors


_CATEGORY_TYPES = {
    "low_water_level": LevelBands,
    "battery_level": TwoTierBands,
    "signal_strength": TwoTierBands,
    "accuracy_threshold": TwoTierBands,
    "maintenance_interval": MaintenanceInterval,
    "calibration_reminder": CalibrationReminder,
}

PERCENT_CATEGORIES = (
    "low_water_level",
    "battery_level",
    "signal_strength",
    "accuracy_threshold",
)

DAY_CATEGORIES = ("maintenance_interval", "calibration_reminder")


DEFAULT_THRESHOLDS = AlertThresholds(
    low_water_level=LevelBands(warning=30.0, critical=20.0, emergency=10.0),
    battery_level=TwoTierBands(warning=20.0, critical=10.0),
    signal_strength=TwoTierBands(warning=30.0, critical=15.0),
    accuracy_threshold=TwoTierBands(warning=85.0, critical=70.0),
    maintenance_interval=MaintenanceInterval(preventive=30, inspection=7, emergency=1),
    calibration_reminder=CalibrationReminder(days_before=7),
)


def _coerce(category: str, raw: Any) -> Any:
    if isinstance(raw, bool):
        raise ValueError("booleans are not thresholds")
    number = float(raw)
    if not math.isfinite(number):
        raise ValueError("threshold must be finite")
    if category in DAY_CATEGORIES:
        return int(number)
    return number


def merge_thresholds(
    base: AlertThresholds,
    overrides: Mapping[str, Any],
) -> Tuple[AlertThresholds, List[str]]:
    """
    Overlay a partial, possibly corrupt, record on top of complete thresholds.

    Unknown categories, unknown fields and non-numeric values are skipped,
    so the result is always fully populated.

    Returns:
        Tuple of (merged thresholds, list of skipped "category.field" paths)
    """
    data = base.to_dict()
    skipped: List[str] = []

    for category, values in (overrides or {}).items():
        if category not in data or not isinstance(values, Mapping):
            skipped.append(str(category))
            continue
        for name, raw in values.items():
            if name not in data[category]:
                skipped.append(f"{category}.{name}")
                continue
            try:
                data[category][name] = _coerce(category, raw)
            except (TypeError, ValueError):
                skipped.append(f"{category}.{name}")

    return AlertThresholds.from_dict(data), skipped
