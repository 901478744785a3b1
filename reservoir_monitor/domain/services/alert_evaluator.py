"""
Alert Evaluator Domain Service.

Turns readings and sensor snapshots into alert conditions by comparing
them with the thresholds of the sensor's site. The evaluator keeps no
state: deduplication of repeated conditions belongs to the alert registry.
"""
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from ..entities.alert import AlertCondition, AlertType, Severity, ThresholdBand
from ..entities.base import ensure_utc, utc_now
from ..entities.reading import PERCENT, Reading, ReadingKind, SensorSnapshot, SensorStatus
from ..entities.thresholds import AlertThresholds, TwoTierBands

SECONDS_PER_DAY = 86400.0

# Reading kind -> (alert type, threshold category)
_TWO_TIER_METRICS = {
    ReadingKind.BATTERY: (AlertType.BATTERY_LOW, "battery_level"),
    ReadingKind.SIGNAL: (AlertType.SIGNAL_WEAK, "signal_strength"),
    ReadingKind.ACCURACY: (AlertType.ACCURACY_LOW, "accuracy_threshold"),
}


def level_percentage(value: float, unit: str, capacity: Optional[float] = None) -> Optional[float]:
    """
    Express a level measurement as a fill percentage in [0, 100].

    Percent readings pass through. Length readings need the reservoir
    capacity in the same unit; without it the fill level is unknown.
    """
    if unit == PERCENT:
        return min(100.0, max(0.0, float(value)))
    if not capacity or capacity <= 0:
        return None
    return float(min(100, max(0, round(value / capacity * 100))))


def water_level_band(percentage: float, thresholds: AlertThresholds) -> Optional[ThresholdBand]:
    """Band a fill percentage. Boundaries are inclusive."""
    bands = thresholds.low_water_level
    if percentage <= bands.emergency:
        return ThresholdBand.EMERGENCY
    if percentage <= bands.critical:
        return ThresholdBand.CRITICAL
    if percentage <= bands.warning:
        return ThresholdBand.WARNING
    return None


def water_level_severity(percentage: float, thresholds: AlertThresholds) -> Optional[Severity]:
    """Severity for a fill percentage, None when the level is healthy."""
    band = water_level_band(percentage, thresholds)
    return band.severity if band else None


def two_tier_band(value: float, bands: TwoTierBands) -> Optional[ThresholdBand]:
    """Band a battery, signal or accuracy value. Low values are worse."""
    if value <= bands.critical:
        return ThresholdBand.CRITICAL
    if value <= bands.warning:
        return ThresholdBand.WARNING
    return None


class AlertEvaluator:
    """
    Pure domain service producing alert conditions.

    Each metric is checked on its own and yields at most one condition:
    - Water level: three bands (warning, critical, emergency)
    - Battery, signal strength, accuracy: two bands (warning, critical)
    - Sensor status FAILED / MAINTENANCE: unconditional
    - Calibration: overdue after the preventive maintenance interval
    """

    def evaluate_reading(
        self,
        reading: Reading,
        thresholds: AlertThresholds,
        capacity: Optional[float] = None,
    ) -> Optional[AlertCondition]:
        """
        Evaluate a single streamed reading.

        Args:
            reading: The reading to check
            thresholds: Thresholds for the reading's site
            capacity: Reservoir capacity, needed for level readings not in percent

        Returns:
            The breached condition, or None
        """
        if reading.kind == ReadingKind.LEVEL:
            percentage = level_percentage(reading.value, reading.unit, capacity)
            if percentage is None:
                return None
            band = water_level_band(percentage, thresholds)
            if band is None:
                return None
            return AlertCondition(
                site_id=reading.site_id,
                sensor_id=reading.sensor_id,
                type=AlertType.LOW_WATER_LEVEL,
                severity=band.severity,
                measured_value=percentage,
                threshold=getattr(thresholds.low_water_level, band.value.lower()),
                unit=PERCENT,
                band=band,
                detected_at=reading.observed_at,
            )

        alert_type, category = _TWO_TIER_METRICS[reading.kind]
        return self._two_tier_condition(
            site_id=reading.site_id,
            sensor_id=reading.sensor_id,
            alert_type=alert_type,
            value=reading.value,
            bands=getattr(thresholds, category),
            detected_at=reading.observed_at,
        )

    def evaluate_snapshot(
        self,
        snapshot: SensorSnapshot,
        thresholds: AlertThresholds,
        now: Optional[datetime] = None,
    ) -> List[AlertCondition]:
        """
        Evaluate a sensor status snapshot.

        Args:
            snapshot: Latest known state of the sensor
            thresholds: Thresholds for the sensor's site
            now: Reference time for calibration age

        Returns:
            Conditions found, at most one per metric
        """
        now = ensure_utc(now) if now else utc_now()
        conditions: List[AlertCondition] = []

        status_condition = self._status_condition(snapshot, now)
        if status_condition:
            conditions.append(status_condition)

        for alert_type, category, value in (
            (AlertType.BATTERY_LOW, "battery_level", snapshot.battery_level),
            (AlertType.SIGNAL_WEAK, "signal_strength", snapshot.signal_strength),
            (AlertType.ACCURACY_LOW, "accuracy_threshold", snapshot.accuracy),
        ):
            if value is None:
                continue
            condition = self._two_tier_condition(
                site_id=snapshot.site_id,
                sensor_id=snapshot.sensor_id,
                alert_type=alert_type,
                value=value,
                bands=getattr(thresholds, category),
                detected_at=now,
            )
            if condition:
                conditions.append(condition)

        calibration = self._calibration_condition(snapshot, thresholds, now)
        if calibration:
            conditions.append(calibration)

        return conditions

    def _two_tier_condition(
        self,
        site_id: str,
        sensor_id: str,
        alert_type: AlertType,
        value: float,
        bands: TwoTierBands,
        detected_at: datetime,
    ) -> Optional[AlertCondition]:
        band = two_tier_band(value, bands)
        if band is None:
            return None
        return AlertCondition(
            site_id=site_id,
            sensor_id=sensor_id,
            type=alert_type,
            severity=band.severity,
            measured_value=float(value),
            threshold=getattr(bands, band.value.lower()),
            unit=PERCENT,
            band=band,
            detected_at=detected_at,
        )

    def _status_condition(
        self,
        snapshot: SensorSnapshot,
        now: datetime,
    ) -> Optional[AlertCondition]:
        mapping: Dict[SensorStatus, Tuple[AlertType, Severity]] = {
            SensorStatus.FAILED: (AlertType.SENSOR_FAILED, Severity.CRITICAL),
            SensorStatus.MAINTENANCE: (AlertType.MAINTENANCE_NEEDED, Severity.MEDIUM),
        }
        if snapshot.status not in mapping:
            return None
        alert_type, severity = mapping[snapshot.status]
        return AlertCondition(
            site_id=snapshot.site_id,
            sensor_id=snapshot.sensor_id,
            type=alert_type,
            severity=severity,
            measured_value=0.0,
            threshold=0.0,
            unit="status",
            detected_at=now,
        )

    def _calibration_condition(
        self,
        snapshot: SensorSnapshot,
        thresholds: AlertThresholds,
        now: datetime,
    ) -> Optional[AlertCondition]:
        interval = thresholds.maintenance_interval.preventive
        days_since: Optional[float] = None

        if snapshot.last_calibration_date is not None:
            elapsed = now - ensure_utc(snapshot.last_calibration_date)
            days_since = elapsed.total_seconds() / SECONDS_PER_DAY
            if days_since <= interval:
                return None

        # Never calibrated counts as overdue
        return AlertCondition(
            site_id=snapshot.site_id,
            sensor_id=snapshot.sensor_id,
            type=AlertType.CALIBRATION_DUE,
            severity=Severity.LOW,
            measured_value=round(days_since, 1) if days_since is not None else None,
            threshold=float(interval),
            unit="days",
            detected_at=now,
        )
