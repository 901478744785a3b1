"""
Human-readable alert messages shown to technicians and used as
notification bodies.
"""
from typing import Optional

from ..entities.alert import AlertCondition, AlertType
from ..entities.reading import SensorInfo


def _format_value(value: Optional[float], unit: str) -> str:
    if value is None:
        return "unknown"
    if float(value).is_integer():
        return f"{int(value)}{unit}"
    return f"{value:.1f}{unit}"


def build_alert_message(condition: AlertCondition, info: SensorInfo) -> str:
    """
    Render the message for an alert condition.

    Args:
        condition: The detected condition
        info: Sensor and site names

    Returns:
        One-line message
    """
    where = f"{info.sensor_name} ({info.site_name})"
    value = _format_value(condition.measured_value, condition.unit)

    if condition.type == AlertType.LOW_WATER_LEVEL:
        band = condition.band.value.lower() if condition.band else "low"
        return f"Alert: water level {band} at {info.site_name}, sensor {info.sensor_name}. Level: {value}"
    if condition.type == AlertType.BATTERY_LOW:
        return f"Alert: low battery on sensor {where}. Level: {value}"
    if condition.type == AlertType.SIGNAL_WEAK:
        return f"Alert: weak signal on sensor {where}. Strength: {value}"
    if condition.type == AlertType.ACCURACY_LOW:
        return f"Alert: low accuracy on sensor {where}. Accuracy: {value}"
    if condition.type == AlertType.SENSOR_FAILED:
        return f"URGENT: sensor {where} has failed. Immediate intervention required."
    if condition.type == AlertType.MAINTENANCE_NEEDED:
        return f"Maintenance required on sensor {where}. Status: MAINTENANCE"
    if condition.type == AlertType.CALIBRATION_DUE:
        if condition.measured_value is None:
            last = "never"
        else:
            last = f"{int(condition.measured_value)} days ago"
        return f"Calibration due for sensor {where}. Last calibration: {last}"
    return f"Technical alert on sensor {where}"
