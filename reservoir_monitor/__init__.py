"""
Reservoir Monitor - monitoring and alerting core for water reservoirs.

Follows sensor telemetry, raises technical alerts and notifies technicians.
"""
from .config import MonitorSettings, get_settings

__version__ = "0.1.0"

__all__ = [
    "MonitorSettings",
    "get_settings",
]
