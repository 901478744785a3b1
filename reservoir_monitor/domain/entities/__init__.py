# Domain Entities
from .base import Entity, ensure_utc, utc_now
from .reading import PERCENT, Reading, ReadingKind, SensorInfo, SensorSnapshot, SensorStatus
from .thresholds import (
    DEFAULT_THRESHOLDS,
    AlertThresholds,
    CalibrationReminder,
    LevelBands,
    MaintenanceInterval,
    TwoTierBands,
    merge_thresholds,
)
from .alert import (
    AlertCondition,
    AlertDetails,
    AlertType,
    Severity,
    TechnicalAlert,
    ThresholdBand,
)
from .notification import (
    DEFAULT_NOTIFICATION_SETTINGS,
    ChannelSettings,
    Frequency,
    NotificationChannel,
    NotificationMessage,
    NotificationSettings,
    TechnicalAlertSettings,
)

__all__ = [
    # Base
    'Entity',
    'ensure_utc',
    'utc_now',
    # Telemetry
    'PERCENT',
    'Reading',
    'ReadingKind',
    'SensorInfo',
    'SensorSnapshot',
    'SensorStatus',
    # Thresholds
    'DEFAULT_THRESHOLDS',
    'AlertThresholds',
    'CalibrationReminder',
    'LevelBands',
    'MaintenanceInterval',
    'TwoTierBands',
    'merge_thresholds',
    # Alerts
    'AlertCondition',
    'AlertDetails',
    'AlertType',
    'Severity',
    'TechnicalAlert',
    'ThresholdBand',
    # Notifications
    'DEFAULT_NOTIFICATION_SETTINGS',
    'ChannelSettings',
    'Frequency',
    'NotificationChannel',
    'NotificationMessage',
    'NotificationSettings',
    'TechnicalAlertSettings',
]
