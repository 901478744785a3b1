# Application Interfaces
from .repositories import SettingsRepository, TechnicalAlertRepository
from .services import NotificationSender, SensorDirectory

__all__ = [
    'NotificationSender',
    'SensorDirectory',
    'SettingsRepository',
    'TechnicalAlertRepository',
]
