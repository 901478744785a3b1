# ORM Models
from .base import Base
from .alert_model import TechnicalAlertModel
from .settings_model import SettingsModel

__all__ = [
    'Base',
    'SettingsModel',
    'TechnicalAlertModel',
]
