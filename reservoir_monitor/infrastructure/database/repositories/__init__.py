# Repository Implementations
from .alert_repository import SQLAlchemyTechnicalAlertRepository
from .settings_repository import SQLAlchemySettingsRepository

__all__ = [
    'SQLAlchemySettingsRepository',
    'SQLAlchemyTechnicalAlertRepository',
]
