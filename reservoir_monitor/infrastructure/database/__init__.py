"""
Database layer: async SQLAlchemy engine, ORM models and repositories.
"""
from .connection import DatabaseManager
from .repositories import SQLAlchemySettingsRepository, SQLAlchemyTechnicalAlertRepository

__all__ = [
    'DatabaseManager',
    'SQLAlchemySettingsRepository',
    'SQLAlchemyTechnicalAlertRepository',
]
