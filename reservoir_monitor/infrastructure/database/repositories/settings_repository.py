"""
SQLAlchemy implementation of the settings repository.
"""
from typing import Any, Dict, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from ....application.interfaces.repositories import SettingsRepository
from ....domain.entities.base import utc_now
from ....domain.exceptions import PersistenceError
from ..connection import DatabaseManager
from ..models.settings_model import SettingsModel


class SQLAlchemySettingsRepository(SettingsRepository):
    """Stores one JSON record per (category, scope)."""

    def __init__(self, db: DatabaseManager):
        self._db = db

    async def get(self, category: str, scope: str) -> Optional[Dict[str, Any]]:
        query = select(SettingsModel).where(
            SettingsModel.category == category,
            SettingsModel.scope == scope,
        )
        try:
            async with self._db.session() as session:
                result = await session.execute(query)
                model = result.scalar_one_or_none()
                return dict(model.data) if model else None
        except SQLAlchemyError as e:
            raise PersistenceError("get_settings", str(e)) from e

    async def save(self, category: str, scope: str, values: Dict[str, Any]) -> Dict[str, Any]:
        query = select(SettingsModel).where(
            SettingsModel.category == category,
            SettingsModel.scope == scope,
        )
        try:
            async with self._db.session() as session:
                result = await session.execute(query)
                model = result.scalar_one_or_none()
                if model is None:
                    model = SettingsModel(category=category, scope=scope, data=dict(values))
                    session.add(model)
                else:
                    model.data = dict(values)
                    model.updated_at = utc_now()
                await session.flush()
                return dict(model.data)
        except SQLAlchemyError as e:
            raise PersistenceError("save_settings", str(e)) from e

    async def delete(self, category: str, scope: str) -> bool:
        statement = delete(SettingsModel).where(
            SettingsModel.category == category,
            SettingsModel.scope == scope,
        )
        try:
            async with self._db.session() as session:
                result = await session.execute(statement)
                return (result.rowcount or 0) > 0
        except SQLAlchemyError as e:
            raise PersistenceError("delete_settings", str(e)) from e
