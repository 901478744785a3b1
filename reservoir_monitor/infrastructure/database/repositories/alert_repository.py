"""
SQLAlchemy implementation of the technical alert repository.
"""
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from ....application.interfaces.repositories import TechnicalAlertRepository
from ....domain.entities.alert import AlertType, Severity, TechnicalAlert
from ....domain.exceptions import PersistenceError
from ..connection import DatabaseManager
from ..models.alert_model import TechnicalAlertModel


class SQLAlchemyTechnicalAlertRepository(TechnicalAlertRepository):
    """
    SQLAlchemy implementation of technical alert repository.

    Each call runs in its own transaction. Database errors are raised
    as PersistenceError.
    """

    def __init__(self, db: DatabaseManager):
        self._db = db

    async def get_by_id(self, id: UUID) -> Optional[TechnicalAlert]:
        """Get alert by ID."""
        try:
            async with self._db.session() as session:
                model = await session.get(TechnicalAlertModel, id)
                return model.to_domain() if model else None
        except SQLAlchemyError as e:
            raise PersistenceError("get_by_id", str(e)) from e

    async def add(self, alert: TechnicalAlert) -> TechnicalAlert:
        """Add new alert."""
        try:
            async with self._db.session() as session:
                model = TechnicalAlertModel.from_domain(alert)
                session.add(model)
                await session.flush()
                return model.to_domain()
        except SQLAlchemyError as e:
            raise PersistenceError("add", str(e)) from e

    async def update(self, alert: TechnicalAlert) -> TechnicalAlert:
        """Update existing alert."""
        try:
            async with self._db.session() as session:
                model = await session.get(TechnicalAlertModel, alert.id)
                if model is None:
                    raise PersistenceError("update", f"Technical alert {alert.id} does not exist")
                model.update_from_domain(alert)
                await session.flush()
                return model.to_domain()
        except SQLAlchemyError as e:
            raise PersistenceError("update", str(e)) from e

    async def get_open(self, sensor_id: str, alert_type: AlertType) -> Optional[TechnicalAlert]:
        """Get the unread alert for a sensor and alert type."""
        query = (
            select(TechnicalAlertModel)
            .where(
                TechnicalAlertModel.sensor_id == sensor_id,
                TechnicalAlertModel.type == alert_type,
                TechnicalAlertModel.is_read.is_(False),
            )
            .order_by(TechnicalAlertModel.created_at.desc())
            .limit(1)
        )
        try:
            async with self._db.session() as session:
                result = await session.execute(query)
                model = result.scalar_one_or_none()
                return model.to_domain() if model else None
        except SQLAlchemyError as e:
            raise PersistenceError("get_open", str(e)) from e

    async def list_unread(self, site_id: Optional[str] = None) -> List[TechnicalAlert]:
        """Get unread alerts, newest first."""
        query = select(TechnicalAlertModel).where(TechnicalAlertModel.is_read.is_(False))
        if site_id is not None:
            query = query.where(TechnicalAlertModel.site_id == site_id)
        query = query.order_by(TechnicalAlertModel.created_at.desc())
        return await self._list("list_unread", query)

    async def list_by_site(
        self,
        site_id: str,
        limit: int = 100,
        offset: int = 0,
        unread_only: bool = False
    ) -> List[TechnicalAlert]:
        """Get alerts for a site, newest first."""
        query = select(TechnicalAlertModel).where(TechnicalAlertModel.site_id == site_id)
        if unread_only:
            query = query.where(TechnicalAlertModel.is_read.is_(False))
        query = query.order_by(TechnicalAlertModel.created_at.desc())
        query = query.limit(limit).offset(offset)
        return await self._list("list_by_site", query)

    async def count(
        self,
        site_id: Optional[str] = None,
        is_read: Optional[bool] = None,
        severity: Optional[Severity] = None
    ) -> int:
        """Count alerts matching the filters."""
        query = select(func.count()).select_from(TechnicalAlertModel)
        if site_id is not None:
            query = query.where(TechnicalAlertModel.site_id == site_id)
        if is_read is not None:
            query = query.where(TechnicalAlertModel.is_read.is_(is_read))
        if severity is not None:
            query = query.where(TechnicalAlertModel.severity == severity)
        try:
            async with self._db.session() as session:
                result = await session.execute(query)
                return result.scalar() or 0
        except SQLAlchemyError as e:
            raise PersistenceError("count", str(e)) from e

    async def _list(self, operation: str, query) -> List[TechnicalAlert]:
        try:
            async with self._db.session() as session:
                result = await session.execute(query)
                return [m.to_domain() for m in result.scalars().all()]
        except SQLAlchemyError as e:
            raise PersistenceError(operation, str(e)) from e
