"""
SQLAlchemy ORM model for technical alerts.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum as SQLEnum, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, JSONType, TimestampMixin, UUIDMixin, as_utc
from ....domain.entities.alert import AlertDetails, AlertType, Severity, TechnicalAlert


class TechnicalAlertModel(Base, UUIDMixin, TimestampMixin):
    """SQLAlchemy model for technical alerts."""

    __tablename__ = "technical_alerts"
    __table_args__ = (
        Index("ix_technical_alerts_sensor_type_read", "sensor_id", "type", "is_read"),
    )

    sensor_id: Mapped[str] = mapped_column(String(100), nullable=False)
    site_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    type: Mapped[AlertType] = mapped_column(
        SQLEnum(AlertType, name="technical_alert_type", native_enum=False, length=32),
        nullable=False,
    )
    severity: Mapped[Severity] = mapped_column(
        SQLEnum(Severity, name="technical_alert_severity", native_enum=False, length=16),
        nullable=False,
    )

    message: Mapped[str] = mapped_column(Text, default="", nullable=False)

    # Sensor/site names and measured values
    details: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)

    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    escalated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_domain(self) -> TechnicalAlert:
        """Convert to domain entity."""
        return TechnicalAlert(
            id=self.id,
            sensor_id=self.sensor_id,
            site_id=self.site_id,
            type=self.type,
            severity=self.severity,
            message=self.message,
            details=AlertDetails.from_dict(self.details or {}),
            is_read=self.is_read,
            read_at=as_utc(self.read_at),
            escalated_at=as_utc(self.escalated_at),
            created_at=as_utc(self.created_at),
            updated_at=as_utc(self.updated_at),
        )

    @classmethod
    def from_domain(cls, entity: TechnicalAlert) -> "TechnicalAlertModel":
        """Create from domain entity."""
        return cls(
            id=entity.id,
            sensor_id=entity.sensor_id,
            site_id=entity.site_id,
            type=entity.type,
            severity=entity.severity,
            message=entity.message,
            details=entity.details.to_dict(),
            is_read=entity.is_read,
            read_at=entity.read_at,
            escalated_at=entity.escalated_at,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    def update_from_domain(self, entity: TechnicalAlert) -> None:
        """Update model from domain entity."""
        self.severity = entity.severity
        self.message = entity.message
        self.details = entity.details.to_dict()
        self.is_read = entity.is_read
        self.read_at = entity.read_at
        self.escalated_at = entity.escalated_at
        self.updated_at = entity.updated_at
