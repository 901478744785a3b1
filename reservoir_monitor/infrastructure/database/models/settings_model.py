"""
SQLAlchemy ORM model for settings records.
"""
from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, JSONType, TimestampMixin, UUIDMixin


class SettingsModel(Base, UUIDMixin, TimestampMixin):
    """One settings category for one scope ("global" or a site id)."""

    __tablename__ = "settings"
    __table_args__ = (
        UniqueConstraint("category", "scope", name="uq_settings_category_scope"),
    )

    category: Mapped[str] = mapped_column(String(50), nullable=False)
    scope: Mapped[str] = mapped_column(String(100), nullable=False)
    data: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
