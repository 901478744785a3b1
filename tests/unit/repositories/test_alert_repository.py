"""
Unit tests for SQLAlchemyTechnicalAlertRepository.

Runs against in-memory SQLite through aiosqlite.
"""
from datetime import timedelta
from uuid import uuid4

import pytest

from reservoir_monitor.domain.entities.alert import AlertType, Severity
from reservoir_monitor.domain.exceptions import PersistenceError
from reservoir_monitor.infrastructure.database.repositories import (
    SQLAlchemyTechnicalAlertRepository,
)

from ...factories import AlertFactory
from ...fakes import T0


@pytest.fixture
def repository(db):
    return SQLAlchemyTechnicalAlertRepository(db)


class TestAlertRepository:
    """Test alert persistence."""

    @pytest.mark.asyncio
    async def test_add_and_get(self, repository):
        """Test an alert round-trips with details and UTC timestamps."""
        alert = AlertFactory()

        await repository.add(alert)
        loaded = await repository.get_by_id(alert.id)

        assert loaded.id == alert.id
        assert loaded.type == AlertType.BATTERY_LOW
        assert loaded.severity == Severity.HIGH
        assert loaded.details.site_name == "North Reservoir"
        assert loaded.details.current_value == 8.0
        assert loaded.created_at == T0
        assert loaded.created_at.tzinfo is not None
        assert loaded.is_read is False

    @pytest.mark.asyncio
    async def test_get_missing(self, repository):
        """Test a missing alert is None."""
        assert await repository.get_by_id(uuid4()) is None

    @pytest.mark.asyncio
    async def test_update(self, repository):
        """Test acknowledgement and escalation are persisted."""
        alert = await repository.add(AlertFactory())
        alert.escalate(T0 + timedelta(minutes=31))
        alert.acknowledge(T0 + timedelta(minutes=40))

        await repository.update(alert)
        loaded = await repository.get_by_id(alert.id)

        assert loaded.severity == Severity.CRITICAL
        assert loaded.escalated_at == T0 + timedelta(minutes=31)
        assert loaded.read_at == T0 + timedelta(minutes=40)
        assert loaded.is_read is True

    @pytest.mark.asyncio
    async def test_update_missing(self, repository):
        """Test updating an alert that was never added fails."""
        with pytest.raises(PersistenceError):
            await repository.update(AlertFactory())

    @pytest.mark.asyncio
    async def test_duplicate_add(self, repository):
        """Test a database error is raised as PersistenceError."""
        alert = await repository.add(AlertFactory())
        with pytest.raises(PersistenceError):
            await repository.add(alert)

    @pytest.mark.asyncio
    async def test_get_open(self, repository):
        """Test only an unread alert of the same sensor and type is open."""
        read = AlertFactory(sensor_id="s1")
        read.acknowledge(T0)
        await repository.add(read)
        await repository.add(AlertFactory(sensor_id="s1", type=AlertType.SIGNAL_WEAK))

        assert await repository.get_open("s1", AlertType.BATTERY_LOW) is None

        unread = await repository.add(AlertFactory(sensor_id="s1"))
        found = await repository.get_open("s1", AlertType.BATTERY_LOW)
        assert found.id == unread.id

    @pytest.mark.asyncio
    async def test_listing_newest_first(self, repository):
        """Test site listing is newest first and honours paging."""
        for minutes in range(3):
            await repository.add(AlertFactory(created_at=T0 + timedelta(minutes=minutes)))
        await repository.add(AlertFactory(site_id="site-2"))

        alerts = await repository.list_by_site("site-1")
        page = await repository.list_by_site("site-1", limit=1, offset=1)

        assert [a.created_at for a in alerts] == [
            T0 + timedelta(minutes=m) for m in (2, 1, 0)
        ]
        assert page[0].created_at == T0 + timedelta(minutes=1)

    @pytest.mark.asyncio
    async def test_unread_and_count(self, repository):
        """Test unread listing and filtered counts."""
        read = AlertFactory()
        read.acknowledge(T0)
        await repository.add(read)
        await repository.add(AlertFactory(severity=Severity.CRITICAL))
        await repository.add(AlertFactory(site_id="site-2"))

        assert len(await repository.list_unread()) == 2
        assert len(await repository.list_unread("site-1")) == 1
        assert len(await repository.list_by_site("site-1", unread_only=True)) == 1
        assert await repository.count() == 3
        assert await repository.count(is_read=False) == 2
        assert await repository.count(is_read=False, severity=Severity.CRITICAL) == 1
        assert await repository.count(site_id="site-2") == 1
