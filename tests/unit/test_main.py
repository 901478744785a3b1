"""
Tests for the MonitorServer wiring.

Runs the whole pipeline on SQLite with a scripted telemetry transport.
"""
import asyncio
import logging
import os
import signal
from unittest.mock import AsyncMock

import pytest

from reservoir_monitor.config import (
    DatabaseSettings,
    MonitorSettings,
    PushSettings,
    SMTPSettings,
    TelemetrySettings,
)
from reservoir_monitor.domain.entities.alert import AlertType, Severity
from reservoir_monitor.domain.entities.notification import NotificationChannel
from reservoir_monitor.infrastructure.database.repositories import SQLAlchemySettingsRepository
from reservoir_monitor.main import MonitorServer, main
from reservoir_monitor.telemetry.link import LinkStatus

from ..factories import PayloadFactory
from ..fakes import FakeDirectory, FakeTransport, SpySender, notification_record


@pytest.fixture
def settings():
    return MonitorSettings(
        database=DatabaseSettings(create_tables=False),
        telemetry=TelemetrySettings(snapshot_interval=0),
    )


async def wait_for(predicate, attempts=200):
    for _ in range(attempts):
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return False


class TestMonitorServer:
    """Test the assembled monitor."""

    @pytest.mark.asyncio
    async def test_low_level_reading_notifies(self, db, settings):
        """Test a streamed 5% level reading is recorded, pushed and scheduled."""
        await SQLAlchemySettingsRepository(db).save(
            "notifications", "global", notification_record()
        )
        transport = FakeTransport(hold_open=True)
        push = SpySender(NotificationChannel.PUSH)
        server = MonitorServer(
            settings,
            database=db,
            transport=transport,
            directory=FakeDirectory(),
            senders=[push],
        )

        await server.start()
        try:
            assert await wait_for(lambda: server.link.status == LinkStatus.CONNECTED)
            transport.queue.put_nowait(PayloadFactory(level=5, unit="%", timestamp=None))
            assert await wait_for(lambda: push.sent)

            alerts = await server.registry.list_unread("site-1")
            assert len(alerts) == 1
            assert alerts[0].type == AlertType.LOW_WATER_LEVEL
            assert alerts[0].severity == Severity.CRITICAL
            assert push.recipients == ["site-site-1"]
            assert await wait_for(lambda: server.escalation_scheduler.pending == 1)

            await server.registry.mark_alert_read(alerts[0].id)
            assert server.escalation_scheduler.pending == 0

            stats = server.get_stats()
            assert stats["running"] is True
            assert stats["telemetry"]["readings_accepted"] == 1
        finally:
            await server.stop()

        assert push.closed is True
        assert server.link.status == LinkStatus.STOPPED

    @pytest.mark.asyncio
    async def test_stop_without_start(self, db, settings):
        """Test stopping a server that never started does nothing."""
        server = MonitorServer(
            settings, database=db, transport=FakeTransport(), directory=FakeDirectory(), senders=[]
        )
        await server.stop()
        assert server.get_stats()["running"] is False

    @pytest.mark.asyncio
    async def test_senders_from_settings(self, db):
        """Test only enabled channels get a sender."""
        settings = MonitorSettings(
            smtp=SMTPSettings(enabled=True),
            push=PushSettings(enabled=True),
        )

        server = MonitorServer(
            settings, database=db, transport=FakeTransport(), directory=FakeDirectory()
        )

        assert [s.channel for s in server.senders] == [
            NotificationChannel.EMAIL,
            NotificationChannel.PUSH,
        ]

    @pytest.mark.asyncio
    async def test_stop_after_failed_start(self, db, settings):
        """Test components started before a start() failure are shut down by stop()."""
        push = SpySender(NotificationChannel.PUSH)
        server = MonitorServer(
            settings, database=db, transport=FakeTransport(), directory=FakeDirectory(), senders=[push]
        )
        server.link.start = AsyncMock(side_effect=RuntimeError("no route to gateway"))

        with pytest.raises(RuntimeError):
            await server.start()
        await server.stop()

        assert server.get_stats()["running"] is False
        assert server.escalation_scheduler._task is None
        assert server.monitoring._unsubscribe is None
        assert push.closed is True


class TestMain:
    """Test the entry point."""

    @pytest.mark.asyncio
    async def test_signal_shutdown_drains_dispatches(self, db, settings, caplog):
        """Test SIGTERM lets an in-flight notification finish before closing senders."""
        await SQLAlchemySettingsRepository(db).save(
            "notifications", "global", notification_record()
        )
        transport = FakeTransport(hold_open=True)
        push = SpySender(NotificationChannel.PUSH, delay=0.3)
        server = MonitorServer(
            settings,
            database=db,
            transport=transport,
            directory=FakeDirectory(),
            senders=[push],
        )

        with caplog.at_level(logging.INFO):
            runner = asyncio.create_task(main(server))
            assert await wait_for(lambda: server.link.status == LinkStatus.CONNECTED)
            transport.queue.put_nowait(PayloadFactory(level=5, unit="%", timestamp=None))
            assert await wait_for(lambda: server.dispatcher.in_flight > 0)

            os.kill(os.getpid(), signal.SIGTERM)
            await asyncio.wait_for(runner, timeout=5.0)

        assert push.recipients == ["site-site-1"]
        assert push.closed is True
        assert server.link.status == LinkStatus.STOPPED
        assert "Received shutdown signal" in caplog.text
        assert "Reservoir Monitor stopped" in caplog.text
