"""
Unit tests for EscalationScheduler.

Tests due-time handling, one-shot escalation, retry after persistence
failures and restore after restart.
"""
import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from reservoir_monitor.domain.entities.alert import Severity
from reservoir_monitor.domain.entities.reading import SensorInfo
from reservoir_monitor.scheduling.escalation_scheduler import EscalationScheduler

from ...factories import ConditionFactory
from ...fakes import T0, notification_record

INFO = SensorInfo(sensor_name="Probe A", site_name="North Reservoir")


@pytest.fixture
def spy_dispatcher():
    dispatcher = AsyncMock()
    dispatcher.dispatch = AsyncMock()
    return dispatcher


@pytest.fixture
def escalations(registry, spy_dispatcher, clock):
    return EscalationScheduler(registry, spy_dispatcher, tick_interval=0.01, clock=clock)


async def open_alert(registry, severity=Severity.HIGH):
    result = await registry.record(ConditionFactory(severity=severity), INFO)
    return result.alert


class TestRegister:
    """Test registration bookkeeping."""

    def test_due_time_from_creation(self, escalations):
        """Test the due time counts from alert creation."""
        alert_id = uuid4()
        due = escalations.register(alert_id, 30, created_at=T0)
        assert due == T0 + timedelta(minutes=30)
        assert escalations.pending == 1

    def test_register_is_idempotent(self, escalations, clock):
        """Test registering twice keeps the first due time."""
        alert_id = uuid4()
        first = escalations.register(alert_id, 30, created_at=T0)
        second = escalations.register(alert_id, 5, created_at=T0 + timedelta(hours=1))
        assert first == second
        assert escalations.pending == 1

    def test_unregister(self, escalations):
        """Test unregistering drops the alert."""
        alert_id = uuid4()
        escalations.register(alert_id, 30, created_at=T0)
        assert escalations.unregister(alert_id) is True
        assert escalations.unregister(alert_id) is False
        assert escalations.pending == 0


class TestTick:
    """Test escalation on tick."""

    @pytest.mark.asyncio
    async def test_escalates_once_after_delay(self, registry, escalations, spy_dispatcher):
        """Test an unread alert escalates at T0+31 and never again."""
        alert = await open_alert(registry)
        escalations.register(alert.id, 30, created_at=alert.created_at)

        assert await escalations.tick(T0 + timedelta(minutes=29)) == []

        escalated = await escalations.tick(T0 + timedelta(minutes=31))
        assert [a.id for a in escalated] == [alert.id]
        assert escalated[0].severity == Severity.CRITICAL
        spy_dispatcher.dispatch.assert_awaited_once()
        assert spy_dispatcher.dispatch.call_args.kwargs == {"escalated": True}

        assert await escalations.tick(T0 + timedelta(minutes=40)) == []
        assert spy_dispatcher.dispatch.await_count == 1
        assert (await registry.get(alert.id)).severity == Severity.CRITICAL

    @pytest.mark.asyncio
    async def test_read_alert_is_not_escalated(self, registry, escalations, spy_dispatcher):
        """Test an alert read before its due time is left alone."""
        alert = await open_alert(registry)
        escalations.register(alert.id, 30, created_at=alert.created_at)
        await registry.mark_alert_read(alert.id)

        assert await escalations.tick(T0 + timedelta(minutes=31)) == []
        spy_dispatcher.dispatch.assert_not_awaited()
        assert escalations.pending == 0

    @pytest.mark.asyncio
    async def test_missed_ticks_catch_up(self, registry, escalations):
        """Test overdue alerts escalate on the next tick, however late."""
        alert = await open_alert(registry, Severity.MEDIUM)
        escalations.register(alert.id, 30, created_at=alert.created_at)

        escalated = await escalations.tick(T0 + timedelta(hours=6))

        assert escalated[0].severity == Severity.HIGH

    @pytest.mark.asyncio
    async def test_persistence_failure_retries(self, registry, escalations, alert_repo):
        """Test a failed escalation stays registered for the next tick."""
        alert = await open_alert(registry)
        escalations.register(alert.id, 30, created_at=alert.created_at)
        alert_repo.fail_next = 2

        assert await escalations.tick(T0 + timedelta(minutes=31)) == []
        assert escalations.pending == 1

        escalated = await escalations.tick(T0 + timedelta(minutes=32))
        assert [a.id for a in escalated] == [alert.id]

    @pytest.mark.asyncio
    async def test_dispatch_error_is_contained(self, registry, escalations, spy_dispatcher):
        """Test a failing escalation notification does not break the tick."""
        spy_dispatcher.dispatch.side_effect = RuntimeError("smtp down")
        alert = await open_alert(registry)
        escalations.register(alert.id, 30, created_at=alert.created_at)

        escalated = await escalations.tick(T0 + timedelta(minutes=31))

        assert len(escalated) == 1


class TestRestore:
    """Test re-registration after restart."""

    @pytest.mark.asyncio
    async def test_restore_unread_eligible(
        self, registry, escalations, settings_repo, notification_store
    ):
        """Test unread, eligible, not yet escalated alerts are registered again."""
        settings_repo.records[("notifications", "global")] = notification_record()
        high = await open_alert(registry, Severity.HIGH)
        medium = (await registry.record(
            ConditionFactory(sensor_id="other", severity=Severity.MEDIUM), INFO
        )).alert

        restored = await escalations.restore(notification_store)

        assert restored == 1
        assert escalations.due_at(high.id) == T0 + timedelta(minutes=30)
        assert escalations.due_at(medium.id) is None


class TestLoop:
    """Test the background tick loop."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, registry, escalations, clock):
        """Test the loop escalates due alerts and stops cleanly."""
        alert = await open_alert(registry)
        escalations.register(alert.id, 30, created_at=alert.created_at)
        clock.advance(minutes=31)

        await escalations.start()
        for _ in range(50):
            if escalations.pending == 0:
                break
            await asyncio.sleep(0.01)
        await escalations.stop()

        assert escalations.pending == 0
        assert (await registry.get(alert.id)).is_escalated
