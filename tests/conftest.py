"""
Shared pytest fixtures for reservoir monitor tests.

Provides fixtures for:
- Database (async SQLAlchemy on in-memory SQLite)
- Redis (fakeredis)
- In-memory repositories, senders and a controllable clock
- Wired application services
"""
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from reservoir_monitor.application.services.alert_registry import AlertRegistry
from reservoir_monitor.application.services.notification_dispatcher import NotificationDispatcher
from reservoir_monitor.application.services.notification_settings import NotificationSettingsStore
from reservoir_monitor.application.services.threshold_store import ThresholdStore
from reservoir_monitor.domain.entities.notification import NotificationChannel
from reservoir_monitor.infrastructure.database.connection import DatabaseManager
from reservoir_monitor.scheduling.escalation_scheduler import EscalationScheduler

from .fakes import T0, FakeClock, InMemoryAlertRepository, InMemorySettingsRepository, SpySender


# ============================================================================
# Core Fixtures
# ============================================================================

@pytest.fixture
def clock():
    """Clock frozen at T0, advanced explicitly by tests."""
    return FakeClock(T0)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def db():
    """
    Database manager on a shared in-memory SQLite connection.

    Tables are created before the test and the engine disposed after.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    manager = DatabaseManager(engine=engine)
    await manager.create_all()
    yield manager
    await manager.close()


# ============================================================================
# Redis Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def fake_redis():
    """
    Fake Redis client for transport tests.

    Uses fakeredis for realistic stream behavior.
    """
    import fakeredis.aioredis

    redis = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield redis
    await redis.flushall()
    await redis.aclose()


# ============================================================================
# Repository Fixtures
# ============================================================================

@pytest.fixture
def alert_repo():
    return InMemoryAlertRepository()


@pytest.fixture
def settings_repo():
    return InMemorySettingsRepository()


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def threshold_store(settings_repo):
    return ThresholdStore(settings_repo)


@pytest.fixture
def notification_store(settings_repo):
    return NotificationSettingsStore(settings_repo)


@pytest.fixture
def registry(alert_repo, clock):
    return AlertRegistry(alert_repo, clock=clock)


@pytest.fixture
def email_sender():
    return SpySender(NotificationChannel.EMAIL)


@pytest.fixture
def sms_sender():
    return SpySender(NotificationChannel.SMS)


@pytest.fixture
def push_sender():
    return SpySender(NotificationChannel.PUSH)


@pytest.fixture
def dispatcher(notification_store, email_sender, sms_sender, push_sender):
    return NotificationDispatcher(
        notification_store,
        [email_sender, sms_sender, push_sender],
        send_timeout=0.5,
    )


@pytest.fixture
def scheduler(registry, dispatcher, clock):
    scheduler = EscalationScheduler(registry, dispatcher, tick_interval=0.01, clock=clock)
    dispatcher.set_escalation_scheduler(scheduler)
    return scheduler

