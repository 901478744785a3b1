"""
Reservoir Monitor - Main Entry Point.

Starts the monitoring core that:
1. Follows the telemetry stream from the sensor gateway
2. Evaluates readings and sensor status against site thresholds
3. Records technical alerts and notifies technicians
4. Escalates alerts nobody has read in time
"""
import asyncio
import logging
import signal
import sys
from typing import Dict, List, Optional

from .application.interfaces.services import NotificationSender
from .application.services.alert_registry import AlertRegistry
from .application.services.monitoring_service import MonitoringService
from .application.services.notification_dispatcher import NotificationDispatcher
from .application.services.notification_settings import NotificationSettingsStore
from .application.services.threshold_store import ThresholdStore
from .config import MonitorSettings, get_settings
from .domain.entities.notification import Frequency
from .infrastructure.database.connection import DatabaseManager
from .infrastructure.database.repositories import (
    SQLAlchemySettingsRepository,
    SQLAlchemyTechnicalAlertRepository,
)
from .infrastructure.external import (
    HttpPushService,
    HttpSmsGateway,
    SMTPEmailSender,
    SiteApiClient,
)
from .infrastructure.messaging.redis_streams import RedisStreamTransport
from .scheduling.escalation_scheduler import EscalationScheduler
from .telemetry.backoff import ReconnectPolicy
from .telemetry.link import TelemetryLink

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ],
)

logger = logging.getLogger(__name__)

DIGEST_INTERVALS: Dict[Frequency, float] = {
    Frequency.HOURLY: 3600.0,
    Frequency.DAILY: 86400.0,
}


class MonitorServer:
    """
    Main monitoring orchestrator.

    Builds the components from settings, wires their callbacks and owns
    their lifecycle.
    """

    def __init__(
        self,
        settings: Optional[MonitorSettings] = None,
        database: Optional[DatabaseManager] = None,
        transport=None,
        directory=None,
        senders: Optional[List[NotificationSender]] = None,
    ):
        """
        Initialize the monitor server.

        Args:
            settings: Monitor settings.
            database: Database manager, built from settings if omitted.
            transport: Telemetry transport, a Redis stream by default.
            directory: Sensor directory, the site API by default.
            senders: Notification senders, built from the enabled channels by default.
        """
        self.settings = settings or get_settings()

        self.database = database or DatabaseManager(self.settings.database)
        self.transport = transport or RedisStreamTransport(
            url=self.settings.redis.url,
            stream=self.settings.redis.telemetry_stream,
            block_ms=self.settings.redis.block_ms,
            count=self.settings.redis.read_count,
        )
        self.directory = directory or SiteApiClient(self.settings.site_api)
        self.senders = senders if senders is not None else self._build_senders()

        # Core components
        settings_repository = SQLAlchemySettingsRepository(self.database)
        self.threshold_store = ThresholdStore(settings_repository)
        self.notification_settings = NotificationSettingsStore(settings_repository)
        self.registry = AlertRegistry(SQLAlchemyTechnicalAlertRepository(self.database))
        self.dispatcher = NotificationDispatcher(
            self.notification_settings,
            self.senders,
            send_timeout=self.settings.dispatch.send_timeout,
            push_topic=self.settings.dispatch.push_topic,
        )
        self.escalation_scheduler = EscalationScheduler(
            self.registry,
            self.dispatcher,
            tick_interval=self.settings.escalation.tick_interval,
        )
        self.link = TelemetryLink(
            self.transport,
            policy=ReconnectPolicy(
                base_delay=self.settings.telemetry.reconnect_base_delay,
                max_attempts=self.settings.telemetry.max_reconnect_attempts,
            ),
            history_size=self.settings.telemetry.history_size,
        )
        self.monitoring = MonitoringService(
            self.link,
            self.threshold_store,
            self.registry,
            self.directory,
            snapshot_interval=self.settings.telemetry.snapshot_interval,
        )

        # Set up callbacks
        self.dispatcher.set_escalation_scheduler(self.escalation_scheduler)
        self.registry.set_on_notify(self.dispatcher.submit)
        self.registry.set_on_acknowledged(self.escalation_scheduler.unregister)

        # State
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._digest_tasks: List[asyncio.Task] = []

    def _build_senders(self) -> List[NotificationSender]:
        senders: List[NotificationSender] = []
        if self.settings.smtp.enabled:
            senders.append(SMTPEmailSender(self.settings.smtp))
        if self.settings.sms.enabled:
            senders.append(HttpSmsGateway(self.settings.sms))
        if self.settings.push.enabled:
            senders.append(HttpPushService(self.settings.push))
        logger.info(f"Notification channels enabled: {[s.channel.value for s in senders] or 'none'}")
        return senders

    async def start(self) -> None:
        """Start the monitor."""
        logger.info(f"Starting {self.settings.app_name}...")
        # Set before anything starts so stop() also cleans up a partial start
        self._running = True

        if self.settings.database.create_tables:
            await self.database.create_all()

        if isinstance(self.directory, SiteApiClient):
            await self.directory.connect()

        # Pick up alerts that were waiting for escalation before a restart
        await self.escalation_scheduler.restore(self.notification_settings)
        await self.escalation_scheduler.start()

        await self.monitoring.start()
        await self.link.start()

        for frequency, interval in DIGEST_INTERVALS.items():
            self._digest_tasks.append(
                asyncio.create_task(
                    self._digest_loop(frequency, interval),
                    name=f"digest_{frequency.value}",
                )
            )

        logger.info(f"{self.settings.app_name} started, following {self.transport.description}")

    async def stop(self) -> None:
        """Stop the monitor."""
        if not self._running:
            return

        logger.info(f"Stopping {self.settings.app_name}...")
        self._running = False

        # Stop intake first so no new alerts are produced
        await self.link.stop()
        await self.monitoring.stop()
        await self.escalation_scheduler.stop()

        for task in self._digest_tasks:
            task.cancel()
        for task in self._digest_tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._digest_tasks = []

        await self.dispatcher.drain(timeout=self.settings.dispatch.shutdown_timeout)

        for sender in self.senders:
            await sender.close()
        if isinstance(self.directory, SiteApiClient):
            await self.directory.disconnect()
        await self.database.close()

        logger.info(f"{self.settings.app_name} stopped")
        self._shutdown_event.set()

    def request_shutdown(self) -> None:
        """Make serve_forever() return; the caller then runs stop()."""
        self._shutdown_event.set()

    async def serve_forever(self) -> None:
        """Run the monitor until shutdown is requested."""
        await self._shutdown_event.wait()

    async def _digest_loop(self, frequency: Frequency, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                results = await self.dispatcher.flush_digests(frequency)
                if results:
                    logger.info(f"Sent {len(results)} {frequency.value} digests")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error sending {frequency.value} digests: {e}")

    def get_stats(self) -> dict:
        """Get monitor statistics."""
        return {
            "running": self._running,
            "telemetry": self.link.get_stats(),
            "monitoring": self.monitoring.get_stats(),
            "escalations_pending": self.escalation_scheduler.pending,
            "dispatches_in_flight": self.dispatcher.in_flight,
            "digests_pending": self.dispatcher.digests.pending(),
        }


def setup_signal_handlers(server: MonitorServer, loop: asyncio.AbstractEventLoop):
    """Setup signal handlers for graceful shutdown."""
    def signal_handler():
        logger.info("Received shutdown signal")
        server.request_shutdown()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            signal.signal(sig, lambda s, f: signal_handler())


async def main(server: Optional[MonitorServer] = None):
    """Main entry point."""
    settings = server.settings if server else get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())
    server = server or MonitorServer(settings)
    setup_signal_handlers(server, asyncio.get_running_loop())

    try:
        await server.start()
        await server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        await server.stop()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
