"""
Telemetry link to the sensor gateway.

Keeps one streaming connection open, reconnects with linear backoff,
normalizes payloads into readings and fans them out per site.
"""
import asyncio
import logging
from collections import deque
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Tuple

from ..domain.entities.base import utc_now
from ..domain.entities.reading import Reading
from ..domain.exceptions import LinkError, ParseError
from .backoff import ReconnectPolicy
from .parser import parse_reading
from .subscribers import ReadingCallback, StatusCallback, SubscriberRegistry
from .transport import TelemetryTransport

logger = logging.getLogger(__name__)


class LinkStatus(str, Enum):
    """Telemetry link states."""
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    DOWN = "down"
    STOPPED = "stopped"


class TelemetryLink:
    """
    Long-lived connection to the sensor gateway.

    Responsibilities:
    - Open the transport and reset the attempt counter on success
    - Parse payloads, dropping malformed, duplicate and stale ones
    - Keep a bounded per-site reading history
    - Deliver readings to site subscribers without blocking on them
    - Reconnect after base_delay * attempts seconds, giving up after
      max_attempts consecutive failures with status DOWN
    """

    def __init__(
        self,
        transport: TelemetryTransport,
        policy: Optional[ReconnectPolicy] = None,
        history_size: int = 500,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the telemetry link.

        Args:
            transport: Connection to the gateway.
            policy: Reconnect backoff.
            history_size: Readings kept per site.
            sleep: Awaitable used to wait between reconnects. Defaults to a
                wait that ends early when the link is stopped.
            clock: Source of the receive time.
        """
        self.transport = transport
        self.policy = policy or ReconnectPolicy()
        self.history_size = history_size
        self._sleep = sleep
        self._clock = clock

        self.subscribers = SubscriberRegistry()
        self._history: Dict[str, Deque[Reading]] = {}
        self._last_seen: Dict[Tuple[str, str, Any], datetime] = {}

        # State
        self._status = LinkStatus.IDLE
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

        # Statistics
        self._connections = 0
        self._messages_received = 0
        self._readings_accepted = 0
        self._parse_errors = 0
        self._stale_dropped = 0
        self._last_reading_at: Optional[datetime] = None

    @property
    def status(self) -> LinkStatus:
        return self._status

    @property
    def is_running(self) -> bool:
        return self._running

    def _set_status(self, status: LinkStatus) -> None:
        if status == self._status:
            return
        logger.debug(f"Telemetry link {self._status.value} -> {status.value}")
        self._status = status
        self.subscribers.notify_status(status)

    def subscribe(
        self,
        site_id: str,
        callback: ReadingCallback,
        on_status: Optional[StatusCallback] = None,
    ) -> Callable[[], None]:
        """
        Receive readings for a site, or ALL_SITES.

        Args:
            site_id: Site to follow.
            callback: Called with each accepted reading. May be async.
            on_status: Called with each LinkStatus change.

        Returns:
            Function that cancels the subscription.
        """
        return self.subscribers.add(site_id, callback, on_status)

    def get_history(
        self,
        site_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Reading]:
        """Readings kept for a site, oldest first, optionally within [start, end]."""
        readings = list(self._history.get(site_id, ()))
        return [
            r for r in readings
            if (start is None or r.observed_at >= start)
            and (end is None or r.observed_at <= end)
        ]

    def handle_payload(self, payload: Any) -> Optional[Reading]:
        """
        Process one raw payload.

        Returns:
            The accepted reading, or None if it was dropped.
        """
        self._messages_received += 1
        try:
            reading = parse_reading(payload, received_at=self._clock())
        except ParseError as e:
            self._parse_errors += 1
            logger.warning(f"Dropping telemetry payload: {e.message}")
            return None

        last = self._last_seen.get(reading.dedup_key)
        if last is not None and reading.observed_at <= last:
            self._stale_dropped += 1
            logger.debug(
                f"Dropping stale reading for {reading.site_id}/{reading.sensor_id} "
                f"at {reading.observed_at.isoformat()}"
            )
            return None
        self._last_seen[reading.dedup_key] = reading.observed_at

        history = self._history.get(reading.site_id)
        if history is None:
            history = deque(maxlen=self.history_size)
            self._history[reading.site_id] = history
        history.append(reading)

        self._readings_accepted += 1
        self._last_reading_at = reading.observed_at
        self.subscribers.deliver(reading)
        return reading

    async def start(self) -> None:
        """Start the connection loop in the background."""
        if self._running:
            return
        logger.info(f"Starting telemetry link ({self.transport.description})")
        self._running = True
        self._stop_event.clear()
        self._task = asyncio.create_task(self.run(), name="telemetry_link")

    async def stop(self, timeout: float = 5.0) -> None:
        """
        Stop the link.

        Closes the transport, ends the connection loop and waits for
        in-flight subscriber work.
        """
        logger.info("Stopping telemetry link")
        self._running = False
        self._stop_event.set()
        await self._close_transport()

        if self._task and not self._task.done():
            try:
                await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
            except asyncio.TimeoutError:
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
        self._task = None

        if not await self.subscribers.wait_idle(timeout):
            logger.warning("Subscriber tasks still running after link stop")

        self._set_status(LinkStatus.STOPPED)
        logger.info("Telemetry link stopped")

    async def run(self) -> None:
        """
        Connection loop. Returns when stopped or when reconnects are exhausted.
        """
        self._running = True
        self._stop_event.clear()
        while self._running:
            self._set_status(
                LinkStatus.CONNECTING if self.policy.attempts == 0 else LinkStatus.RECONNECTING
            )
            try:
                await self.transport.connect()
                self.policy.reset()
                self._connections += 1
                self._set_status(LinkStatus.CONNECTED)
                logger.info("Telemetry link connected")

                async for payload in self.transport.messages():
                    self.handle_payload(payload)
                    if not self._running:
                        break

                if self._running:
                    logger.warning("Telemetry connection closed by gateway")
            except asyncio.CancelledError:
                raise
            except LinkError as e:
                logger.warning(f"Telemetry link error: {e.message}")
            except Exception as e:
                logger.exception(f"Unexpected telemetry link failure: {e}")
            finally:
                await self._close_transport()

            if not self._running:
                break

            delay = self.policy.next_delay()
            if delay is None:
                logger.error(
                    f"Telemetry link down after {self.policy.max_attempts} reconnect attempts"
                )
                self._running = False
                self._set_status(LinkStatus.DOWN)
                return

            self._set_status(LinkStatus.RECONNECTING)
            logger.info(
                f"Reconnecting telemetry link in {delay:.1f}s "
                f"(attempt {self.policy.attempts}/{self.policy.max_attempts})"
            )
            await self._pause(delay)

    async def _pause(self, delay: float) -> None:
        if self._sleep is not None:
            await self._sleep(delay)
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def _close_transport(self) -> None:
        try:
            await self.transport.close()
        except Exception as e:
            logger.warning(f"Error closing telemetry transport: {e}")

    def get_stats(self) -> dict:
        """Get telemetry link statistics."""
        return {
            "status": self._status.value,
            "reconnect_attempts": self.policy.attempts,
            "connections": self._connections,
            "messages_received": self._messages_received,
            "readings_accepted": self._readings_accepted,
            "parse_errors": self._parse_errors,
            "stale_dropped": self._stale_dropped,
            "subscribers": len(self.subscribers),
            "sites_with_history": len(self._history),
            "last_reading_at": self._last_reading_at.isoformat() if self._last_reading_at else None,
        }
