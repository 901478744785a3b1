"""
Subscriber registry and fan-out for the telemetry link.

Subscriptions may be added and removed from any thread while readings
are being delivered: delivery always works on a snapshot.
"""
import asyncio
import inspect
import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

from ..domain.entities.reading import Reading

logger = logging.getLogger(__name__)

ALL_SITES = "*"

ReadingCallback = Callable[[Reading], Any]
StatusCallback = Callable[[Any], Any]


@dataclass(frozen=True)
class Subscription:
    """One subscriber for one site, or for every site."""
    id: int
    site_id: str
    callback: ReadingCallback
    on_status: Optional[StatusCallback] = None


class SubscriberRegistry:
    """
    Thread-safe registry of reading subscribers.

    Callback exceptions are logged and never reach the caller or other
    subscribers. Coroutine results are scheduled as tasks and tracked so
    they can be awaited on shutdown.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._tasks: Set[asyncio.Task] = set()

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def add(
        self,
        site_id: str,
        callback: ReadingCallback,
        on_status: Optional[StatusCallback] = None,
    ) -> Callable[[], None]:
        """
        Register a callback for a site, or ALL_SITES.

        Returns:
            Function that removes the subscription. Calling it twice is harmless.
        """
        with self._lock:
            subscription = Subscription(next(self._ids), site_id, callback, on_status)
            self._subscriptions[subscription.id] = subscription

        def unsubscribe() -> None:
            self.remove(subscription.id)

        return unsubscribe

    def remove(self, subscription_id: int) -> bool:
        with self._lock:
            return self._subscriptions.pop(subscription_id, None) is not None

    def for_site(self, site_id: str) -> List[Subscription]:
        """Snapshot of subscriptions matching a site, wildcard ones included."""
        with self._lock:
            return [
                s for s in self._subscriptions.values()
                if s.site_id == site_id or s.site_id == ALL_SITES
            ]

    def snapshot(self) -> List[Subscription]:
        with self._lock:
            return list(self._subscriptions.values())

    def deliver(self, reading: Reading) -> int:
        """
        Hand a reading to every matching subscriber.

        Returns:
            Number of subscribers that accepted the reading
        """
        delivered = 0
        for subscription in self.for_site(reading.site_id):
            if self._invoke(subscription.callback, reading, "reading"):
                delivered += 1
        return delivered

    def notify_status(self, status: Any) -> None:
        """Report a link status change to every subscriber with a status callback."""
        for subscription in self.snapshot():
            if subscription.on_status is not None:
                self._invoke(subscription.on_status, status, "status")

    def _invoke(self, callback: Callable, argument: Any, kind: str) -> bool:
        try:
            result = callback(argument)
        except Exception as e:
            logger.error(f"Error in {kind} subscriber {callback!r}: {e}")
            return False

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)
        return True

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Error in async subscriber: {error!r}")

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for async subscriber work to finish.

        Returns:
            False if tasks were still running after the timeout
        """
        if not self._tasks:
            return True
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        return not pending
