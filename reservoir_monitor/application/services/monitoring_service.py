"""
Monitoring Application Service.

Connects the telemetry link to the alert pipeline: readings and periodic
sensor snapshots are evaluated against the site's thresholds and the
resulting conditions are recorded in the alert registry.
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from ...domain.entities.base import utc_now
from ...domain.entities.reading import Reading, ReadingKind, SensorInfo, SensorSnapshot
from ...domain.exceptions import PersistenceError
from ...domain.services.alert_evaluator import AlertEvaluator
from ...telemetry.link import LinkStatus, TelemetryLink
from ...telemetry.subscribers import ALL_SITES
from ..interfaces.services import SensorDirectory
from .alert_registry import AlertRegistry, RegistryResult
from .threshold_store import ThresholdStore

logger = logging.getLogger(__name__)


class MonitoringService:
    """
    Application service running the detection pipeline.

    A failure on one reading or snapshot is logged and never stops
    processing of the next one.
    """

    def __init__(
        self,
        link: TelemetryLink,
        threshold_store: ThresholdStore,
        registry: AlertRegistry,
        directory: SensorDirectory,
        evaluator: Optional[AlertEvaluator] = None,
        snapshot_interval: float = 300.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._link = link
        self._threshold_store = threshold_store
        self._registry = registry
        self._directory = directory
        self._evaluator = evaluator or AlertEvaluator()
        self._snapshot_interval = snapshot_interval
        self._clock = clock

        self._unsubscribe: Optional[Callable[[], None]] = None
        self._snapshot_task: Optional[asyncio.Task] = None
        self._shutdown_event = asyncio.Event()

        # Statistics
        self._readings_processed = 0
        self._conditions_detected = 0
        self._failures = 0

    async def start(self) -> None:
        """Subscribe to every site and start the snapshot check loop."""
        logger.info("Starting monitoring service")
        self._shutdown_event.clear()
        self._unsubscribe = self._link.subscribe(
            ALL_SITES, self.handle_reading, self._on_link_status
        )
        if self._snapshot_interval > 0:
            self._snapshot_task = asyncio.create_task(
                self._snapshot_loop(), name="snapshot_checks"
            )

    async def stop(self) -> None:
        """Unsubscribe and stop the snapshot loop."""
        logger.info("Stopping monitoring service")
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

        self._shutdown_event.set()
        if self._snapshot_task and not self._snapshot_task.done():
            self._snapshot_task.cancel()
            try:
                await self._snapshot_task
            except asyncio.CancelledError:
                pass
        self._snapshot_task = None

    def _on_link_status(self, status: LinkStatus) -> None:
        if status == LinkStatus.DOWN:
            logger.error("Telemetry link is down, streamed readings are not being monitored")

    async def _describe(self, site_id: str, sensor_id: str) -> SensorInfo:
        try:
            return await self._directory.describe_sensor(site_id, sensor_id)
        except Exception as e:
            logger.warning(f"Sensor lookup failed for {site_id}/{sensor_id}: {e}")
            return SensorInfo.unknown(sensor_id, site_id)

    async def _record(self, condition, info: SensorInfo) -> Optional[RegistryResult]:
        self._conditions_detected += 1
        try:
            return await self._registry.record(condition, info)
        except PersistenceError as e:
            self._failures += 1
            logger.error(
                f"Could not record {condition.type.value} for sensor {condition.sensor_id}: {e.message}"
            )
            return None

    async def handle_reading(self, reading: Reading) -> Optional[RegistryResult]:
        """
        Evaluate one streamed reading.

        Returns:
            The registry result if the reading breached a threshold
        """
        self._readings_processed += 1
        thresholds = await self._threshold_store.get(reading.site_id)

        info: Optional[SensorInfo] = None
        capacity = None
        if reading.kind == ReadingKind.LEVEL and not reading.is_percentage:
            info = await self._describe(reading.site_id, reading.sensor_id)
            capacity = info.reservoir_capacity
            if not capacity:
                logger.warning(
                    f"No reservoir capacity for site {reading.site_id}, cannot evaluate level reading"
                )
                return None

        condition = self._evaluator.evaluate_reading(reading, thresholds, capacity)
        if condition is None:
            return None

        if info is None:
            info = await self._describe(reading.site_id, reading.sensor_id)
        return await self._record(condition, info)

    async def check_snapshot(
        self,
        snapshot: SensorSnapshot,
        now: Optional[datetime] = None,
    ) -> List[RegistryResult]:
        """Evaluate one sensor snapshot."""
        thresholds = await self._threshold_store.get(snapshot.site_id)
        conditions = self._evaluator.evaluate_snapshot(snapshot, thresholds, now or self._clock())
        if not conditions:
            return []

        info = await self._describe(snapshot.site_id, snapshot.sensor_id)
        if snapshot.name:
            info = SensorInfo(snapshot.name, info.site_name, info.reservoir_capacity)

        results = []
        for condition in conditions:
            result = await self._record(condition, info)
            if result:
                results.append(result)
        return results

    async def check_snapshots(self, now: Optional[datetime] = None) -> List[RegistryResult]:
        """Evaluate the current snapshot of every known sensor."""
        now = now or self._clock()
        try:
            snapshots = await self._directory.list_snapshots()
        except Exception as e:
            logger.error(f"Could not list sensor snapshots: {e}")
            return []

        results: List[RegistryResult] = []
        for snapshot in snapshots:
            results.extend(await self.check_snapshot(snapshot, now))
        opened = sum(1 for r in results if r.should_notify)
        logger.info(f"Checked {len(snapshots)} sensor snapshots, {opened} alerts opened or raised")
        return results

    async def _snapshot_loop(self) -> None:
        while not self._shutdown_event.is_set():
            try:
                await self.check_snapshots()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Unexpected error in sensor snapshot check")

            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self._snapshot_interval,
                )
                break
            except asyncio.TimeoutError:
                pass

    def get_stats(self) -> dict:
        """Get monitoring statistics."""
        return {
            "readings_processed": self._readings_processed,
            "conditions_detected": self._conditions_detected,
            "record_failures": self._failures,
            "snapshot_checks": self._snapshot_task is not None,
        }
