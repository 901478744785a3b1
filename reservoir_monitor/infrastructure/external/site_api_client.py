"""
Site API client.

Looks up sites and sensors in the surrounding REST API so alerts carry
readable names and level readings can be related to reservoir capacity.
"""
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ...application.interfaces.services import SensorDirectory
from ...config import SiteApiSettings
from ...domain.entities.reading import SensorInfo, SensorSnapshot, SensorStatus
from ...domain.exceptions import ParseError
from ...telemetry.parser import parse_timestamp

logger = logging.getLogger(__name__)


def _unwrap(body: Any) -> Any:
    """Accept both bare payloads and {"data": ...} envelopes."""
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


def _optional_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def snapshot_from_json(data: Dict[str, Any]) -> SensorSnapshot:
    """
    Build a snapshot from a sensor document.

    Raises:
        ValueError: If the document has no id or site id
    """
    sensor_id = data.get("id")
    site_id = data.get("siteId")
    if not sensor_id or not site_id:
        raise ValueError("sensor document without id or siteId")

    try:
        status = SensorStatus(str(data.get("status", "ACTIVE")).upper())
    except ValueError:
        status = SensorStatus.ACTIVE

    calibrated = None
    if data.get("lastCalibrationDate"):
        try:
            calibrated = parse_timestamp(data["lastCalibrationDate"])
        except ParseError:
            calibrated = None

    return SensorSnapshot(
        sensor_id=str(sensor_id),
        site_id=str(site_id),
        name=str(data.get("name") or sensor_id),
        status=status,
        battery_level=_optional_float(data.get("batteryLevel")),
        signal_strength=_optional_float(data.get("signalStrength")),
        accuracy=_optional_float(data.get("accuracy")),
        last_calibration_date=calibrated,
    )


class SiteApiClient(SensorDirectory):
    """
    Client for the site and sensor REST API.

    Responsibilities:
    - Resolve sensor and site names for alert details
    - Provide reservoir capacity for level conversion
    - List sensor snapshots for the periodic status check

    Lookups never raise: on failure the sensor is described by its ids.
    """

    def __init__(
        self,
        settings: SiteApiSettings,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the site API client.

        Args:
            settings: API settings.
            client: Preconfigured HTTP client, mostly for tests.
        """
        self.settings = settings
        self._client = client
        self._cache: Dict[Tuple[str, str], Tuple[float, Dict[str, Any]]] = {}

    async def connect(self) -> None:
        """Initialize HTTP client."""
        if self._client is not None:
            return
        headers = {"Content-Type": "application/json"}
        if self.settings.api_key:
            headers["Authorization"] = f"Bearer {self.settings.api_key}"
        self._client = httpx.AsyncClient(
            base_url=self.settings.base_url,
            headers=headers,
            timeout=self.settings.timeout,
        )
        logger.info(f"Site API client initialized: {self.settings.base_url}")

    async def disconnect(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Site API client disconnected")

    async def _get_json(self, path: str) -> Optional[Any]:
        if self._client is None:
            await self.connect()
        try:
            response = await self._client.get(path)
        except httpx.HTTPError as e:
            logger.error(f"Site API request {path} failed: {e}")
            return None
        if response.status_code != 200:
            logger.warning(f"Site API {path} returned {response.status_code}")
            return None
        try:
            return _unwrap(response.json())
        except ValueError:
            logger.error(f"Site API {path} returned invalid JSON")
            return None

    async def _get_cached(self, kind: str, id: str, path: str) -> Optional[Dict[str, Any]]:
        key = (kind, id)
        now = time.monotonic()
        cached = self._cache.get(key)
        if cached and now - cached[0] < self.settings.cache_ttl:
            return cached[1]

        data = await self._get_json(path)
        if not isinstance(data, dict):
            return None
        self._cache[key] = (now, data)
        return data

    def invalidate(self) -> None:
        """Forget cached site and sensor documents."""
        self._cache.clear()

    async def describe_sensor(self, site_id: str, sensor_id: str) -> SensorInfo:
        """Get display names and reservoir capacity for a sensor."""
        fallback = SensorInfo.unknown(sensor_id, site_id)

        site = await self._get_cached("site", site_id, f"/sites/{site_id}")
        sensor = None
        if sensor_id != site_id:
            sensor = await self._get_cached("sensor", sensor_id, f"/sensors/{sensor_id}")

        return SensorInfo(
            sensor_name=str(sensor.get("name") or sensor_id) if sensor else fallback.sensor_name,
            site_name=str(site.get("name") or fallback.site_name) if site else fallback.site_name,
            reservoir_capacity=_optional_float(site.get("reservoirCapacity")) if site else None,
        )

    async def list_snapshots(self) -> List[SensorSnapshot]:
        """Get a status snapshot of every sensor."""
        data = await self._get_json("/sensors")
        if not isinstance(data, list):
            return []

        snapshots = []
        for item in data:
            if not isinstance(item, dict):
                continue
            try:
                snapshots.append(snapshot_from_json(item))
            except ValueError as e:
                logger.warning(f"Skipping sensor document: {e}")
        return snapshots
