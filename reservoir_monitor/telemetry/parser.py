"""
Parsing of raw gateway payloads into readings.

Gateway payloads look like:

    {"siteId": "s1", "sensorId": "n1", "timestamp": "2024-05-01T10:00:00Z",
     "distance": 120.5, "source": "gateway"}

`level` may replace the legacy `distance` key. Non-level metrics carry
`kind`, `value` and `unit`.
"""
import json
import math
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from ..domain.entities.base import ensure_utc, utc_now
from ..domain.entities.reading import PERCENT, Reading, ReadingKind
from ..domain.exceptions import ParseError

DEFAULT_LEVEL_UNIT = "cm"
DEFAULT_SOURCE = "gateway"

# Epoch values above this are milliseconds
_EPOCH_MS_THRESHOLD = 1e11


def parse_timestamp(raw: Any) -> datetime:
    """
    Parse an ISO-8601 string or epoch seconds/milliseconds into UTC.

    Raises:
        ParseError: If the value is not a timestamp
    """
    if isinstance(raw, datetime):
        return ensure_utc(raw)
    if isinstance(raw, bool):
        raise ParseError("Invalid timestamp", raw)
    if isinstance(raw, (int, float)):
        seconds = raw / 1000 if raw > _EPOCH_MS_THRESHOLD else raw
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise ParseError(f"Timestamp out of range: {e}", raw)
    if isinstance(raw, str):
        text = raw.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError:
            raise ParseError("Invalid timestamp", raw)
    raise ParseError("Invalid timestamp", raw)


def _parse_number(raw: Any, field_name: str, payload: Any) -> float:
    if isinstance(raw, bool) or raw is None:
        raise ParseError(f"Missing or invalid {field_name}", payload)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ParseError(f"Non-numeric {field_name}", payload)
    if not math.isfinite(value):
        raise ParseError(f"Non-finite {field_name}", payload)
    return value


def _decode(payload: Any) -> Mapping[str, Any]:
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8", errors="replace")
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON: {e.msg}", payload)
    if not isinstance(payload, Mapping):
        raise ParseError("Payload is not an object", payload)
    return payload


def parse_reading(payload: Any, received_at: Optional[datetime] = None) -> Reading:
    """
    Normalize one raw payload into a Reading.

    Args:
        payload: Decoded mapping, JSON text or bytes
        received_at: Used when the payload has no timestamp

    Returns:
        The reading

    Raises:
        ParseError: If the payload cannot be interpreted
    """
    data = _decode(payload)

    site_id = data.get("siteId")
    if site_id is None or str(site_id).strip() == "":
        raise ParseError("Missing siteId", payload)
    site_id = str(site_id)

    # Single-sensor sites report without a sensor id
    sensor_id = data.get("sensorId")
    sensor_id = str(sensor_id) if sensor_id not in (None, "") else site_id

    raw_kind = data.get("kind", ReadingKind.LEVEL.value)
    try:
        kind = ReadingKind(str(raw_kind).upper())
    except ValueError:
        raise ParseError(f"Unknown reading kind {raw_kind!r}", payload)

    if kind == ReadingKind.LEVEL:
        if "level" in data:
            raw_value = data["level"]
        elif "distance" in data:
            raw_value = data["distance"]
        else:
            raw_value = data.get("value")
        unit = str(data.get("unit") or DEFAULT_LEVEL_UNIT)
    else:
        raw_value = data.get("value")
        unit = str(data.get("unit") or PERCENT)
    value = _parse_number(raw_value, "value", payload)

    if data.get("timestamp") is None:
        observed_at = received_at or utc_now()
    else:
        observed_at = parse_timestamp(data["timestamp"])

    return Reading(
        site_id=site_id,
        sensor_id=sensor_id,
        kind=kind,
        value=value,
        unit=unit,
        observed_at=observed_at,
        source=str(data.get("source") or DEFAULT_SOURCE),
    )
