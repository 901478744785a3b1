"""
Unit tests for telemetry payload parsing and reconnect backoff.
"""
import json
from datetime import datetime, timezone

import pytest

from reservoir_monitor.domain.entities.reading import ReadingKind
from reservoir_monitor.domain.exceptions import ParseError
from reservoir_monitor.telemetry.backoff import ReconnectPolicy
from reservoir_monitor.telemetry.parser import parse_reading, parse_timestamp

from ...factories import PayloadFactory
from ...fakes import T0


class TestParseTimestamp:
    """Test timestamp normalization."""

    def test_iso_with_z(self):
        """Test ISO-8601 with Z suffix is UTC."""
        assert parse_timestamp("2024-05-01T10:00:00Z") == T0

    def test_iso_with_offset(self):
        """Test offsets are converted to UTC."""
        assert parse_timestamp("2024-05-01T12:00:00+02:00") == T0

    def test_naive_iso_is_utc(self):
        """Test naive timestamps are taken as UTC."""
        assert parse_timestamp("2024-05-01T10:00:00") == T0

    def test_epoch_seconds_and_millis(self):
        """Test epoch seconds and milliseconds give the same instant."""
        seconds = T0.timestamp()
        assert parse_timestamp(seconds) == T0
        assert parse_timestamp(int(seconds * 1000)) == T0

    @pytest.mark.parametrize("raw", ["yesterday", True, None, [1]])
    def test_invalid(self, raw):
        """Test non-timestamps raise ParseError."""
        with pytest.raises(ParseError):
            parse_timestamp(raw)


class TestParseReading:
    """Test payload normalization."""

    def test_distance_payload(self):
        """Test the legacy distance field becomes a level reading in cm."""
        reading = parse_reading(PayloadFactory(distance=120.5, timestamp="2024-05-01T10:00:00Z"))

        assert reading.site_id == "site-1"
        assert reading.sensor_id == "sensor-1"
        assert reading.kind == ReadingKind.LEVEL
        assert reading.value == 120.5
        assert reading.unit == "cm"
        assert reading.observed_at == T0
        assert reading.source == "gateway"

    def test_level_field_wins(self):
        """Test `level` takes precedence over `distance`."""
        payload = PayloadFactory(level=40, unit="%")
        reading = parse_reading(payload)
        assert reading.value == 40.0
        assert reading.is_percentage

    def test_json_text_and_bytes(self):
        """Test JSON text and bytes are decoded."""
        payload = PayloadFactory()
        text = json.dumps(payload)
        assert parse_reading(text) == parse_reading(payload)
        assert parse_reading(text.encode("utf-8")) == parse_reading(payload)

    def test_missing_sensor_uses_site(self):
        """Test single-sensor sites report without a sensor id."""
        payload = PayloadFactory()
        del payload["sensorId"]
        assert parse_reading(payload).sensor_id == "site-1"

    def test_missing_timestamp_uses_receive_time(self):
        """Test the receive time stands in for a missing timestamp."""
        received = datetime(2024, 6, 1, tzinfo=timezone.utc)
        payload = PayloadFactory(timestamp=None)
        assert parse_reading(payload, received_at=received).observed_at == received

    def test_battery_kind(self):
        """Test non-level kinds carry value and default to percent."""
        reading = parse_reading({"siteId": "s1", "kind": "battery", "value": 15})
        assert reading.kind == ReadingKind.BATTERY
        assert reading.unit == "%"
        assert reading.value == 15.0

    @pytest.mark.parametrize("payload", [
        "{not json",
        "[1, 2]",
        {"sensorId": "n1", "distance": 1},
        {"siteId": "", "distance": 1},
        {"siteId": "s1"},
        {"siteId": "s1", "distance": "far"},
        {"siteId": "s1", "distance": float("nan")},
        {"siteId": "s1", "distance": True},
        {"siteId": "s1", "kind": "pressure", "value": 1},
        {"siteId": "s1", "distance": 1, "timestamp": "not a time"},
    ])
    def test_malformed(self, payload):
        """Test malformed payloads raise ParseError."""
        with pytest.raises(ParseError):
            parse_reading(payload)


class TestReconnectPolicy:
    """Test linear backoff."""

    def test_linear_delays(self):
        """Test the n-th retry waits base_delay * n."""
        policy = ReconnectPolicy(base_delay=5.0, max_attempts=3)
        assert [policy.next_delay() for _ in range(4)] == [5.0, 10.0, 15.0, None]
        assert policy.exhausted

    def test_reset(self):
        """Test a successful connection resets the counter."""
        policy = ReconnectPolicy(base_delay=2.0, max_attempts=5)
        policy.next_delay()
        policy.next_delay()
        policy.reset()
        assert policy.next_delay() == 2.0

    def test_schedule(self):
        """Test the full schedule of a fresh policy."""
        assert ReconnectPolicy().schedule() == [5.0, 10.0, 15.0, 20.0, 25.0]

    def test_negative_values_rejected(self):
        """Test invalid configuration is refused."""
        with pytest.raises(ValueError):
            ReconnectPolicy(base_delay=-1)
