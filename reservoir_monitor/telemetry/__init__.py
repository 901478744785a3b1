"""
Telemetry ingestion from the sensor gateway.
"""
from .backoff import ReconnectPolicy
from .link import LinkStatus, TelemetryLink
from .parser import parse_reading, parse_timestamp
from .subscribers import ALL_SITES, SubscriberRegistry, Subscription
from .transport import TelemetryTransport

__all__ = [
    'ALL_SITES',
    'LinkStatus',
    'ReconnectPolicy',
    'SubscriberRegistry',
    'Subscription',
    'TelemetryLink',
    'TelemetryTransport',
    'parse_reading',
    'parse_timestamp',
]
