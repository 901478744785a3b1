"""
Test data factories for the reservoir monitor.
"""
from .reading_factory import PayloadFactory, ReadingFactory, SnapshotFactory
from .alert_factory import AlertFactory, ConditionFactory

__all__ = [
    "AlertFactory",
    "ConditionFactory",
    "PayloadFactory",
    "ReadingFactory",
    "SnapshotFactory",
]
