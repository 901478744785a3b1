"""
Application services - orchestration of the monitoring pipeline.
"""
from .alert_registry import AlertRegistry, AlertStats, RegistryResult
from .monitoring_service import MonitoringService
from .notification_dispatcher import (
    DeliveryResult,
    DigestQueue,
    DispatchReport,
    NotificationDispatcher,
)
from .notification_settings import NotificationSettingsStore
from .settings_store import GLOBAL_SCOPE, LayeredSettingsStore, deep_merge
from .threshold_store import ThresholdStore

__all__ = [
    'GLOBAL_SCOPE',
    'AlertRegistry',
    'AlertStats',
    'DeliveryResult',
    'DigestQueue',
    'DispatchReport',
    'LayeredSettingsStore',
    'MonitoringService',
    'NotificationDispatcher',
    'NotificationSettingsStore',
    'RegistryResult',
    'ThresholdStore',
    'deep_merge',
]
