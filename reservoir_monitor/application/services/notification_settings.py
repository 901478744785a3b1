"""
Notification Settings Store.

Read-only access to the `notifications` settings category for the dispatcher.
"""
import logging

from ...domain.entities.notification import DEFAULT_NOTIFICATION_SETTINGS, NotificationSettings
from ..interfaces.repositories import SettingsRepository
from .settings_store import GLOBAL_SCOPE, LayeredSettingsStore, deep_merge

logger = logging.getLogger(__name__)


class NotificationSettingsStore(LayeredSettingsStore):
    """Resolves notification preferences per site. Reads never fail."""

    category = "notifications"

    def __init__(
        self,
        repository: SettingsRepository,
        defaults: NotificationSettings = DEFAULT_NOTIFICATION_SETTINGS,
    ):
        super().__init__(repository)
        self._defaults = defaults

    async def get(self, scope: str = GLOBAL_SCOPE) -> NotificationSettings:
        data = self._defaults.to_dict()
        settings = self._defaults

        for layer in await self._read_layers(scope):
            candidate = deep_merge(data, layer)
            try:
                settings = NotificationSettings.from_dict(candidate)
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring invalid notification settings layer for scope {scope}: {e}")
                continue
            data = candidate

        return settings
