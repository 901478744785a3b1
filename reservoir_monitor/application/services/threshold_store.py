"""
Threshold Store Application Service.

Single source of truth for the alert thresholds applied to a site.
"""
import logging
from typing import Any, Dict, Mapping

from ...domain.entities.thresholds import DEFAULT_THRESHOLDS, AlertThresholds, merge_thresholds
from ...domain.exceptions import ValidationException
from ..interfaces.repositories import SettingsRepository
from .settings_store import GLOBAL_SCOPE, LayeredSettingsStore, deep_merge

logger = logging.getLogger(__name__)


class ThresholdStore(LayeredSettingsStore):
    """
    Reads and writes the `alerts` settings category.

    Reads never fail and always return a fully populated structure.
    Writes surface PersistenceError from the repository to the caller.
    """

    category = "alerts"

    def __init__(
        self,
        repository: SettingsRepository,
        defaults: AlertThresholds = DEFAULT_THRESHOLDS,
    ):
        super().__init__(repository)
        self._defaults = defaults

    @property
    def defaults(self) -> AlertThresholds:
        return self._defaults

    async def get(self, scope: str = GLOBAL_SCOPE) -> AlertThresholds:
        """
        Get the effective thresholds for a scope.

        Args:
            scope: "global" or a site id

        Returns:
            Defaults overlaid with the global record and the site record
        """
        thresholds = self._defaults
        for layer in await self._read_layers(scope):
            thresholds, skipped = merge_thresholds(thresholds, layer)
            if skipped:
                logger.warning(
                    f"Ignoring invalid threshold values for scope {scope}: {', '.join(skipped)}"
                )
        return thresholds

    async def update(self, scope: str, partial: Mapping[str, Any]) -> AlertThresholds:
        """
        Update some thresholds of a scope.

        Args:
            scope: "global" or a site id
            partial: Mapping of category to the fields to change

        Returns:
            The new effective thresholds

        Raises:
            ValidationException: If a value is not numeric or bands are out of order
            PersistenceError: If the record cannot be stored
        """
        current = await self.get(scope)
        candidate, skipped = merge_thresholds(current, partial)

        errors: Dict[str, list] = {}
        for path in skipped:
            errors.setdefault(path.split(".")[0], []).append(f"{path} is not a valid threshold")
        for category, messages in candidate.validate().items():
            errors.setdefault(category, []).extend(messages)
        if errors:
            raise ValidationException("Invalid alert thresholds", errors=errors)

        stored = await self._repository.get(self.category, scope)
        if not isinstance(stored, Mapping):
            stored = {}
        record = deep_merge(stored, _normalize(partial, candidate))
        await self._repository.save(self.category, scope, record)
        logger.info(f"Updated alert thresholds for scope {scope}")
        return candidate

    async def reset_to_defaults(self, scope: str = GLOBAL_SCOPE) -> AlertThresholds:
        """
        Drop the stored record of a scope.

        A site then follows the global thresholds again; the global scope
        falls back to the compiled-in defaults.

        Raises:
            PersistenceError: If the record cannot be deleted
        """
        await self._repository.delete(self.category, scope)
        logger.info(f"Reset alert thresholds for scope {scope}")
        return await self.get(scope)


def _normalize(partial: Mapping[str, Any], resolved: AlertThresholds) -> Dict[str, Any]:
    """Keep only the fields given in partial, with their coerced values."""
    resolved_dict = resolved.to_dict()
    return {
        category: {name: resolved_dict[category][name] for name in values}
        for category, values in partial.items()
    }
