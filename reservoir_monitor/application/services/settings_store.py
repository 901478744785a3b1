"""
Layered settings access shared by the threshold and notification stores.

Effective settings for a site are resolved from three layers:
compiled-in defaults, the global record, then the site's own record.
"""
import copy
import logging
from typing import Any, Dict, List, Mapping

from ..interfaces.repositories import SettingsRepository

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "global"


def deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively overlay overrides on a copy of base."""
    merged = copy.deepcopy(dict(base))
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class LayeredSettingsStore:
    """
    Base class for stores backed by one settings category.

    Subclasses set `category` and build typed settings from the layers
    returned by `_read_layers`.
    """

    category: str = ""

    def __init__(self, repository: SettingsRepository):
        self._repository = repository

    @staticmethod
    def _scope_chain(scope: str) -> List[str]:
        if scope == GLOBAL_SCOPE:
            return [GLOBAL_SCOPE]
        return [GLOBAL_SCOPE, scope]

    async def _read_layers(self, scope: str) -> List[Dict[str, Any]]:
        """
        Read the stored records that apply to a scope, global first.

        A failing or malformed layer is logged and left out so reads
        always succeed.
        """
        layers: List[Dict[str, Any]] = []
        for layer_scope in self._scope_chain(scope):
            try:
                record = await self._repository.get(self.category, layer_scope)
            except Exception:
                logger.exception(
                    f"Failed to read {self.category} settings for scope {layer_scope}, using defaults"
                )
                continue
            if record is None:
                continue
            if not isinstance(record, Mapping):
                logger.warning(f"Ignoring malformed {self.category} settings for scope {layer_scope}")
                continue
            layers.append(dict(record))
        return layers
