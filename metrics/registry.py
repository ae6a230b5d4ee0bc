"""
Metric plugin registry — maps metric ids to plugin instances.

One entry per id; registering the same id again replaces the previous plugin
(last registration wins). The registry is an ordinary object created by the
application's composition root (api/main.py, worker/main.py) and passed to
whoever needs it, so tests can build a fresh one per test.

Single event loop, so no locking. A multi-threaded host would need a lock
around the two dicts.
"""

import logging
from typing import Optional

from metrics.base import MetricPlugin
from models.enums import MetricCategory

logger = logging.getLogger(__name__)


class MetricRegistry:

    def __init__(self):
        self._plugins: dict[str, MetricPlugin] = {}
        self._default_ids: set[str] = set()

    def register(self, plugin: MetricPlugin) -> None:
        if not plugin.id:
            raise ValueError("Plugin must have an id")

        if plugin.id in self._plugins:
            logger.debug(f"Replacing metric plugin '{plugin.id}'")
        self._plugins[plugin.id] = plugin

        if plugin.is_default:
            self._default_ids.add(plugin.id)
        else:
            self._default_ids.discard(plugin.id)

    def unregister(self, metric_id: str) -> None:
        self._plugins.pop(metric_id, None)
        self._default_ids.discard(metric_id)

    def get(self, metric_id: str) -> Optional[MetricPlugin]:
        return self._plugins.get(metric_id)

    def get_all(self) -> list[MetricPlugin]:
        return list(self._plugins.values())

    def get_by_category(self, category: MetricCategory) -> list[MetricPlugin]:
        category = MetricCategory(category)
        return [p for p in self._plugins.values() if p.category == category]

    def categories(self) -> dict[MetricCategory, list[MetricPlugin]]:
        """Registered plugins grouped by category, categories in alphabetical order."""
        grouped: dict[MetricCategory, list[MetricPlugin]] = {}
        for plugin in self._plugins.values():
            grouped.setdefault(plugin.category, []).append(plugin)
        return dict(sorted(grouped.items(), key=lambda item: item[0].value))

    def get_defaults(self) -> list[MetricPlugin]:
        return [p for p in self._plugins.values() if p.id in self._default_ids]

    def set_default(self, metric_id: str) -> None:
        """Flag a registered plugin as default. Unknown ids are ignored."""
        if metric_id in self._plugins:
            self._default_ids.add(metric_id)

    def remove_default(self, metric_id: str) -> None:
        self._default_ids.discard(metric_id)

    def is_default(self, metric_id: str) -> bool:
        return metric_id in self._default_ids

    def has(self, metric_id: str) -> bool:
        return metric_id in self._plugins

    def clear(self) -> None:
        self._plugins.clear()
        self._default_ids.clear()

    def size(self) -> int:
        return len(self._plugins)

    def ids(self) -> list[str]:
        return list(self._plugins.keys())
