"""
Metric evaluation — runs a batch of plugins over one output text.

Steps for evaluate(text, selections, disabled, reference_text):

    1. No explicit selection → the registry's default metrics
    2. Reference text present → precision / recall / f_score auto-included
    3. Disabled ids removed
    4. Cache lookup on (text, selection, disabled, reference)
    5. Each remaining plugin computed concurrently (they only read the text)
    6. Results merged into one flat dict keyed by metric id, then cached

Per-plugin failure policy:
- unknown id                          → skipped
- requires input, none / invalid      → skipped (not an error)
- calculate() raises                  → logged, recorded in `errors`, omitted
Only an empty registry fails the whole batch (MetricsUnavailableError),
because then no metric can ever be produced.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from metrics.base import MetricContext, MetricPlugin, MetricSelection
from metrics.cache import MetricsCache, make_cache_key
from metrics.registry import MetricRegistry

logger = logging.getLogger(__name__)

# Auto-included when a reference text is available
REFERENCE_METRICS = ("precision", "recall", "f_score")


class MetricsUnavailableError(Exception):
    """The registry has no plugins at all."""


@dataclass
class MetricError:
    metric_id: str
    error: str


@dataclass
class MetricsResult:
    results: dict[str, Any] = field(default_factory=dict)
    errors: list[MetricError] = field(default_factory=list)
    processing_time_ms: float = 0.0
    cache_hit: bool = False


def parse_selections(raw: Optional[Iterable]) -> Optional[list[MetricSelection]]:
    """Accept MetricSelection objects, {"id", "input"} dicts, or bare id strings."""
    if raw is None:
        return None
    selections = []
    for item in raw:
        if isinstance(item, MetricSelection):
            selections.append(item)
        elif isinstance(item, str):
            selections.append(MetricSelection(id=item))
        else:
            selections.append(MetricSelection(id=item["id"], input=item.get("input")))
    return selections


class MetricsEvaluator:

    def __init__(self, registry: MetricRegistry, cache: Optional[MetricsCache] = None):
        self._registry = registry
        self._cache = cache

    def resolve_selections(
        self,
        selections: Optional[list[MetricSelection]],
        disabled: frozenset[str],
        reference_text: Optional[str],
    ) -> list[MetricSelection]:
        if selections is None:
            resolved = [MetricSelection(id=p.id) for p in self._registry.get_defaults()]
        else:
            resolved = list(selections)

        if reference_text:
            chosen = {s.id for s in resolved}
            for metric_id in REFERENCE_METRICS:
                if metric_id not in chosen and self._registry.has(metric_id):
                    resolved.append(MetricSelection(id=metric_id, input=reference_text))

        return [s for s in resolved if s.id not in disabled]

    async def evaluate(
        self,
        text: str,
        selections: Optional[list[MetricSelection]] = None,
        disabled: Optional[Iterable[str]] = None,
        reference_text: Optional[str] = None,
        prompt: Optional[str] = None,
    ) -> MetricsResult:
        start = time.monotonic()

        if self._registry.size() == 0:
            raise MetricsUnavailableError("No metric plugins are registered")

        if not isinstance(text, str):
            return MetricsResult(
                errors=[MetricError("validation", "Text to evaluate must be a string")],
                processing_time_ms=_elapsed_ms(start),
            )

        disabled = frozenset(disabled or ())
        resolved = self.resolve_selections(selections, disabled, reference_text)
        if not resolved:
            return MetricsResult(processing_time_ms=_elapsed_ms(start))

        cache_key = None
        if self._cache is not None:
            cache_key = make_cache_key(text, resolved, disabled, reference_text)
            cached = self._cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Metrics cache hit ({len(resolved)} metrics, {len(text)} chars)")
                cached.processing_time_ms = _elapsed_ms(start)
                cached.cache_hit = True
                return cached

        context = MetricContext(
            text=text,
            selections=resolved,
            disabled=disabled,
            reference_text=reference_text,
            prompt=prompt,
        )

        runnable = []
        for selection in resolved:
            plugin = self._registry.get(selection.id)
            if plugin is None:
                logger.debug(f"Unknown metric '{selection.id}', skipping")
                continue

            metric_input = selection.input
            if metric_input is None and plugin.requires_input:
                metric_input = reference_text
            if plugin.requires_input and not plugin.validate(metric_input):
                continue

            runnable.append((plugin, metric_input))

        outcomes = await asyncio.gather(
            *(self._calculate_one(plugin, text, metric_input, context) for plugin, metric_input in runnable)
        )

        result = MetricsResult()
        for metric_id, value, error in outcomes:
            if error is not None:
                result.errors.append(MetricError(metric_id, error))
            elif value is not None:
                result.results[metric_id] = value

        result.processing_time_ms = _elapsed_ms(start)
        if cache_key is not None:
            self._cache.set(cache_key, result)
        return result

    async def _calculate_one(
        self,
        plugin: MetricPlugin,
        text: str,
        metric_input: Optional[str],
        context: MetricContext,
    ) -> tuple[str, Any, Optional[str]]:
        try:
            value = plugin.calculate(text, metric_input, context)
            if inspect.isawaitable(value):
                value = await value
            return plugin.id, value, None
        except Exception as e:
            logger.warning(f"Metric '{plugin.id}' failed: {e}")
            return plugin.id, None, str(e) or e.__class__.__name__


def _elapsed_ms(start: float) -> float:
    return round((time.monotonic() - start) * 1000, 3)
