"""
Built-in metric plugins.

BUILTIN_PLUGINS is the static manifest: register_builtin_metrics() registers
every entry, nothing is discovered from the filesystem at runtime.
"""

from metrics.base import MetricPlugin
from metrics.builtin.keywords import KeywordsMetric
from metrics.builtin.quality import FScoreMetric, PrecisionMetric, RecallMetric
from metrics.builtin.readability import FleschKincaidGradeMetric, FleschReadingEaseMetric
from metrics.builtin.sentiment import SentimentMetric
from metrics.builtin.structure import (
    AvgWordsPerSentenceMetric,
    SentenceCountMetric,
    VocabDiversityMetric,
    WordCountMetric,
)
from metrics.builtin.validation import JsonValidityMetric
from metrics.registry import MetricRegistry

BUILTIN_PLUGINS: tuple[type[MetricPlugin], ...] = (
    WordCountMetric,
    SentenceCountMetric,
    AvgWordsPerSentenceMetric,
    VocabDiversityMetric,
    FleschReadingEaseMetric,
    FleschKincaidGradeMetric,
    SentimentMetric,
    KeywordsMetric,
    PrecisionMetric,
    RecallMetric,
    FScoreMetric,
    JsonValidityMetric,
)


def register_builtin_metrics(registry: MetricRegistry) -> MetricRegistry:
    for plugin_cls in BUILTIN_PLUGINS:
        registry.register(plugin_cls())
    return registry
