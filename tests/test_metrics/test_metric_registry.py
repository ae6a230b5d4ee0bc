"""Tests for the metric plugin registry."""

import pytest

from metrics.base import MetricPlugin
from metrics.builtin import BUILTIN_PLUGINS, register_builtin_metrics
from metrics.registry import MetricRegistry
from models.enums import MetricCategory


class Constant(MetricPlugin):
    id = "constant"
    name = "Constant"
    category = MetricCategory.CUSTOM

    def __init__(self, value=1):
        self.value = value

    def calculate(self, text, input=None, context=None):
        return self.value


def test_register_then_unregister_round_trip():
    registry = MetricRegistry()
    registry.register(Constant())
    assert registry.has("constant")

    registry.unregister("constant")

    assert not registry.has("constant")
    assert all(p.id != "constant" for p in registry.get_all())


def test_register_same_id_twice_last_wins():
    registry = MetricRegistry()
    registry.register(Constant(1))
    second = Constant(2)
    registry.register(second)

    assert registry.size() == 1
    assert registry.get("constant") is second


def test_plugin_without_id_is_rejected():
    class Anonymous(Constant):
        id = ""

    with pytest.raises(ValueError):
        MetricRegistry().register(Anonymous())


def test_defaults():
    registry = register_builtin_metrics(MetricRegistry())

    assert {p.id for p in registry.get_defaults()} == {
        "flesch_reading_ease", "sentiment", "word_count", "sentence_count",
    }

    registry.set_default("keywords")
    registry.remove_default("sentiment")
    registry.set_default("not-registered")

    defaults = {p.id for p in registry.get_defaults()}
    assert "keywords" in defaults
    assert "sentiment" not in defaults
    assert "not-registered" not in defaults


def test_reregistering_recomputes_default_flag():
    registry = MetricRegistry()
    registry.register(Constant())
    registry.set_default("constant")
    assert registry.is_default("constant")

    registry.register(Constant())
    assert not registry.is_default("constant")


def test_get_by_category():
    registry = register_builtin_metrics(MetricRegistry())
    quality = {p.id for p in registry.get_by_category(MetricCategory.QUALITY)}
    assert {"precision", "recall", "f_score"} <= quality


def test_clear():
    registry = register_builtin_metrics(MetricRegistry())
    assert registry.size() == len(BUILTIN_PLUGINS)

    registry.clear()

    assert registry.size() == 0
    assert registry.get_defaults() == []


def test_registries_are_independent():
    first = register_builtin_metrics(MetricRegistry())
    second = MetricRegistry()
    assert first.size() > 0
    assert second.size() == 0


def test_categories_group_plugins_alphabetically():
    registry = register_builtin_metrics(MetricRegistry())
    registry.register(Constant())
    grouped = registry.categories()

    assert list(grouped) == sorted(grouped, key=lambda c: c.value)
    assert sum(len(p) for p in grouped.values()) == len(registry.get_all())
    assert [p.id for p in grouped[MetricCategory.CUSTOM]] == ["constant"]
