"""
Abstract base class for metric plugins.

A plugin turns the job's output text into one measurement: a number, a bool,
or a small dict (e.g. {"label", "score", "confidence"} for sentiment). The
evaluator (metrics/evaluator.py) calls plugin.calculate(...) without knowing
which metric it is — it looks the plugin up from the registry by id.

To add a new metric:
1. Create a class that inherits MetricPlugin
2. Set id / name / category (and requires_input if it needs auxiliary input)
3. Implement calculate() — plain or async, both are accepted
4. Add it to BUILTIN_PLUGINS in metrics/builtin/__init__.py
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from models.enums import MetricCategory


@dataclass
class MetricSelection:
    """One requested metric, optionally with its auxiliary input (keywords, reference text...)."""
    id: str
    input: Optional[str] = None


@dataclass
class MetricContext:
    """Everything a plugin may want beyond the text itself."""
    text: str
    selections: list[MetricSelection] = field(default_factory=list)
    disabled: frozenset[str] = frozenset()
    reference_text: Optional[str] = None
    prompt: Optional[str] = None


class MetricPlugin(ABC):

    id: str = ""
    name: str = ""
    description: str = ""
    category: MetricCategory = MetricCategory.CUSTOM
    version: str = "1.0.0"

    requires_input: bool = False
    input_label: Optional[str] = None
    input_placeholder: Optional[str] = None

    # Included when a job does not pick its metrics explicitly
    is_default: bool = False

    @abstractmethod
    def calculate(self, text: str, input: Optional[str] = None, context: Optional[MetricContext] = None) -> Any:
        """
        Compute the metric over `text`.

        May be a coroutine function. Returning None means "no value" and the
        metric is left out of the results. Raising is allowed: the evaluator
        logs the error and omits this metric, the rest of the batch still runs.
        """
        ...

    def validate(self, input: Optional[str]) -> bool:
        """Reject malformed auxiliary input before calculate() is called."""
        if self.requires_input:
            return bool(input and input.strip())
        return True

    def describe(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "version": self.version,
            "requires_input": self.requires_input,
            "input_label": self.input_label,
            "input_placeholder": self.input_placeholder,
        }
