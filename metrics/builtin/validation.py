"""Output format checks."""

import json

from metrics.base import MetricPlugin
from models.enums import MetricCategory


class JsonValidityMetric(MetricPlugin):
    id = "is_valid_json"
    name = "Valid JSON"
    description = "Whether the whole output parses as JSON"
    category = MetricCategory.VALIDATION

    def calculate(self, text, input=None, context=None) -> bool:
        stripped = text.strip()
        # Models often wrap JSON in a markdown fence
        if stripped.startswith("```"):
            stripped = stripped.strip("`")
            if stripped.lower().startswith("json"):
                stripped = stripped[4:]
        try:
            json.loads(stripped)
        except ValueError:
            return False
        return True
