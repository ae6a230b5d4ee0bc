"""
Keyword presence — requires a comma-separated keyword list as input.

Example (input "alpha, beta, gamma", text mentions alpha twice and beta once):
    {
        "found": ["alpha", "beta"],
        "missing": ["gamma"],
        "found_count": 2,
        "missing_count": 1,
        "match_percentage": 66.67,
        "total_matches": 3
    }
"""

import re

from metrics.base import MetricPlugin
from metrics.builtin.text import parse_keywords
from models.enums import MetricCategory


class KeywordsMetric(MetricPlugin):
    id = "keywords"
    name = "Keywords"
    description = "Keyword presence analysis"
    category = MetricCategory.KEYWORDS
    requires_input = True
    input_label = "Keywords"
    input_placeholder = "Enter keywords separated by commas..."

    def validate(self, input) -> bool:
        return bool(input) and bool(parse_keywords(input))

    def calculate(self, text, input=None, context=None) -> dict:
        keywords = parse_keywords(input or "")
        counts = {
            k: len(re.findall(rf"\b{re.escape(k)}\b", text, flags=re.IGNORECASE))
            for k in keywords
        }
        found = [k for k in keywords if counts[k] > 0]
        missing = [k for k in keywords if counts[k] == 0]
        return {
            "found": found,
            "missing": missing,
            "found_count": len(found),
            "missing_count": len(missing),
            "match_percentage": round(100 * len(found) / len(keywords), 2) if keywords else 0.0,
            "total_matches": sum(counts.values()),
        }
