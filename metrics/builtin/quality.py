"""
Reference-overlap metrics — all require a reference text.

Word-set overlap between output and reference:
    precision = |output ∩ reference| / |output|
    recall    = |output ∩ reference| / |reference|
    f_score   = harmonic mean of the two
"""

from metrics.base import MetricPlugin
from metrics.builtin.text import word_set
from models.enums import MetricCategory


def overlap(text: str, reference: str) -> tuple[float, float]:
    output_words = word_set(text)
    reference_words = word_set(reference)
    common = output_words & reference_words
    precision = len(common) / len(output_words) if output_words else 0.0
    recall = len(common) / len(reference_words) if reference_words else 0.0
    return precision, recall


class _ReferenceMetric(MetricPlugin):
    category = MetricCategory.QUALITY
    requires_input = True
    input_label = "Reference Text"
    input_placeholder = "Enter reference text to compare against..."

    def calculate(self, text, input=None, context=None):
        if not input:
            return None
        precision, recall = overlap(text, input)
        return round(self._combine(precision, recall), 4)

    def _combine(self, precision: float, recall: float) -> float:
        raise NotImplementedError


class PrecisionMetric(_ReferenceMetric):
    id = "precision"
    name = "Precision"
    description = "Share of output words found in the reference"

    def _combine(self, precision, recall):
        return precision


class RecallMetric(_ReferenceMetric):
    id = "recall"
    name = "Recall"
    description = "Share of reference words found in the output"

    def _combine(self, precision, recall):
        return recall


class FScoreMetric(_ReferenceMetric):
    id = "f_score"
    name = "F-Score"
    description = "Harmonic mean of precision and recall"

    def _combine(self, precision, recall):
        if precision + recall == 0:
            return 0.0
        return 2 * precision * recall / (precision + recall)
