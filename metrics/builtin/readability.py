"""
Readability metrics (Flesch formulas).

flesch_reading_ease is clamped to 0..100 so the average score can divide by 100.
Empty text yields no value.
"""

from metrics.base import MetricPlugin
from metrics.builtin.text import count_syllables, sentences, words
from models.enums import MetricCategory


def _counts(text: str):
    word_list = words(text)
    sentence_count = max(1, len(sentences(text)))
    syllables = sum(count_syllables(w) for w in word_list)
    return len(word_list), sentence_count, syllables


class FleschReadingEaseMetric(MetricPlugin):
    id = "flesch_reading_ease"
    name = "Flesch Reading Ease"
    description = "0 (very hard) to 100 (very easy)"
    category = MetricCategory.READABILITY
    is_default = True

    def calculate(self, text, input=None, context=None):
        word_count, sentence_count, syllables = _counts(text)
        if word_count == 0:
            return None
        score = 206.835 - 1.015 * (word_count / sentence_count) - 84.6 * (syllables / word_count)
        return round(min(100.0, max(0.0, score)), 2)


class FleschKincaidGradeMetric(MetricPlugin):
    id = "flesch_kincaid_grade"
    name = "Flesch-Kincaid Grade"
    description = "US school grade level needed to read the text"
    category = MetricCategory.READABILITY

    def calculate(self, text, input=None, context=None):
        word_count, sentence_count, syllables = _counts(text)
        if word_count == 0:
            return None
        grade = 0.39 * (word_count / sentence_count) + 11.8 * (syllables / word_count) - 15.59
        return round(max(0.0, grade), 2)
