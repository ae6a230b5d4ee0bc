"""
Structure metrics — counts over words and sentences.

Example results for "Hello world. How are you?":
    word_count             5
    sentence_count         2
    avg_words_per_sentence 2.5
    vocab_diversity        1.0
"""

from metrics.base import MetricPlugin
from metrics.builtin.text import sentences, words
from models.enums import MetricCategory


class WordCountMetric(MetricPlugin):
    id = "word_count"
    name = "Word Count"
    description = "Number of words in the output"
    category = MetricCategory.STRUCTURE
    is_default = True

    def calculate(self, text, input=None, context=None) -> int:
        return len(words(text))


class SentenceCountMetric(MetricPlugin):
    id = "sentence_count"
    name = "Sentence Count"
    description = "Number of sentences in the output"
    category = MetricCategory.STRUCTURE
    is_default = True

    def calculate(self, text, input=None, context=None) -> int:
        return len(sentences(text))


class AvgWordsPerSentenceMetric(MetricPlugin):
    id = "avg_words_per_sentence"
    name = "Average Words per Sentence"
    description = "Mean sentence length in words"
    category = MetricCategory.STRUCTURE

    def calculate(self, text, input=None, context=None) -> float:
        sentence_list = sentences(text)
        if not sentence_list:
            return 0.0
        return round(len(words(text)) / len(sentence_list), 2)


class VocabDiversityMetric(MetricPlugin):
    id = "vocab_diversity"
    name = "Vocabulary Diversity"
    description = "Unique words divided by total words"
    category = MetricCategory.QUALITY

    def calculate(self, text, input=None, context=None) -> float:
        word_list = [w.lower() for w in words(text)]
        if not word_list:
            return 0.0
        return round(len(set(word_list)) / len(word_list), 4)
