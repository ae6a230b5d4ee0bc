"""
Lexicon sentiment.

Counts positive and negative words from a small lexicon and squashes the
difference into a compound score in [-1, 1]. calculate() is a coroutine so a
model-backed classifier can replace it without changing the evaluator.

Example result:
    {"label": "positive", "score": 0.75, "confidence": 0.5, "compound": 0.5}
"""

from metrics.base import MetricPlugin
from metrics.builtin.text import words
from models.enums import MetricCategory

POSITIVE_WORDS = frozenset({
    "good", "great", "excellent", "amazing", "wonderful", "happy", "love", "like",
    "best", "better", "positive", "fantastic", "helpful", "clear", "nice", "success",
    "easy", "enjoy", "glad", "perfect",
})
NEGATIVE_WORDS = frozenset({
    "bad", "terrible", "awful", "horrible", "sad", "hate", "worst", "worse",
    "negative", "poor", "wrong", "fail", "failure", "difficult", "angry", "broken",
    "problem", "error", "ugly", "confusing",
})

NEUTRAL_BAND = 0.05


def score_sentiment(text: str) -> dict:
    tokens = [w.lower() for w in words(text)]
    positive = sum(1 for t in tokens if t in POSITIVE_WORDS)
    negative = sum(1 for t in tokens if t in NEGATIVE_WORDS)
    hits = positive + negative

    compound = 0.0 if hits == 0 else (positive - negative) / hits
    if compound > NEUTRAL_BAND:
        label = "positive"
    elif compound < -NEUTRAL_BAND:
        label = "negative"
    else:
        label = "neutral"

    confidence = 0.0 if not tokens else min(1.0, hits / max(1, len(tokens)) * 4)
    return {
        "label": label,
        "score": round((compound + 1) / 2, 4),
        "confidence": round(confidence, 4),
        "compound": round(compound, 4),
    }


class SentimentMetric(MetricPlugin):
    id = "sentiment"
    name = "Sentiment"
    description = "Positive / negative / neutral tone"
    category = MetricCategory.SENTIMENT
    is_default = True

    async def calculate(self, text, input=None, context=None) -> dict:
        return score_sentiment(text)
