"""
Derived average score stored next to a completed job's metrics.

Only a fixed set of metrics takes part, each rescaled to [0, 1]:

    flesch_reading_ease   0..100  → x / 100
    sentiment            -1..1    → (x + 1) / 2
    precision, recall, f_score    → as-is

`sentiment` counts when it is a number, or a dict with a numeric "compound"
(the shape the built-in sentiment plugin produces). Anything missing or
non-numeric is skipped; with nothing to average the score is 0.
"""

from typing import Any, Optional

AVG_SCORE_KEY = "avg_score"


def _number(value: Any) -> Optional[float]:
    # bool is an int subclass; True must not count as 1.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _sentiment_compound(value: Any) -> Optional[float]:
    if isinstance(value, dict):
        return _number(value.get("compound"))
    return _number(value)


def calculate_average_score(metrics: dict) -> float:
    scores: list[float] = []

    flesch = _number(metrics.get("flesch_reading_ease"))
    if flesch is not None:
        scores.append(flesch / 100)

    sentiment = _sentiment_compound(metrics.get("sentiment"))
    if sentiment is not None:
        scores.append((sentiment + 1) / 2)

    for key in ("precision", "recall", "f_score"):
        value = _number(metrics.get(key))
        if value is not None:
            scores.append(value)

    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def with_average_score(metrics: dict) -> dict:
    """Copy of `metrics` with avg_score added; the raw values are untouched."""
    return {**metrics, AVG_SCORE_KEY: calculate_average_score(metrics)}
