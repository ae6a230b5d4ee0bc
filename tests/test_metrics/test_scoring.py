"""Tests for the derived average score."""

import pytest

from metrics.scoring import AVG_SCORE_KEY, calculate_average_score, with_average_score


def test_average_over_normalized_metrics():
    score = calculate_average_score({"flesch_reading_ease": 80, "sentiment": 0.5, "precision": 0.9})
    assert score == pytest.approx((0.8 + 0.75 + 0.9) / 3)


def test_empty_metrics_score_zero():
    assert calculate_average_score({}) == 0.0


def test_unrelated_and_non_numeric_values_are_ignored():
    metrics = {"word_count": 120, "recall": "high", "f_score": None, "precision": 0.5}
    assert calculate_average_score(metrics) == 0.5


def test_booleans_do_not_count_as_numbers():
    assert calculate_average_score({"precision": True}) == 0.0


def test_sentiment_dict_uses_compound():
    metrics = {"sentiment": {"label": "negative", "score": 0.0, "compound": -1.0}}
    assert calculate_average_score(metrics) == 0.0

    metrics = {"sentiment": {"label": "neutral"}}
    assert calculate_average_score(metrics) == 0.0


def test_with_average_score_keeps_raw_values():
    raw = {"flesch_reading_ease": 50, "word_count": 3}
    bag = with_average_score(raw)

    assert bag[AVG_SCORE_KEY] == pytest.approx(0.5)
    assert bag["word_count"] == 3
    assert AVG_SCORE_KEY not in raw
