"""Tokenizing helpers shared by the built-in plugins."""

import re

_WORD_RE = re.compile(r"[A-Za-z0-9']+")
_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]*")
_VOWEL_GROUP_RE = re.compile(r"[aeiouy]+")


def words(text: str) -> list[str]:
    return _WORD_RE.findall(text)


def sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_RE.findall(text) if s.strip()]


def count_syllables(word: str) -> int:
    """Vowel-group heuristic, silent trailing 'e' dropped; every word has at least one."""
    word = word.lower()
    groups = len(_VOWEL_GROUP_RE.findall(word))
    if word.endswith("e") and not word.endswith("le") and groups > 1:
        groups -= 1
    return max(1, groups)


def word_set(text: str) -> set[str]:
    return {w.lower() for w in words(text)}


def parse_keywords(raw: str) -> list[str]:
    """'alpha, beta ,, gamma' → ['alpha', 'beta', 'gamma']"""
    return [k.strip() for k in raw.split(",") if k.strip()]
