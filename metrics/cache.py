"""
In-memory TTL cache for metric evaluation results.

Key = hash of (text, metric selection, disabled set, reference text), so the
same output evaluated with the same metrics is computed once. Entries live for
`ttl` seconds (default 15 min); expired entries are swept at most every
`check_period` seconds (default 5 min), lazily on the next access.

The cache is an optimization only: values are deep-copied on the way in and
out, so a caller mutating its result can never change what the next caller
gets, and evaluation with the cache disabled returns the same values.
"""

import copy
import hashlib
import json
import logging
import time
from typing import Any, Callable, Iterable, Optional

from config.settings import settings
from metrics.base import MetricSelection

logger = logging.getLogger(__name__)


def _digest(data: str, length: int) -> str:
    return hashlib.sha256(data.encode("utf-8")).hexdigest()[:length]


def make_cache_key(
    text: str,
    selections: Iterable[MetricSelection],
    disabled: Iterable[str],
    reference_text: Optional[str] = None,
) -> str:
    ordered = sorted(
        ({"id": s.id, "input": s.input} for s in selections),
        key=lambda s: (s["id"], s["input"] or ""),
    )
    text_hash = _digest(text, 16)
    metrics_hash = _digest(json.dumps(ordered, sort_keys=True), 16)
    disabled_hash = _digest(json.dumps(sorted(disabled)), 8)
    ref_hash = _digest(reference_text, 8) if reference_text else "none"
    return f"metrics:{text_hash}:{metrics_hash}:{disabled_hash}:{ref_hash}"


class MetricsCache:

    def __init__(
        self,
        ttl: Optional[float] = None,
        check_period: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = settings.METRICS_CACHE_TTL if ttl is None else ttl
        self.check_period = settings.METRICS_CACHE_CHECK_PERIOD if check_period is None else check_period
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._last_sweep = clock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        self._maybe_sweep()
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        expires_at, value = entry
        if expires_at <= self._clock():
            del self._entries[key]
            self.misses += 1
            return None

        self.hits += 1
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        self._maybe_sweep()
        self._entries[key] = (self._clock() + self.ttl, copy.deepcopy(value))

    def sweep(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self._clock()
        expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._last_sweep = now
        if expired:
            logger.debug(f"Metrics cache sweep removed {len(expired)} entries")
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def stats(self) -> dict:
        return {"keys": len(self._entries), "hits": self.hits, "misses": self.misses}

    def __len__(self) -> int:
        return len(self._entries)

    def _maybe_sweep(self) -> None:
        if self._clock() - self._last_sweep >= self.check_period:
            self.sweep()
