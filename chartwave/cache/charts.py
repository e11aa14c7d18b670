"""Per-build cache of located charts.

Maps ``(chart_name, chart_version)`` to the on-disk path the chart resolved
to.  One instance lives for exactly one plan build; entries never expire.

Thread-safety: the lock guards the dict only.  Resolution itself happens
outside the lock, so two releases missing on the same key may both resolve;
the second ``put`` overwrites the first with an equivalent path.
"""

from __future__ import annotations

import threading

from chartwave.observability.logging import get_logger

_log = get_logger("cache.charts")

CacheKey = tuple[str, str]


class ChartCache:
    """Thread-safe ``(name, version) -> path`` map with hit/miss counters."""

    def __init__(self) -> None:
        self._entries: dict[CacheKey, str] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, name: str, version: str) -> str | None:
        """Return the cached path or None, counting the lookup."""
        with self._lock:
            path = self._entries.get((name, version))
            if path is None:
                self._misses += 1
            else:
                self._hits += 1
            return path

    def put(self, name: str, version: str, path: str) -> None:
        with self._lock:
            previous = self._entries.get((name, version))
            self._entries[(name, version)] = path
        if previous is not None and previous != path:
            _log.debug("chart_cache_overwrite", chart=name, version=version, old=previous, new=path)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def hits(self) -> int:
        with self._lock:
            return self._hits

    @property
    def misses(self) -> int:
        with self._lock:
            return self._misses

    def snapshot(self) -> dict[CacheKey, str]:
        """Return a copy of all entries."""
        with self._lock:
            return dict(self._entries)
