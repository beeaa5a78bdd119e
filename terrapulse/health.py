"""In-memory health registry for the admin endpoint.

Counts data source failures and degraded generation tasks, and keeps the
latest response cache statistics. Everything lives in process memory and is
reset on restart.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Mapping, Optional


@dataclass(frozen=True)
class CacheStats:
    """Simple container for cache related counters."""

    hits: int = 0
    misses: int = 0
    keys: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {"hits": self.hits, "misses": self.misses, "keys": self.keys}


class HealthRegistry:
    """Stores source error counters, generation failures and cache stats."""

    def __init__(self) -> None:
        self._source_errors: Dict[str, int] = {}
        self._generation_errors: Dict[str, int] = {}
        self._cache_stats: CacheStats = CacheStats()
        self._last_report_at: Optional[str] = None
        self._lock = Lock()

    # -- Data sources -------------------------------------------------------
    def record_source_error(self, source: str, increment: int = 1) -> None:
        self._increment(self._source_errors, source, increment, "source")

    def drain_source_errors(self) -> Dict[str, int]:
        with self._lock:
            snapshot = dict(self._source_errors)
            self._source_errors.clear()
            return snapshot

    # -- Generation tasks ---------------------------------------------------
    def record_generation_error(self, task: str, increment: int = 1) -> None:
        self._increment(self._generation_errors, task, increment, "task")

    # -- Reports ------------------------------------------------------------
    def record_report(self, when: Optional[datetime] = None) -> None:
        when = when or datetime.now(timezone.utc)
        with self._lock:
            self._last_report_at = self._format_datetime(when)

    # -- Cache stats --------------------------------------------------------
    def set_cache_stats(self, stats: Optional[Mapping[str, int]]) -> None:
        if not stats:
            self._cache_stats = CacheStats()
            return
        hits = int(stats.get("hits", 0))
        misses = int(stats.get("misses", 0))
        keys = int(stats.get("keys", 0))
        self._cache_stats = CacheStats(hits=hits, misses=misses, keys=keys)

    # -- Snapshot -----------------------------------------------------------
    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            sources = dict(self._source_errors)
            tasks = dict(self._generation_errors)
            cache = self._cache_stats.as_dict()
            last_report = self._last_report_at
        return {
            "sources": sources,
            "generation": tasks,
            "cache": cache,
            "last_report_at": last_report,
        }

    def _increment(self, counters: Dict[str, int], name: str, increment: int, label: str) -> None:
        if not name:
            raise ValueError(f"{label} must be provided")
        if increment <= 0:
            raise ValueError("increment must be positive")
        with self._lock:
            counters[name] = counters.get(name, 0) + increment

    @staticmethod
    def _format_datetime(value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()


__all__ = ["CacheStats", "HealthRegistry"]
