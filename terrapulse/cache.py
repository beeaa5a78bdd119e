from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from .entities import Location, QualityGrade, Report, format_timestamp


@dataclass(frozen=True)
class CacheEntry:
    key: str
    report: Report
    inserted_at: float


def cache_key(location: Location, last_updated: datetime, precision: int = 3) -> str:
    """Key for a location at a given snapshot freshness marker.

    Coordinates are rounded so nearby queries against the same underlying
    data share one entry.
    """
    marker = format_timestamp(last_updated)
    return f"report:{location.lat:.{precision}f}:{location.lng:.{precision}f}:{marker}"


class ResponseCache:
    """Bounded TTL cache of finished reports.

    Entries expire ``ttl`` seconds after insertion regardless of access and
    are evicted lazily on lookup. When more than ``max_entries`` are held the
    oldest-inserted entry goes first (insertion order, not LRU).
    """

    def __init__(self, ttl: float = 300.0, max_entries: int = 100, time_func=time.monotonic) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.ttl = ttl
        self.max_entries = max_entries
        self._time_func = time_func
        self._storage: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[Report]:
        with self._lock:
            entry = self._storage.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._time_func() - entry.inserted_at >= self.ttl:
                del self._storage[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.report

    def put(self, key: str, report: Report) -> bool:
        if not report.metadata.cacheable or report.metadata.data_quality == QualityGrade.POOR:
            return False
        with self._lock:
            self._storage.pop(key, None)
            self._storage[key] = CacheEntry(key=key, report=report, inserted_at=self._time_func())
            while len(self._storage) > self.max_entries:
                self._storage.popitem(last=False)
        return True

    def keys(self):
        with self._lock:
            return list(self._storage)

    def clear(self) -> None:
        with self._lock:
            self._storage.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"hits": self._hits, "misses": self._misses, "keys": len(self._storage)}

    def __len__(self) -> int:
        with self._lock:
            return len(self._storage)


__all__ = ["CacheEntry", "ResponseCache", "cache_key"]
