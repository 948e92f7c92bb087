"""In-memory computation cache for indicator snapshots.

Snapshots are keyed by symbol, timeframe and a cheap fingerprint of the
candle window (length, first and last timestamps, last close). Appending
a candle always changes the fingerprint, so new data never reuses a
stale entry.

When the cache grows past ``max_entries`` the oldest ``evict_fraction`` of
entries (by insertion time) are removed in one pass.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from signal_core.models.candle import CandleSeries
from signal_core.models.signal import IndicatorSnapshot

logger = logging.getLogger(__name__)

# Default capacity across all symbol/timeframe pairs
DEFAULT_MAX_ENTRIES = 80
# Fraction of entries dropped when capacity is exceeded
DEFAULT_EVICT_FRACTION = 0.25

Fingerprint = tuple[int, float, float, float]
CacheKey = tuple[str, str, Fingerprint]


def fingerprint(series: CandleSeries) -> Fingerprint:
    """Derive the cache fingerprint of a candle window."""
    if not series.candles:
        return (0, 0.0, 0.0, 0.0)
    first = series.candles[0]
    last = series.candles[-1]
    return (
        len(series.candles),
        first.timestamp.timestamp(),
        last.timestamp.timestamp(),
        last.close,
    )


@dataclass(frozen=True, slots=True)
class CacheEntry:
    fingerprint: Fingerprint
    computed_at: float
    sequence: int
    snapshot: IndicatorSnapshot


class ComputationCache:
    """Read-through, capacity-bounded snapshot cache."""

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        evict_fraction: float = DEFAULT_EVICT_FRACTION,
    ):
        self.max_entries = max_entries
        self.evict_fraction = evict_fraction
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._sequence = 0
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(symbol: str, timeframe: str, series: CandleSeries) -> CacheKey:
        return (symbol, timeframe, fingerprint(series))

    def get(self, key: CacheKey) -> IndicatorSnapshot | None:
        with self._lock:
            entry = self._entries.get(key)
            return entry.snapshot if entry else None

    def put(self, key: CacheKey, snapshot: IndicatorSnapshot) -> None:
        with self._lock:
            self._sequence += 1
            self._entries[key] = CacheEntry(
                fingerprint=key[2],
                computed_at=time.monotonic(),
                sequence=self._sequence,
                snapshot=snapshot,
            )
            if len(self._entries) > self.max_entries:
                self._evict_oldest()

    def get_or_compute(
        self, key: CacheKey, compute: Callable[[], IndicatorSnapshot]
    ) -> IndicatorSnapshot:
        """Return the cached snapshot, computing and storing it on a miss."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self.hits += 1
            else:
                self.misses += 1

        if entry is not None:
            logger.debug("Snapshot cache hit for %s %s", key[0], key[1])
            return entry.snapshot

        snapshot = compute()
        self.put(key, snapshot)
        return snapshot

    def _evict_oldest(self) -> int:
        """Remove the oldest fraction of entries.

        Note: Must be called while holding _lock.

        Returns:
            Number of entries removed
        """
        count = max(1, int(len(self._entries) * self.evict_fraction))
        oldest = sorted(
            self._entries,
            key=lambda k: (self._entries[k].computed_at, self._entries[k].sequence),
        )[:count]
        for key in oldest:
            del self._entries[key]
        logger.debug("Evicted %d snapshot cache entries", count)
        return count

    def invalidate(self, symbol: str, timeframe: str) -> int:
        """Drop every entry for a symbol/timeframe pair."""
        with self._lock:
            keys = [k for k in self._entries if k[0] == symbol and k[1] == timeframe]
            for key in keys:
                del self._entries[key]
            return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict:
        with self._lock:
            size = len(self._entries)
            hits, misses = self.hits, self.misses
        total = hits + misses
        return {
            "size": size,
            "max_entries": self.max_entries,
            "hits": hits,
            "misses": misses,
            "hit_rate": hits / total if total else 0.0,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
