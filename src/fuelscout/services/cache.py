"""Short-lived request cache for harvested station lists."""

import logging
import threading
import time
from typing import Callable, Dict, Optional

from ..config import settings
from ..models.domain import CacheEntry, Station

logger = logging.getLogger(__name__)


def cache_key(lat, lng) -> str:
    """Key built from the coordinates as supplied, not normalized."""
    return f"stations:{lat}:{lng}"


class RequestCache:
    """
    Thread-safe TTL cache of raw station lists keyed by origin.

    Entries older than the freshness window are discarded on read, and every
    write sweeps out all stale entries. Writes are last-writer-wins per key.
    Rankings are never cached here since they depend on the caller's
    preferences.
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.time):
        self.ttl_seconds = settings.cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()

    def get(self, lat, lng) -> Optional[CacheEntry]:
        key = cache_key(lat, lng)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            age = self._clock() - entry.fetched_at
            if age >= self.ttl_seconds:
                del self._entries[key]
                logger.debug(f"Discarded stale cache entry {key} (age {age:.0f}s)")
                return None
            return entry

    def _sweep(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if now - entry.fetched_at >= self.ttl_seconds]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def set(self, lat, lng, stations: list[Station], fetched_at: Optional[float] = None) -> CacheEntry:
        """Store a station list, dropping every entry that has gone stale."""
        now = self._clock()
        entry = CacheEntry(stations=list(stations), fetched_at=now if fetched_at is None else fetched_at)
        with self._lock:
            swept = self._sweep(now)
            self._entries[cache_key(lat, lng)] = entry
        if swept:
            logger.debug(f"Swept {swept} stale cache entries")
        return entry

    def invalidate(self, lat, lng) -> bool:
        with self._lock:
            return self._entries.pop(cache_key(lat, lng), None) is not None

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
