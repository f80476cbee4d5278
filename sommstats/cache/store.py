"""
Process-wide store of expiring feed caches.

Each CacheFeed owns one TimedEntry guarded by its own readers-writer lock,
so a balance write never blocks an auction read. Installed values are never
mutated afterwards: writers always swap in a new dict. That lets readers get
a read-only view without copying.
"""
import logging
import time
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from .core import CacheFeed, TimedEntry
from .locks import ReadWriteLock
from ..errors import CacheUnpopulatedError

logger = logging.getLogger("cache.store")


class CacheStore:
    """
    Holds one TimedEntry per CacheFeed.

    Build one at startup and hand it to the scheduler, refreshers and HTTP
    handlers. Every entry starts empty and stale.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._entries: Dict[CacheFeed, TimedEntry[Dict[Any, Any]]] = {
            feed: TimedEntry(value={}, clock=clock) for feed in CacheFeed
        }
        self._locks: Dict[CacheFeed, ReadWriteLock] = {
            feed: ReadWriteLock() for feed in CacheFeed
        }

    def read(self, feed: CacheFeed) -> Mapping[Any, Any]:
        """Read-only view of the feed's current value."""
        with self._locks[feed].read_locked():
            return MappingProxyType(self._entries[feed].value)

    def write(self, feed: CacheFeed, value: Mapping[Any, Any], ttl_seconds: float) -> None:
        """Replace the feed's value and reset its expiration in one step."""
        new_value = dict(value)
        with self._locks[feed].write_locked():
            entry = self._entries[feed]
            entry.value = new_value
            entry.set_expiration(ttl_seconds)
        logger.debug(f"Wrote {feed.value} ({len(new_value)} entries, ttl={ttl_seconds}s)")

    def merge(self, feed: CacheFeed, updates: Mapping[Any, Any], ttl_seconds: float) -> None:
        """
        Overlay ``updates`` on the feed's value and reset its expiration.

        Used by writers that each own a subset of a shared mapping, such as
        the balance refreshers.
        """
        with self._locks[feed].write_locked():
            entry = self._entries[feed]
            new_value = dict(entry.value)
            new_value.update(updates)
            entry.value = new_value
            entry.set_expiration(ttl_seconds)
        logger.debug(f"Merged {len(updates)} keys into {feed.value}")

    def seed(self, feed: CacheFeed, updates: Mapping[Any, Any]) -> None:
        """Overlay ``updates`` without touching the expiration (snapshot restore)."""
        with self._locks[feed].write_locked():
            entry = self._entries[feed]
            new_value = dict(entry.value)
            new_value.update(updates)
            entry.value = new_value

    def is_stale(self, feed: CacheFeed) -> bool:
        with self._locks[feed].read_locked():
            return self._entries[feed].is_stale()

    def is_populated(self, feed: CacheFeed) -> bool:
        """True once any refresh has written the feed."""
        with self._locks[feed].read_locked():
            return self._entries[feed].is_populated

    def is_empty(self, feed: CacheFeed) -> bool:
        with self._locks[feed].read_locked():
            return not self._entries[feed].value

    def expires_at(self, feed: CacheFeed) -> float:
        with self._locks[feed].read_locked():
            return self._entries[feed].expires_at

    def get(self, feed: CacheFeed, key: Any) -> Optional[Any]:
        with self._locks[feed].read_locked():
            return self._entries[feed].value.get(key)

    def require(self, feed: CacheFeed, keys: Iterable[Any]) -> Dict[Any, Any]:
        """
        Fetch several keys from one feed under a single read lock.

        Raises:
            CacheUnpopulatedError: For the first key that was never written
        """
        with self._locks[feed].read_locked():
            value = self._entries[feed].value
            result = {}
            for key in keys:
                if key not in value:
                    raise CacheUnpopulatedError(str(key))
                result[key] = value[key]
            return result

    def stats(self) -> Dict[str, Any]:
        """Size and freshness of every feed."""
        result = {}
        for feed in CacheFeed:
            with self._locks[feed].read_locked():
                entry = self._entries[feed]
                result[feed.value] = {
                    "entries": len(entry.value),
                    "stale": entry.is_stale(),
                    "expires_in": round(entry.seconds_to_expiry, 1),
                    "last_updated": entry.updated_at,
                }
        return result
