"""
Cache
Process-wide result cache keyed by normalized subject.
"""
from typing import Any, Callable, Dict, Optional
import copy
import logging
import time

from core import CacheEntry, normalize_subject


logger = logging.getLogger(__name__)

DEFAULT_TTL_S = 24 * 3600


class ResultCache:
    """
    In-memory result cache with lazy TTL expiry.

    Created once per process and passed to the orchestrator. Entries older
    than ``ttl`` are never returned, whether or not they are still resident.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_S,
        max_size: int = 1000,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            ttl: time-to-live in seconds
            max_size: maximum number of subjects kept
            clock: seconds source, ``time.time`` by default
        """
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = float(ttl)
        self.max_size = max(1, int(max_size))
        self._clock = clock or time.time
        self._entries: Dict[str, CacheEntry] = {}

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.stored_at >= self.ttl

    def get(self, subject: str) -> Optional[CacheEntry]:
        key = normalize_subject(subject)
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._is_expired(entry, self._clock()):
            del self._entries[key]
            logger.debug("cache_expired subject=%s", key)
            return None

        return _detached(entry)

    def put(self, subject: str, value: Any) -> CacheEntry:
        """Store ``value`` for ``subject``, replacing any previous entry."""
        key = normalize_subject(subject)
        if not key:
            raise ValueError("subject is required")

        entry = CacheEntry(subject=key, value=copy.deepcopy(value), stored_at=self._clock())
        self._entries.pop(key, None)
        self._entries[key] = entry
        self._evict_overflow()
        logger.debug("cache_put subject=%s", key)
        return _detached(entry)

    def delete(self, subject: str) -> None:
        self._entries.pop(normalize_subject(subject), None)

    def clear(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        """Drop expired entries. Returns the number removed."""
        now = self._clock()
        expired = [k for k, v in self._entries.items() if self._is_expired(v, now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def size(self) -> int:
        return len(self._entries)

    def _evict_overflow(self) -> None:
        # dict preserves insertion order and put() re-inserts, so the head is oldest
        while len(self._entries) > self.max_size:
            oldest = next(iter(self._entries))
            del self._entries[oldest]


def _detached(entry: CacheEntry) -> CacheEntry:
    # callers get their own copy of the value; the stored one stays untouched
    return entry.model_copy(update={"value": copy.deepcopy(entry.value)})
