"""In-process LRU + TTL cache of finished answers."""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
import logging
import re
import threading
import time

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


@dataclass
class CacheEntry:
    key: str
    value: Any
    inserted_at: float


class ResponseCache:
    """Bounded answer cache keyed by normalized question and user context.

    Entries expire ``ttl_seconds`` after insertion and are removed lazily on
    access. At capacity the least recently used entry is evicted.
    """

    def __init__(
        self,
        capacity: int = 50,
        ttl_seconds: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity < 1:
            raise ValueError("Cache capacity must be at least 1")
        self.capacity = capacity
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expired = 0

    @staticmethod
    def make_key(question: str, user_context: Optional[str] = None) -> str:
        normalized = _WHITESPACE.sub(" ", (question or "").strip().lower())
        return f"{normalized}|{user_context or ''}"

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.inserted_at > self.ttl_seconds

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                logger.info(f"Response cache MISS: {key}")
                return None
            if self._is_expired(entry):
                del self._entries[key]
                self.expired += 1
                self.misses += 1
                logger.info(f"Response cache EXPIRED: {key}")
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            logger.info(f"Response cache HIT: {key}")
            return entry.value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            self._entries[key] = CacheEntry(key, value, self._clock())
            while len(self._entries) > self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                self.evictions += 1
                logger.debug(f"Response cache evicted: {evicted}")

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def clear_by_prefix(self, prefix: str) -> int:
        """Remove every entry whose key starts with ``prefix``."""
        with self._lock:
            keys = [k for k in self._entries if k.startswith(prefix)]
            for k in keys:
                del self._entries[k]
            return len(keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            entry = self._entries.get(key)  # type: ignore[arg-type]
            return entry is not None and not self._is_expired(entry)

    def get_cache_stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self.hits + self.misses
            return {
                "size": len(self._entries),
                "capacity": self.capacity,
                "hits": self.hits,
                "misses": self.misses,
                "evictions": self.evictions,
                "expired": self.expired,
                "hit_ratio": self.hits / total if total else 0.0,
            }
