import threading
import time
from collections import OrderedDict


class CacheMetrics:
    """Hit, miss and eviction counters. Safe to update from several threads."""

    hits: int
    misses: int
    evictions: int
    _lock: threading.Lock

    def __init__(self):
        self._lock = threading.Lock()
        self.reset()

    def _bump(self, counter: str):
        with self._lock:
            setattr(self, counter, getattr(self, counter) + 1)

    def record_hit(self):
        self._bump("hits")

    def record_miss(self):
        self._bump("misses")

    def record_eviction(self):
        self._bump("evictions")

    def hit_rate(self) -> float:
        """Percentage (0-100) of lookups that were served from the cache."""
        with self._lock:
            lookups = self.hits + self.misses
            return 100 * self.hits / lookups if lookups else 0.0

    def as_dict(self) -> dict[str, float]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate": round(self.hit_rate(), 1),
        }

    def reset(self):
        with self._lock:
            self.hits = 0
            self.misses = 0
            self.evictions = 0


class SimpleCache[VT, *KTs]:
    """
    In-memory cache keyed by a tuple of query values.

    Entries expire after the ttl passed to `get`, so different callers can
    accept different ages for the same entry. When `maxsize` is set, the
    least recently used entry is dropped once the cache grows past it.
    """

    _entries: OrderedDict[tuple[*KTs], tuple[float, VT]]
    _lock: threading.Lock
    _maxsize: int | None
    _metrics: CacheMetrics

    def __init__(self, maxsize: int | None = None):
        self._entries = OrderedDict()
        self._lock = threading.Lock()
        self._maxsize = maxsize
        self._metrics = CacheMetrics()

    def get(self, ttl: int, *query: *KTs) -> VT | None:
        with self._lock:
            entry = self._entries.get(query)
            if entry is not None and time.monotonic() - entry[0] > ttl:
                del self._entries[query]
                entry = None

            if entry is None:
                self._metrics.record_miss()
                return None

            self._entries.move_to_end(query)
            self._metrics.record_hit()
            return entry[1]

    def set(self, value: VT, *query: *KTs):
        with self._lock:
            self._entries[query] = (time.monotonic(), value)
            self._entries.move_to_end(query)
            while self._maxsize is not None and len(self._entries) > self._maxsize:
                self._entries.popitem(last=False)
                self._metrics.record_eviction()

    def flush(self):
        with self._lock:
            self._entries.clear()

    def get_metrics(self) -> CacheMetrics:
        return self._metrics

    def size(self) -> int:
        with self._lock:
            return len(self._entries)
