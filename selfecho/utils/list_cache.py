import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, NamedTuple


class ListCacheKey(NamedTuple):
    status: str
    archive: str
    page: int
    limit: int
    compact: bool

    def __str__(self) -> str:
        return f"s={self.status}|a={self.archive}|p={self.page}|l={self.limit}|c={str(self.compact).lower()}"


@dataclass(frozen=True)
class CachedList:
    items: list[Any]
    total: int
    cached_at: float


@dataclass(frozen=True)
class ListCacheStats:
    entries: int
    hits: int
    misses: int
    ttl_seconds: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class ListCache:
    """TTL cache for paginated listing queries.

    Entries expire lazily on read; there is no background sweeping. Any write to
    the listed entities must call invalidate_all().

    A plain exclusive lock rather than a reader/writer lock: get() updates the
    hit and miss counters, so every read is also a write.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._logger = logging.getLogger(__name__)
        self._ttl = ttl_seconds
        self._clock = clock
        self._data: dict[ListCacheKey, CachedList] = {}
        self._hits = 0
        self._misses = 0
        self._lock = threading.Lock()

    def get(self, key: ListCacheKey) -> CachedList | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None or self._clock() - entry.cached_at > self._ttl:
                self._misses += 1
                return None
            self._hits += 1
            return entry

    def set(self, key: ListCacheKey, items: list[Any], total: int) -> None:
        with self._lock:
            self._data[key] = CachedList(items=list(items), total=total, cached_at=self._clock())

    def invalidate_all(self) -> None:
        with self._lock:
            count = len(self._data)
            self._data = {}
        self._logger.debug(f"List cache invalidated; dropped {count} entries")

    def stats(self) -> ListCacheStats:
        with self._lock:
            return ListCacheStats(
                entries=len(self._data), hits=self._hits, misses=self._misses, ttl_seconds=int(self._ttl)
            )
