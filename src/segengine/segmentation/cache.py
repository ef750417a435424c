"""
Memoization for segment-membership results.

Entries are written once and never updated in place. They leave the
cache by expiring (optional TTL) or by a wholesale :meth:`clear`, which
the segment store performs on every catalog mutation.

A clear advances the cache generation. Writers capture the generation
before computing a value and pass it to :meth:`put`; a write whose
generation is stale is dropped, so a computation that raced a clear can
never reinsert a result derived from the old catalog.
"""

import threading
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Generic, TypeVar

import structlog

logger = structlog.get_logger()

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    """A cached value with optional expiry."""

    value: V
    stored_at: datetime
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


@dataclass
class CacheStats:
    """Counters for cache behaviour."""

    hits: int = 0
    misses: int = 0
    writes: int = 0
    stale_writes: int = 0
    expirations: int = 0
    clears: int = 0


class MembershipCache(Generic[K, V]):
    """Thread-safe TTL cache with generation-guarded wholesale invalidation."""

    def __init__(
        self,
        name: str,
        *,
        ttl_seconds: float | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._name = name
        self._ttl = timedelta(seconds=ttl_seconds) if ttl_seconds else None
        self._clock = clock
        self._entries: dict[K, CacheEntry[V]] = {}
        self._generation = 0
        self._lock = threading.RLock()
        self._stats = CacheStats()
        self._log = logger.bind(component="membership_cache", cache=name)

    @property
    def name(self) -> str:
        return self._name

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def stats(self) -> CacheStats:
        return self._stats

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: K) -> bool:
        return self.get(key, record=False) is not None

    def get(self, key: K, *, record: bool = True) -> V | None:
        """Return the live value for ``key``, or ``None``."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_expired(self._clock()):
                del self._entries[key]
                self._stats.expirations += 1
                entry = None

            if record:
                if entry is None:
                    self._stats.misses += 1
                else:
                    self._stats.hits += 1

            return entry.value if entry is not None else None

    def put(self, key: K, value: V, *, generation: int | None = None) -> bool:
        """
        Store ``value`` under ``key``.

        Returns False (and stores nothing) if ``generation`` is given and a
        clear has happened since it was read.
        """
        with self._lock:
            if generation is not None and generation != self._generation:
                self._stats.stale_writes += 1
                self._log.debug("stale_write_dropped", generation=generation)
                return False

            now = self._clock()
            expires_at = now + self._ttl if self._ttl is not None else None
            self._entries[key] = CacheEntry(value=value, stored_at=now, expires_at=expires_at)
            self._stats.writes += 1
            return True

    def clear(self) -> int:
        """Drop every entry and advance the generation."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._generation += 1
            self._stats.clears += 1
        self._log.debug("cache_cleared", removed=count)
        return count

    def purge_expired(self) -> int:
        """Remove expired entries eagerly. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
            self._stats.expirations += len(expired)
            return len(expired)
