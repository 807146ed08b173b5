"""
In-memory TTL cache for computed analytics results.

Entries are keyed ``"<calculation>:<scope>:<period>"`` so that every result
belonging to one account (scope) can be dropped when its transactions change,
and results computed for the ``global`` scope can be dropped together.

Design principles:
- Thread-safe (``threading.Lock`` around every mutation)
- Expired entries are removed lazily on read
- Independent of the calculators; callers decide what to cache
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from threading import Lock
from typing import Any, TypeVar

from folio_analytics.common.cache_config import CacheTTL
from folio_analytics.observability.logging import CalculationLogger

logger = logging.getLogger(__name__)

T = TypeVar("T")

GLOBAL_SCOPE = "global"

SCOPE_EVENTS = frozenset({"transaction_created", "transaction_updated", "transaction_deleted"})
GLOBAL_EVENTS = frozenset({"account_updated"})


@dataclass(frozen=True)
class CacheStats:
    entries: int
    hits: int
    misses: int
    invalidations: int
    hit_rate: float
    uptime_seconds: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": self.entries,
            "hits": self.hits,
            "misses": self.misses,
            "invalidations": self.invalidations,
            "hit_rate": self.hit_rate,
            "uptime_seconds": self.uptime_seconds,
        }


@dataclass
class _Entry:
    value: Any
    expires_at: float
    scope: str | None = None


def _scope_of(key: str) -> str | None:
    parts = key.split(":", 2)
    return parts[1] if len(parts) == 3 else None


class PerformanceCache:
    """Thread-safe TTL cache for analytics results.

    Concurrent ``get_or_compute`` calls for the same missing key run
    ``compute`` once; the other callers wait for that value.

    Args:
        ttl: Per-calculation TTL configuration.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        ttl: CacheTTL | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl or CacheTTL.from_env()
        self._clock = clock
        self._lock = Lock()
        self._entries: dict[str, _Entry] = {}
        self._inflight: dict[str, Lock] = {}
        self._hits = 0
        self._misses = 0
        self._invalidations = 0
        self._started_at = clock()

    @staticmethod
    def cache_key(calculation: str, scope_id: str | int, period: str) -> str:
        return f"{calculation}:{scope_id}:{period}"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, key: str) -> Any | None:
        """Return the cached value, or *None* if missing / expired."""
        with self._lock:
            value = self._lookup(key)
            if value is None:
                self._misses += 1
                logger.debug("Cache miss for %s", key)
                return None
            self._hits += 1
            logger.debug("Cache hit for %s", key)
            return value

    def put(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Store a value; the TTL defaults to the calculation type's TTL."""
        self._store(key, _scope_of(key), value, ttl_seconds)

    def get_or_compute(
        self,
        calculation: str,
        scope_id: str | int,
        period: str,
        compute: Callable[[], T],
        ttl_seconds: int | None = None,
    ) -> T:
        """Return the cached result or compute, store and return it.

        Exceptions raised by ``compute`` propagate and nothing is stored.
        """
        key = self.cache_key(calculation, scope_id, period)
        cached = self.get(key)
        if cached is not None:
            return cached

        with self._lock:
            key_lock = self._inflight.setdefault(key, Lock())
        with key_lock:
            with self._lock:
                cached = self._lookup(key)
                if cached is not None:
                    self._hits += 1
            if cached is not None:
                logger.debug("Cache filled by concurrent caller for %s", key)
                return cached
            try:
                started = self._clock()
                value = compute()
                self._store(key, str(scope_id), value, ttl_seconds)
            finally:
                with self._lock:
                    if self._inflight.get(key) is key_lock:
                        del self._inflight[key]
        CalculationLogger(logger, calculation, scope_id).debug(
            "Computed %s in %.3fs", key, self._clock() - started
        )
        return value

    def invalidate_scope(self, scope_id: str | int) -> int:
        """Drop every entry belonging to ``scope_id``.  Returns number removed."""
        scope = str(scope_id)
        with self._lock:
            doomed = [key for key, entry in self._entries.items() if entry.scope == scope]
            for key in doomed:
                del self._entries[key]
            self._invalidations += len(doomed)
        logger.info("Cache invalidated: %d entries removed (scope=%s)", len(doomed), scope_id)
        return len(doomed)

    def invalidate_global(self) -> int:
        """Drop every entry computed for the global scope."""
        return self.invalidate_scope(GLOBAL_SCOPE)

    def handle_event(self, event: str, payload: Mapping[str, Any] | None = None) -> int:
        """React to a domain event by invalidating the affected entries."""
        if event in SCOPE_EVENTS:
            scope_id = (payload or {}).get("account_id")
            if scope_id is None:
                logger.warning("Ignoring %s event without account_id", event)
                return 0
            return self.invalidate_scope(scope_id)
        if event in GLOBAL_EVENTS:
            return self.invalidate_global()
        return 0

    def clear_all(self) -> int:
        """Remove every entry.  Returns number removed."""
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        logger.info("Cache cleared: %d entries removed", removed)
        return removed

    def stats(self) -> CacheStats:
        with self._lock:
            total = self._hits + self._misses
            hit_rate = round(self._hits / total * 100, 2) if total else 0.0
            return CacheStats(
                entries=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                invalidations=self._invalidations,
                hit_rate=hit_rate,
                uptime_seconds=self._clock() - self._started_at,
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lookup(self, key: str) -> Any | None:
        # Caller holds self._lock.
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            logger.debug("Cache entry expired for %s", key)
            return None
        return entry.value

    def _store(self, key: str, scope: str | None, value: Any, ttl_seconds: int | None) -> None:
        resolved_ttl = ttl_seconds if ttl_seconds is not None else self._ttl.ttl_for(key.split(":", 1)[0])
        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + resolved_ttl, scope=scope)
