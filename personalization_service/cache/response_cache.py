"""
Response cache with TTL expiry, scoped invalidation and per-key single-flight.

Entries live in the ``cache`` namespace of the injected store, so the same
cache works in memory for tests and on disk for a persistent deployment.
Concurrent callers asking for the same missing key share one computation;
callers for different keys never wait on each other.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from ..errors import CacheUnavailable
from ..models import CacheEntry, CacheScope
from ..storage import CACHE, Store

logger = logging.getLogger(__name__)


@dataclass
class CacheLookup:
    hit: bool
    payload: Any = None


class _Flight:
    """One in-progress computation that followers can wait on."""

    def __init__(self):
        self.done = threading.Event()
        self.result: Any = None
        self.error: Optional[BaseException] = None


class ResponseCache:
    """Memoizes generation and recommendation payloads."""

    def __init__(self, store: Store, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock
        self._flights: Dict[str, _Flight] = {}
        self._flights_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._stats = {"hits": 0, "misses": 0, "computations": 0, "coalesced": 0, "errors": 0}

    def _count(self, name: str) -> None:
        with self._stats_lock:
            self._stats[name] += 1

    def _unavailable(self, action: str, key: str, error: Exception) -> None:
        self._count("errors")
        logger.warning(f"{CacheUnavailable.__name__}: {action} failed for {key}: {error}")

    # Basic operations ---------------------------------------------------------

    def get(self, key: str) -> CacheLookup:
        """Look a key up. Expired entries are misses and are removed lazily."""
        try:
            data = self.store.get(CACHE, key)
        except Exception as e:
            self._unavailable("get", key, e)
            return CacheLookup(hit=False)
        if data is None:
            return CacheLookup(hit=False)
        try:
            entry = CacheEntry.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Dropping corrupt cache entry {key}: {e}")
            self._delete(key)
            return CacheLookup(hit=False)
        if entry.is_expired(self.clock()):
            logger.debug(f"Cache entry expired: {key}")
            self._delete(key)
            return CacheLookup(hit=False)
        return CacheLookup(hit=True, payload=entry.payload)

    def _delete(self, key: str) -> None:
        try:
            self.store.delete(CACHE, key)
        except Exception as e:
            self._unavailable("delete", key, e)

    def put(
        self,
        key: str,
        payload: Any,
        ttl: float,
        kind: str = "",
        scope: Optional[CacheScope] = None,
    ) -> bool:
        """Store a payload for ``ttl`` seconds. Returns False when the store is unavailable."""
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        now = self.clock()
        scope = scope or CacheScope()
        entry = CacheEntry(
            key=key,
            payload=payload,
            created_at=now,
            expires_at=now + ttl,
            kind=kind or (scope.kind or ""),
            article_ids=[scope.article_id] if scope.article_id else [],
            user_ids=[scope.user_id] if scope.user_id else [],
        )
        try:
            self.store.put(CACHE, key, entry.to_dict())
            return True
        except Exception as e:
            self._unavailable("put", key, e)
            return False

    # Single-flight ------------------------------------------------------------

    def compute_or_wait(
        self,
        key: str,
        ttl: float,
        compute_fn: Callable[[], Any],
        kind: str = "",
        scope: Optional[CacheScope] = None,
        should_cache: Optional[Callable[[Any], bool]] = None,
    ) -> Tuple[Any, bool]:
        """Return ``(payload, cache_hit)``, computing at most once per key at a time.

        The first caller for a missing key becomes the leader and runs
        ``compute_fn``; concurrent callers for the same key wait for the
        leader and receive its result, or its exception. Results rejected by
        ``should_cache`` are returned but not stored.
        """
        lookup = self.get(key)
        if lookup.hit:
            self._count("hits")
            return lookup.payload, True

        with self._flights_lock:
            flight = self._flights.get(key)
            leader = flight is None
            if leader:
                flight = self._flights[key] = _Flight()

        if not leader:
            self._count("coalesced")
            logger.debug(f"Waiting for in-flight computation of {key}")
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.result, True

        try:
            # Another leader may have finished between our lookup and registration.
            lookup = self.get(key)
            if lookup.hit:
                self._count("hits")
                flight.result = lookup.payload
                return lookup.payload, True

            self._count("misses")
            self._count("computations")
            logger.debug(f"Cache miss, computing {key}")
            result = compute_fn()
            flight.result = result
            if should_cache is None or should_cache(result):
                self.put(key, result, ttl, kind=kind, scope=scope)
            return result, False
        except BaseException as e:
            flight.error = e
            raise
        finally:
            with self._flights_lock:
                self._flights.pop(key, None)
            flight.done.set()

    def in_flight(self, key: str) -> bool:
        with self._flights_lock:
            return key in self._flights

    # Invalidation -------------------------------------------------------------

    def invalidate(self, scope: CacheScope) -> int:
        """Remove every entry matching ``scope``. Returns the number removed."""
        if scope.is_empty():
            return 0

        def matches(value: Dict[str, Any]) -> bool:
            try:
                return scope.matches(CacheEntry.from_dict(value))
            except (KeyError, TypeError, ValueError):
                return False

        try:
            matching = self.store.query(CACHE, matches)
        except Exception as e:
            self._unavailable("invalidate", repr(scope), e)
            return 0

        removed = 0
        for key, _ in matching:
            try:
                if self.store.delete(CACHE, key):
                    removed += 1
            except Exception as e:
                self._unavailable("delete", key, e)
        logger.info(f"Invalidated {removed} cache entries for {scope}")
        return removed

    def sweep_expired(self) -> int:
        """Delete all expired entries. Returns the number removed."""
        now = self.clock()
        try:
            expired = self.store.query(CACHE, lambda v: float(v.get("expires_at", 0)) <= now)
        except Exception as e:
            self._unavailable("sweep", "*", e)
            return 0
        removed = 0
        for key, _ in expired:
            try:
                if self.store.delete(CACHE, key):
                    removed += 1
            except Exception as e:
                self._unavailable("delete", key, e)
        if removed:
            logger.debug(f"Swept {removed} expired cache entries")
        return removed

    def stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            stats = dict(self._stats)
        with self._flights_lock:
            stats["in_flight"] = len(self._flights)
        try:
            stats["entries"] = len(list(self.store.keys(CACHE)))
        except Exception as e:
            self._unavailable("stats", "*", e)
            stats["entries"] = None
        return stats
