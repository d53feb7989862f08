"""
In-memory cached queries for read operations.

A query is identified by a hashable key, normally ``(endpoint, params)``. The
cache serves fresh entries without calling the fetcher, collapses concurrent
fetches of the same key into one, and records fetcher failures on the result
instead of raising them. A ``None`` key means "nothing to fetch yet".
"""

import logging
import threading
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class QueryResult(Generic[T]):
    """
    Snapshot of a cached query.

    :param data: Last successfully fetched value, if any.
    :param error: Exception raised by the most recent fetch, if it failed.
    :param is_loading: ``True`` while a fetch for the key is in flight.
    """

    data: T | None = None
    error: Exception | None = None
    is_loading: bool = False


@dataclass
class _Entry:
    data: Any
    error: Exception | None
    fetched_at: float
    immutable: bool


class QueryCache:
    """
    Thread-safe cache of query results with time-based expiry.

    :param ttl: Seconds an entry stays fresh. ``None`` keeps entries until
        invalidated.
    :param clock: Monotonic time source, injectable for tests.
    :param retain_factor: Entries older than ``ttl * retain_factor`` are
        dropped instead of being kept as stale data. Immutable entries are kept.
    """

    def __init__(
        self,
        ttl: float | None = 60.0,
        clock: Callable[[], float] = time.monotonic,
        retain_factor: float = 10.0,
    ) -> None:
        self.ttl = ttl
        self.retain_factor = retain_factor
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[Hashable, _Entry] = {}
        self._in_flight: set[Hashable] = set()

    def query(
        self,
        key: Hashable | None,
        fetcher: Callable[[], T],
        *,
        immutable: bool = False,
    ) -> QueryResult[T]:
        """
        Return the cached value for ``key``, fetching it when missing or stale.

        :param key: Cache key, or ``None`` to skip fetching entirely.
        :param fetcher: Zero-argument callable producing the value.
        :param immutable: Once fetched successfully, never treat the entry as
            stale.
        """
        if key is None:
            return QueryResult()

        with self._lock:
            self._prune()
            entry = self._entries.get(key)
            if key in self._in_flight:
                return QueryResult(
                    data=entry.data if entry else None,
                    error=entry.error if entry else None,
                    is_loading=True,
                )
            if entry is not None and self._is_fresh(entry):
                logger.debug("Query cache hit for %r", key)
                return QueryResult(data=entry.data)
            self._in_flight.add(key)

        logger.debug("Query cache miss for %r", key)
        stale = entry.data if entry else None
        settled: _Entry | None = None
        try:
            data = fetcher()
            settled = _Entry(data, None, self._clock(), immutable)
        except Exception as err:
            logger.warning("Query for %r failed: %s", key, err)
            settled = _Entry(stale, err, self._clock(), immutable)
        finally:
            with self._lock:
                if settled is not None:
                    self._entries[key] = settled
                self._in_flight.discard(key)

        return QueryResult(data=settled.data, error=settled.error)

    def peek(self, key: Hashable) -> QueryResult[Any]:
        """Return the current state for ``key`` without fetching."""
        with self._lock:
            entry = self._entries.get(key)
            return QueryResult(
                data=entry.data if entry else None,
                error=entry.error if entry else None,
                is_loading=key in self._in_flight,
            )

    def mutate(self, key: Hashable, data: Any) -> None:
        """Replace the cached value for ``key``, e.g. after a successful write."""
        with self._lock:
            previous = self._entries.get(key)
            immutable = previous.immutable if previous else False
            self._entries[key] = _Entry(data, None, self._clock(), immutable)

    def invalidate(self, key: Hashable | None = None) -> None:
        """Drop one entry, or every entry when ``key`` is ``None``."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def _prune(self) -> None:
        # Caller holds the lock.
        if self.ttl is None:
            return
        cutoff = self._clock() - self.ttl * self.retain_factor
        expired = [
            key
            for key, entry in self._entries.items()
            if not entry.immutable
            and entry.fetched_at < cutoff
            and key not in self._in_flight
        ]
        for key in expired:
            del self._entries[key]

    def _is_fresh(self, entry: _Entry) -> bool:
        if entry.error is not None:
            return False
        if entry.immutable or self.ttl is None:
            return True
        return self._clock() - entry.fetched_at < self.ttl
