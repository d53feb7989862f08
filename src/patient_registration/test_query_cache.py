"""
Unit tests for :mod:`patient_registration.query_cache`.
"""

from collections.abc import Callable
from typing import Any

import pytest

from patient_registration.conftest import FakeClock
from patient_registration.query_cache import QueryCache, QueryResult


class CountingFetcher:
    """Fetcher returning successive values and counting its calls."""

    def __init__(self, *values: Any) -> None:
        self.values = list(values)
        self.calls = 0

    def __call__(self) -> Any:
        value = self.values[min(self.calls, len(self.values) - 1)]
        self.calls += 1
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def cache(clock: FakeClock) -> QueryCache:
    return QueryCache(ttl=60.0, clock=clock)


def test_none_key_returns_idle_result_without_fetching(cache: QueryCache) -> None:
    fetcher = CountingFetcher("value")

    result = cache.query(None, fetcher)

    assert result == QueryResult(data=None, error=None, is_loading=False)
    assert fetcher.calls == 0


def test_fresh_entry_is_served_from_cache(cache: QueryCache) -> None:
    fetcher = CountingFetcher("first", "second")

    assert cache.query("key", fetcher).data == "first"
    assert cache.query("key", fetcher).data == "first"
    assert fetcher.calls == 1


def test_stale_entry_is_refetched_after_ttl(
    cache: QueryCache, clock: FakeClock
) -> None:
    fetcher = CountingFetcher("first", "second")
    cache.query("key", fetcher)

    clock.advance(60.0)

    assert cache.query("key", fetcher).data == "second"
    assert fetcher.calls == 2


def test_immutable_entry_never_goes_stale(cache: QueryCache, clock: FakeClock) -> None:
    fetcher = CountingFetcher("first", "second")
    cache.query("key", fetcher, immutable=True)

    clock.advance(10_000.0)

    assert cache.query("key", fetcher, immutable=True).data == "first"
    assert fetcher.calls == 1


def test_no_ttl_keeps_entries_until_invalidated(clock: FakeClock) -> None:
    cache = QueryCache(ttl=None, clock=clock)
    fetcher = CountingFetcher("first", "second")
    cache.query("key", fetcher)
    clock.advance(10_000.0)

    assert cache.query("key", fetcher).data == "first"

    cache.invalidate("key")

    assert cache.query("key", fetcher).data == "second"


def test_keys_are_independent(cache: QueryCache) -> None:
    assert cache.query(("obs", ("patient", "a")), lambda: "a").data == "a"
    assert cache.query(("obs", ("patient", "b")), lambda: "b").data == "b"


def test_fetch_error_is_captured_and_not_raised(cache: QueryCache) -> None:
    error = ConnectionError("backend down")

    result = cache.query("key", CountingFetcher(error))

    assert result.data is None
    assert result.error is error
    assert result.is_loading is False


def test_fetch_error_keeps_stale_data_and_next_query_refetches(
    cache: QueryCache, clock: FakeClock
) -> None:
    error = ConnectionError("backend down")
    fetcher = CountingFetcher("first", error, "third")
    cache.query("key", fetcher)
    clock.advance(61.0)

    failed = cache.query("key", fetcher)
    recovered = cache.query("key", fetcher)

    assert failed == QueryResult(data="first", error=error, is_loading=False)
    assert recovered == QueryResult(data="third")
    assert fetcher.calls == 3


def test_in_flight_key_reports_loading_and_is_not_fetched_twice(
    cache: QueryCache,
) -> None:
    seen: list[QueryResult[Any]] = []
    inner = CountingFetcher("inner")

    def fetcher() -> str:
        seen.append(cache.peek("key"))
        seen.append(cache.query("key", inner))
        return "outer"

    result = cache.query("key", fetcher)

    assert result.data == "outer"
    assert seen[0].is_loading is True
    assert seen[1] == QueryResult(data=None, error=None, is_loading=True)
    assert inner.calls == 0
    assert cache.peek("key").is_loading is False


def test_mutate_replaces_cached_value(cache: QueryCache) -> None:
    fetcher: Callable[[], str] = CountingFetcher("fetched")
    cache.query("key", fetcher)

    cache.mutate("key", "written")

    assert cache.query("key", fetcher).data == "written"


def test_invalidate_without_key_clears_everything(cache: QueryCache) -> None:
    cache.query("a", lambda: 1)
    cache.query("b", lambda: 2)

    cache.invalidate()

    assert cache.peek("a") == QueryResult()
    assert cache.peek("b") == QueryResult()


def test_long_expired_entries_are_dropped(clock: FakeClock) -> None:
    cache = QueryCache(ttl=60.0, clock=clock, retain_factor=10.0)
    cache.query("old", lambda: "old")
    cache.query("sources", lambda: "sources", immutable=True)

    clock.advance(601.0)
    cache.query("new", lambda: "new")

    assert cache.peek("old") == QueryResult()
    assert cache.peek("sources").data == "sources"
    assert cache.peek("new").data == "new"


def test_recently_expired_entries_are_kept_as_stale_data(clock: FakeClock) -> None:
    cache = QueryCache(ttl=60.0, clock=clock, retain_factor=10.0)
    cache.query("old", lambda: "old")

    clock.advance(120.0)
    cache.query("new", lambda: "new")

    assert cache.peek("old").data == "old"
