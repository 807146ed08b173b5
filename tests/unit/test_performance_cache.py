"""Unit tests for the analytics result cache."""

from __future__ import annotations

import threading
import time
from decimal import Decimal

import pytest

from folio_analytics import PerformanceCache
from folio_analytics.common import CacheTTL


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> PerformanceCache:
    return PerformanceCache(CacheTTL(), clock=clock)


class TestPerformanceCache:
    def test_cache_key_format(self) -> None:
        assert PerformanceCache.cache_key("twr", 42, "1y") == "twr:42:1y"

    def test_put_and_get(self, cache) -> None:
        cache.put("twr:1:ytd", Decimal("12.34"))

        assert cache.get("twr:1:ytd") == Decimal("12.34")
        assert cache.get("twr:2:ytd") is None

    def test_entries_expire_by_category(self, cache, clock) -> None:
        cache.put("drawdown:1:all", "dd")
        cache.put("optimization:global:frontier", "frontier")

        clock.advance(1800)

        assert cache.get("drawdown:1:all") is None
        assert cache.get("optimization:global:frontier") == "frontier"

    def test_explicit_ttl(self, cache, clock) -> None:
        cache.put("twr:1:ytd", "value", ttl_seconds=10)
        clock.advance(9)
        assert cache.get("twr:1:ytd") == "value"
        clock.advance(1)
        assert cache.get("twr:1:ytd") is None

    def test_get_or_compute_runs_once(self, cache) -> None:
        calls: list[int] = []

        def compute() -> Decimal:
            calls.append(1)
            return Decimal("5.00")

        first = cache.get_or_compute("mwr", "acct", "1y", compute)
        second = cache.get_or_compute("mwr", "acct", "1y", compute)

        assert first == second == Decimal("5.00")
        assert len(calls) == 1

    def test_get_or_compute_does_not_store_failures(self, cache) -> None:
        def compute() -> Decimal:
            raise ValueError("boom")

        with pytest.raises(ValueError):
            cache.get_or_compute("twr", 1, "ytd", compute)
        assert cache.stats().entries == 0

    def test_concurrent_callers_compute_once(self, cache) -> None:
        calls: list[int] = []
        barrier = threading.Barrier(4)
        results: list[Decimal] = []

        def slow_compute() -> Decimal:
            calls.append(1)
            time.sleep(0.05)
            return Decimal("7.50")

        def worker() -> None:
            barrier.wait()
            results.append(cache.get_or_compute("twr", "acct-1", "12m", slow_compute))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(calls) == 1
        assert results == [Decimal("7.50")] * 4
        assert cache.stats().entries == 1

    def test_failed_compute_lets_next_caller_retry(self, cache) -> None:
        def broken() -> Decimal:
            raise ValueError("boom")

        with pytest.raises(ValueError):
            cache.get_or_compute("twr", 1, "ytd", broken)

        assert cache.get_or_compute("twr", 1, "ytd", lambda: Decimal("1.00")) == Decimal("1.00")

    def test_invalidate_scope(self, cache) -> None:
        cache.put("twr:1:ytd", 1)
        cache.put("mwr:1:ytd", 2)
        cache.put("twr:10:ytd", 3)

        removed = cache.invalidate_scope(1)

        assert removed == 2
        assert cache.get("twr:10:ytd") == 3

    def test_invalidate_scope_ignores_colons_in_period(self, cache) -> None:
        cache.get_or_compute("twr", "1", "2023-01:7:ytd", lambda: 1)
        cache.put("mwr:1:q:7:x", 2)
        cache.get_or_compute("twr", "7", "ytd", lambda: 3)

        assert cache.invalidate_scope(7) == 1
        assert cache.get("twr:1:2023-01:7:ytd") == 1
        assert cache.get("mwr:1:q:7:x") == 2

    def test_transaction_events_invalidate_account(self, cache) -> None:
        cache.put("twr:7:ytd", 1)
        cache.put("twr:global:ytd", 2)

        assert cache.handle_event("transaction_created", {"account_id": 7}) == 1
        assert cache.get("twr:global:ytd") == 2

    def test_account_update_invalidates_global(self, cache) -> None:
        cache.put("twr:7:ytd", 1)
        cache.put("twr:global:ytd", 2)

        assert cache.handle_event("account_updated") == 1
        assert cache.get("twr:7:ytd") == 1

    def test_events_without_scope_are_ignored(self, cache) -> None:
        cache.put("twr:7:ytd", 1)

        assert cache.handle_event("transaction_deleted", {}) == 0
        assert cache.handle_event("unrelated_event", {"account_id": 7}) == 0
        assert cache.get("twr:7:ytd") == 1

    def test_clear_all_and_stats(self, cache, clock) -> None:
        cache.put("twr:1:ytd", 1)
        cache.get("twr:1:ytd")
        cache.get("twr:1:mtd")
        clock.advance(5)

        stats = cache.stats()

        assert (stats.entries, stats.hits, stats.misses) == (1, 1, 1)
        assert stats.hit_rate == 50.0
        assert stats.uptime_seconds == 5.0
        assert cache.clear_all() == 1
        assert cache.stats().to_dict()["entries"] == 0


class TestCacheTTL:
    def test_defaults(self) -> None:
        ttl = CacheTTL()
        assert ttl.ttl_for("drawdown") == 1800
        assert ttl.ttl_for("optimization") == 86400
        assert ttl.ttl_for("unknown") == ttl.default

    def test_environment_overrides(self, monkeypatch) -> None:
        monkeypatch.setenv("FOLIO_CACHE_TTL_TWR", "60")
        monkeypatch.setenv("FOLIO_CACHE_TTL_MWR", "not-a-number")

        ttl = CacheTTL.from_env()

        assert ttl.twr == 60
        assert ttl.mwr == 3600
