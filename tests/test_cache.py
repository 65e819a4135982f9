"""Test suite for the search response cache."""

from unittest.mock import AsyncMock, patch

import pytest

from presearch_mcp.application.cache import SearchCache, fingerprint
from presearch_mcp.application.cache.models import CacheEntry
from presearch_mcp.application.cache.statistics import CacheStatistics
from presearch_mcp.domain.models import SearchResponse, SearchResult


def make_response(query: str = "python", urls: int = 1) -> SearchResponse:
    return SearchResponse(
        query=query,
        results=[
            SearchResult(title=f"Result {i}", url=f"https://example.com/{i}")
            for i in range(urls)
        ],
        total=urls,
        page=1,
        timestamp="2024-01-01T00:00:00+00:00",
        source="presearch-api",
    )


@pytest.fixture
def cache(clock) -> SearchCache:
    return SearchCache(max_size=3, ttl_seconds=60, clock=clock)


class TestFingerprint:
    def test_key_order_does_not_matter(self):
        a = fingerprint({"query": "python", "page": 2, "lang": "en"})
        b = fingerprint({"lang": "en", "page": 2, "query": "python"})
        assert a == b

    def test_query_is_case_folded_and_trimmed(self):
        assert fingerprint({"query": "  Python  Tips "}) == fingerprint(
            {"query": "python tips"}
        )

    def test_none_values_are_ignored(self):
        assert fingerprint({"query": "x", "lang": None}) == fingerprint({"query": "x"})

    def test_namespace_separates_operations(self):
        params = {"query": "python"}
        assert fingerprint(params, "search") != fingerprint(params, "suggestions")
        assert fingerprint(params, "suggestions").startswith("suggestions:")

    def test_different_parameters_differ(self):
        assert fingerprint({"query": "x", "page": 1}) != fingerprint(
            {"query": "x", "page": 2}
        )

    def test_static_method_matches_function(self):
        assert SearchCache.fingerprint({"query": "x"}) == fingerprint({"query": "x"})


class TestSearchCache:
    def test_miss_then_hit(self, cache):
        assert cache.get("k") is None
        cache.set("k", make_response())
        cached = cache.get("k")
        assert cached == make_response()

        stats = cache.stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == 0.5
        assert stats.size == 1

    def test_get_returns_a_copy(self, cache):
        cache.set("k", make_response())
        first = cache.get("k")
        first.results.clear()
        first.query = "changed"

        second = cache.get("k")
        assert second.query == "python"
        assert len(second.results) == 1

    def test_set_stores_a_copy(self, cache):
        response = make_response()
        cache.set("k", response)
        response.query = "mutated"
        assert cache.get("k").query == "python"

    def test_entry_live_until_ttl_boundary(self, cache, clock):
        cache.set("k", make_response())
        clock.advance(60)
        assert cache.get("k") is not None
        clock.advance(0.001)
        assert cache.get("k") is None
        assert "k" not in cache

    def test_expired_read_counts_as_miss(self, cache, clock):
        cache.set("k", make_response())
        clock.advance(61)
        cache.get("k")
        assert cache.stats().misses == 1
        assert cache.stats().hits == 0

    def test_custom_ttl(self, cache, clock):
        cache.set("short", make_response(), ttl_seconds=5)
        clock.advance(6)
        assert cache.get("short") is None

    def test_fifo_eviction_ignores_reads(self, cache, clock):
        for key in ("a", "b", "c"):
            cache.set(key, make_response(key))
            clock.advance(1)
        # Reading "a" does not protect it
        cache.get("a")
        cache.set("d", make_response("d"))

        assert len(cache) == 3
        assert "a" not in cache
        assert all(key in cache for key in ("b", "c", "d"))

    def test_overwrite_does_not_evict(self, cache):
        for key in ("a", "b", "c"):
            cache.set(key, make_response(key))
        cache.set("b", make_response("b2"))
        assert len(cache) == 3
        assert cache.get("b").query == "b2"

    def test_overwrite_reinserts_as_newest(self, cache):
        for key in ("a", "b", "c"):
            cache.set(key, make_response(key))
        cache.set("a", make_response("a2"))
        cache.set("d", make_response("d"))
        assert "a" in cache
        assert "b" not in cache

    def test_size_never_exceeds_max(self, cache):
        for i in range(20):
            cache.set(f"k{i}", make_response())
            assert len(cache) <= 3

    def test_delete(self, cache):
        cache.set("k", make_response())
        assert cache.delete("k") is True
        assert cache.delete("k") is False

    def test_delete_by_pattern(self, cache):
        cache.set(fingerprint({"query": "python"}, "search"), make_response())
        cache.set(fingerprint({"query": "python"}, "suggestions"), make_response())
        cache.set(fingerprint({"query": "rust"}, "search"), make_response())

        assert cache.delete_by_pattern("^search:") == 2
        assert len(cache) == 1

    def test_delete_by_pattern_matches_query_text(self, cache):
        cache.set(fingerprint({"query": "python"}), make_response())
        cache.set(fingerprint({"query": "rust"}), make_response())
        assert cache.delete_by_pattern("python") == 1

    def test_clear_resets_counters(self, cache):
        cache.set("a", make_response())
        cache.get("a")
        cache.get("missing")
        assert cache.clear() == 1
        stats = cache.stats()
        assert stats.size == 0
        assert stats.hits == 0
        assert stats.misses == 0
        assert stats.hit_rate == 0.0

    def test_stats_timestamps(self, cache, clock):
        assert cache.stats().oldest_entry_time is None
        cache.set("a", make_response())
        first = clock.now
        clock.advance(10)
        cache.set("b", make_response())
        stats = cache.stats()
        assert stats.oldest_entry_time == first
        assert stats.newest_entry_time == first + 10
        assert stats.max_size == 3
        assert stats.ttl_seconds == 60
        assert stats.enabled is True

    def test_sweep_removes_only_expired(self, cache, clock):
        cache.set("old", make_response())
        clock.advance(30)
        cache.set("new", make_response())
        clock.advance(31)

        assert cache.sweep_expired() == 1
        assert "old" not in cache
        assert "new" in cache

    def test_eviction_and_expiration_counters(self, cache, clock):
        for key in ("a", "b", "c", "d"):
            cache.set(key, make_response(key))
        clock.advance(61)
        cache.get("b")
        cache.sweep_expired()

        stats = cache.stats()
        assert stats.evictions == 1
        assert stats.expirations == 3
        assert cache.clear() == 0
        assert cache.stats().evictions == 0

    def test_disabled_cache(self, clock):
        cache = SearchCache(max_size=3, ttl_seconds=60, enabled=False, clock=clock)
        cache.set("k", make_response())
        assert cache.get("k") is None
        stats = cache.stats()
        assert stats.size == 0
        assert stats.misses == 0
        assert stats.enabled is False

    def test_invalid_construction(self):
        with pytest.raises(ValueError):
            SearchCache(max_size=0)
        with pytest.raises(ValueError):
            SearchCache(ttl_seconds=0)

    @pytest.mark.anyio
    async def test_run_sweeper_sweeps_each_interval(self, clock):
        cache = SearchCache(
            max_size=3, ttl_seconds=60, sweep_interval_seconds=300, clock=clock
        )
        cache.set("k", make_response())
        clock.advance(120)

        sleeps = 0

        class StopSweeper(Exception):
            pass

        async def fake_sleep(seconds):
            nonlocal sleeps
            assert seconds == 300
            sleeps += 1
            if sleeps > 1:
                raise StopSweeper()

        with patch(
            "presearch_mcp.application.cache.search_cache.anyio.sleep",
            new=AsyncMock(side_effect=fake_sleep),
        ):
            with pytest.raises(StopSweeper):
                await cache.run_sweeper()

        assert len(cache) == 0


class TestCacheEntry:
    def test_expiry_is_strict(self):
        entry = CacheEntry(response=make_response(), created_at=100.0, ttl_seconds=10)
        assert entry.expires_at == 110.0
        assert entry.is_expired(110.0) is False
        assert entry.is_expired(110.1) is True

    def test_record_hit(self):
        entry = CacheEntry(response=make_response(), created_at=0.0, ttl_seconds=10)
        entry.record_hit()
        entry.record_hit()
        assert entry.hits == 2


class TestCacheStatistics:
    def test_hit_rate_without_lookups(self):
        assert CacheStatistics().hit_rate == 0.0

    def test_hit_rate(self):
        stats = CacheStatistics()
        stats.record_hit()
        stats.record_hit()
        stats.record_hit()
        stats.record_miss()
        assert stats.hit_rate == 0.75
        stats.reset()
        assert stats.hits == 0
        assert stats.misses == 0
